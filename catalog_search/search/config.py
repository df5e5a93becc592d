"""
Search tuning parameters.

A SearchConfig is immutable for the lifetime of an engine. Per-call tweaks
go through `with_overrides`, which returns a new instance.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Any

from catalog_search.core.errors import InvalidSearchConfigError

WEIGHT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the four relevance components. Must sum to 1.0."""
    textual_relevance: float = 0.5
    recency: float = 0.2
    popularity: float = 0.2
    quality: float = 0.1

    def __post_init__(self):
        values = (self.textual_relevance, self.recency, self.popularity, self.quality)
        if any(v < 0 or v > 1 for v in values):
            raise InvalidSearchConfigError(f"Scoring weights must be within [0, 1], got {values}")
        total = sum(values)
        if not math.isclose(total, 1.0, abs_tol=WEIGHT_TOLERANCE):
            raise InvalidSearchConfigError(f"Scoring weights must sum to 1.0, got {total:.6f}")


@dataclass(frozen=True)
class RecencyConfig:
    half_life_days: float = 90.0
    max_age_days: float = 730.0

    def __post_init__(self):
        if self.half_life_days <= 0:
            raise InvalidSearchConfigError("half_life_days must be positive")
        if self.max_age_days <= 0:
            raise InvalidSearchConfigError("max_age_days must be positive")


@dataclass(frozen=True)
class ParsingConfig:
    min_query_length: int = 2
    max_query_length: int = 200

    def __post_init__(self):
        if self.min_query_length < 1 or self.max_query_length < self.min_query_length:
            raise InvalidSearchConfigError(
                f"Invalid query length bounds: min={self.min_query_length}, max={self.max_query_length}"
            )


@dataclass(frozen=True)
class ResultLimits:
    max_results_per_entity: int = 100
    default_page_size: int = 20
    max_page_size: int = 100

    def __post_init__(self):
        if self.max_results_per_entity < 1:
            raise InvalidSearchConfigError("max_results_per_entity must be at least 1")
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise InvalidSearchConfigError(
                f"default_page_size must be within [1, max_page_size], got {self.default_page_size}"
            )


@dataclass(frozen=True)
class SpellingConfig:
    """Spelling-suggestion thresholds and corpus sampling bounds."""
    trigger_max_results: int = 5
    min_similarity: float = 0.7
    improvement_factor: float = 2.0
    max_candidates_per_word: int = 5
    max_alternatives: int = 2
    corpus_refresh_seconds: float = 3600.0
    successful_query_weight: int = 2
    query_history_days: int = 30
    asset_sample_size: int = 5000
    creator_sample_size: int = 2000
    project_sample_size: int = 2000
    query_sample_size: int = 1000


@dataclass(frozen=True)
class SearchConfig:
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    recency: RecencyConfig = field(default_factory=RecencyConfig)
    parsing: ParsingConfig = field(default_factory=ParsingConfig)
    limits: ResultLimits = field(default_factory=ResultLimits)
    spelling: SpellingConfig = field(default_factory=SpellingConfig)

    # Deadlines (seconds) for one adapter query and one count estimate
    adapter_timeout_seconds: float = 10.0
    estimate_timeout_seconds: float = 5.0

    def with_overrides(self, **overrides: Any) -> "SearchConfig":
        """
        Return a copy with top-level groups or deadlines replaced.

        Example:
            config.with_overrides(weights=ScoringWeights(0.7, 0.1, 0.1, 0.1))
        """
        return replace(self, **overrides)


DEFAULT_SEARCH_CONFIG = SearchConfig()
