"""
Configuration module with strict validation.

Key principles:
- APP STARTUP requires only DATABASE_URL
- Search tuning (weights, decay, limits, deadlines) has safe defaults
- Scoring weights are validated together (they must sum to 1.0)
"""
import math
from typing import Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from catalog_search.search.config import (
    ParsingConfig,
    RecencyConfig,
    ResultLimits,
    ScoringWeights,
    SearchConfig,
    SpellingConfig,
    WEIGHT_TOLERANCE,
)


class Settings(BaseSettings):
    """Application settings with validation.

    Loads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database (REQUIRED for API startup)
    database_url: str = Field(
        ...,
        description="SQLAlchemy database URL of the record store"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # Relevance weights (must sum to 1.0)
    search_weight_textual: float = Field(default=0.5, ge=0.0, le=1.0)
    search_weight_recency: float = Field(default=0.2, ge=0.0, le=1.0)
    search_weight_popularity: float = Field(default=0.2, ge=0.0, le=1.0)
    search_weight_quality: float = Field(default=0.1, ge=0.0, le=1.0)

    # Recency decay
    search_recency_half_life_days: float = Field(
        default=90.0,
        gt=0,
        description="Days until the recency score halves"
    )
    search_recency_max_age_days: float = Field(
        default=730.0,
        gt=0,
        description="Age (days) beyond which the recency score is 0"
    )

    # Query parsing
    search_min_query_length: int = Field(default=2, ge=1)
    search_max_query_length: int = Field(default=200, ge=1, le=10000)

    # Result limits
    search_max_results_per_entity: int = Field(
        default=100,
        ge=1,
        le=5000,
        description="Cap on records fetched per entity kind"
    )
    search_default_page_size: int = Field(default=20, ge=1)
    search_max_page_size: int = Field(default=100, ge=1, le=1000)

    # Deadlines
    search_adapter_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Deadline for one entity adapter query"
    )
    search_estimate_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Deadline for one spelling count-estimate query"
    )

    # Spell correction
    spelling_trigger_max_results: int = Field(
        default=5,
        ge=0,
        description="Suggest corrections only when a search returned at most this many results"
    )
    spelling_min_similarity: float = Field(default=0.7, ge=0.0, le=1.0)
    spelling_improvement_factor: float = Field(default=2.0, ge=1.0)
    spelling_corpus_refresh_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Corpus staleness interval"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @model_validator(mode="after")
    def validate_weights(self) -> "Settings":
        """Scoring weights must sum to 1.0."""
        total = (
            self.search_weight_textual
            + self.search_weight_recency
            + self.search_weight_popularity
            + self.search_weight_quality
        )
        if not math.isclose(total, 1.0, abs_tol=WEIGHT_TOLERANCE):
            raise ValueError(f"search weights must sum to 1.0, got {total:.6f}")
        if self.search_default_page_size > self.search_max_page_size:
            raise ValueError("search_default_page_size cannot exceed search_max_page_size")
        return self

    def build_search_config(self) -> SearchConfig:
        """
        Build the immutable SearchConfig used by the search engine.

        Returns:
            SearchConfig: Tuning parameters derived from these settings
        """
        return SearchConfig(
            weights=ScoringWeights(
                textual_relevance=self.search_weight_textual,
                recency=self.search_weight_recency,
                popularity=self.search_weight_popularity,
                quality=self.search_weight_quality,
            ),
            recency=RecencyConfig(
                half_life_days=self.search_recency_half_life_days,
                max_age_days=self.search_recency_max_age_days,
            ),
            parsing=ParsingConfig(
                min_query_length=self.search_min_query_length,
                max_query_length=self.search_max_query_length,
            ),
            limits=ResultLimits(
                max_results_per_entity=self.search_max_results_per_entity,
                default_page_size=self.search_default_page_size,
                max_page_size=self.search_max_page_size,
            ),
            spelling=SpellingConfig(
                trigger_max_results=self.spelling_trigger_max_results,
                min_similarity=self.spelling_min_similarity,
                improvement_factor=self.spelling_improvement_factor,
                corpus_refresh_seconds=self.spelling_corpus_refresh_seconds,
            ),
            adapter_timeout_seconds=self.search_adapter_timeout_seconds,
            estimate_timeout_seconds=self.search_estimate_timeout_seconds,
        )


# Global settings instance
# This can be imported throughout the application
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    This pattern allows:
    - Easy testing (can reset settings between tests)
    - Lazy loading (only loads when first accessed)
    - Singleton pattern (same instance used everywhere)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """
    Reset the global settings instance.

    Useful for testing to ensure clean state between tests.
    """
    global _settings
    _settings = None
