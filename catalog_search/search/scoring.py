"""
Composite relevance scoring.

Four independent signals, each in [0, 1], combined linearly:

    final = w_text * textual + w_recency * recency
          + w_popularity * popularity + w_quality * quality

Recency decays exponentially with a configurable half-life and drops to 0
past the maximum age.
"""

import math
from datetime import datetime
from typing import Any, Mapping, Optional

from catalog_search.search.config import DEFAULT_SEARCH_CONFIG, SearchConfig
from catalog_search.search.types import ScoreBreakdown, SearchHighlights

SECONDS_PER_DAY = 86400.0

# Textual relevance steps
EXACT_TITLE_SCORE = 1.0
TITLE_CONTAINS_SCORE = 0.7
WORD_MATCH_SCALE = 0.5
DESCRIPTION_BONUS = 0.3

# Neutral popularity when an entity kind has no usage signal
NEUTRAL_POPULARITY = {
    "assets": 0.5,
    "creators": 0.6,
    "projects": 0.5,
    "licenses": 0.4,
}

# Quality when an entity kind has no verification/approval signal
DEFAULT_QUALITY = {
    "assets": 0.7,
    "projects": 0.6,
}

VERIFICATION_QUALITY = {
    "approved": 1.0,
    "pending": 0.7,
}
UNVERIFIED_QUALITY = 0.5

# Creator popularity normalization caps and blend weights
COLLABORATIONS_CAP = 50.0
REVENUE_CAP = 100000.0
RATING_SCALE = 5.0
COLLABORATIONS_WEIGHT = 0.4
REVENUE_WEIGHT = 0.3
RATING_WEIGHT = 0.3

HIGHLIGHT_OPEN = "<mark>"
HIGHLIGHT_CLOSE = "</mark>"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def creator_popularity(metrics: Optional[Mapping[str, Any]]) -> float:
    """
    Blend collaboration count, revenue and rating into [0, 1].

    Each input is scaled linearly against its cap; missing metrics yield
    the neutral creator popularity.
    """
    if not metrics:
        return NEUTRAL_POPULARITY["creators"]

    collaborations = float(metrics.get("totalCollaborations") or 0)
    revenue = float(metrics.get("totalRevenue") or 0)
    rating = float(metrics.get("averageRating") or 0)

    score = (
        min(collaborations / COLLABORATIONS_CAP, 1.0) * COLLABORATIONS_WEIGHT
        + min(revenue / REVENUE_CAP, 1.0) * REVENUE_WEIGHT
        + clamp(rating / RATING_SCALE) * RATING_WEIGHT
    )
    return clamp(score)


def verification_quality(status: Optional[str]) -> float:
    return VERIFICATION_QUALITY.get((status or "").lower(), UNVERIFIED_QUALITY)


def license_quality(status: Optional[str]) -> float:
    return 1.0 if status == "ACTIVE" else 0.5


def highlight(text: Optional[str], query: str) -> Optional[str]:
    """
    Wrap the first case-insensitive occurrence of query in <mark> tags.

    Returns None when text is empty or does not contain the query.
    """
    if not text or not query:
        return None
    index = text.lower().find(query.lower())
    if index < 0:
        return None
    end = index + len(query)
    return f"{text[:index]}{HIGHLIGHT_OPEN}{text[index:end]}{HIGHLIGHT_CLOSE}{text[end:]}"


def build_highlights(query: str, title: str, description: Optional[str]) -> SearchHighlights:
    return SearchHighlights(
        title=highlight(title, query),
        description=highlight(description, query),
    )


class ScoringEngine:
    """Turns per-result signals into a ScoreBreakdown using a SearchConfig."""

    def __init__(self, config: SearchConfig = DEFAULT_SEARCH_CONFIG):
        self.config = config
        self._decay_rate = math.log(2) / config.recency.half_life_days

    def textual_relevance(self, query: str, title: str, description: Optional[str] = None) -> float:
        """
        Score how well the query matches title and description.

        - exact (case-insensitive) title match: 1.0
        - title contains the query: 0.7
        - otherwise: share of query words found inside title words, x 0.5
        - description containing the query adds 0.3
        The total is capped at 1.0.
        """
        query_lower = query.lower().strip()
        if not query_lower:
            return 0.0
        title_lower = (title or "").lower()
        description_lower = (description or "").lower()

        if title_lower == query_lower:
            score = EXACT_TITLE_SCORE
        elif query_lower in title_lower:
            score = TITLE_CONTAINS_SCORE
        else:
            query_words = query_lower.split()
            title_words = title_lower.split()
            matched = [qw for qw in query_words if any(qw in tw for tw in title_words)]
            score = (len(matched) / len(query_words)) * WORD_MATCH_SCALE

        if query_lower in description_lower:
            score += DESCRIPTION_BONUS

        return min(score, 1.0)

    def recency_score(self, created_at: datetime, now: Optional[datetime] = None) -> float:
        """
        Exponential decay e^(-lambda * age_days), lambda = ln 2 / half_life.

        Items older than max_age_days score 0; items dated in the future
        score 1.
        """
        now = now or datetime.utcnow()
        age_days = (now - created_at).total_seconds() / SECONDS_PER_DAY

        if age_days > self.config.recency.max_age_days:
            return 0.0
        if age_days <= 0:
            return 1.0

        return math.exp(-self._decay_rate * age_days)

    def combine(
        self,
        textual_relevance: float,
        recency_score: float,
        popularity_score: float,
        quality_score: float,
    ) -> ScoreBreakdown:
        """Weighted sum of the four (clamped) components."""
        weights = self.config.weights
        textual_relevance = clamp(textual_relevance)
        recency_score = clamp(recency_score)
        popularity_score = clamp(popularity_score)
        quality_score = clamp(quality_score)

        final_score = (
            textual_relevance * weights.textual_relevance
            + recency_score * weights.recency
            + popularity_score * weights.popularity
            + quality_score * weights.quality
        )

        return ScoreBreakdown(
            textual_relevance=textual_relevance,
            recency_score=recency_score,
            popularity_score=popularity_score,
            quality_score=quality_score,
            final_score=clamp(final_score),
        )

    def score(
        self,
        query: str,
        title: str,
        description: Optional[str],
        created_at: datetime,
        popularity: float,
        quality: float,
        now: Optional[datetime] = None,
    ) -> ScoreBreakdown:
        """Score one result from its raw signals."""
        return self.combine(
            self.textual_relevance(query, title, description),
            self.recency_score(created_at, now),
            popularity,
            quality,
        )
