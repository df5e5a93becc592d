"""
Unit tests for relevance scoring.
"""
import pytest
from datetime import datetime, timedelta
from catalog_search.search.config import RecencyConfig, ScoringWeights, SearchConfig
from catalog_search.search.scoring import (
    ScoringEngine,
    build_highlights,
    creator_popularity,
    highlight,
    license_quality,
    verification_quality,
)


NOW = datetime(2026, 6, 1, 12, 0, 0)


class TestTextualRelevance:

    @pytest.fixture
    def scoring(self):
        return ScoringEngine()

    @pytest.mark.unit
    def test_exact_title_match(self, scoring):
        assert scoring.textual_relevance("brand logo", "Brand Logo") == 1.0

    @pytest.mark.unit
    def test_title_contains_query(self, scoring):
        assert scoring.textual_relevance("logo", "Brand Logo Pack") == 0.7

    @pytest.mark.unit
    def test_word_fraction(self, scoring):
        # "logo" is found in a title word, "neon" is not
        assert scoring.textual_relevance("neon logo", "Logos and Marks") == pytest.approx(0.25)

    @pytest.mark.unit
    def test_description_bonus(self, scoring):
        score = scoring.textual_relevance("logo", "Brand Logo Pack", "A logo for every occasion")
        assert score == pytest.approx(1.0)

    @pytest.mark.unit
    def test_description_only_match(self, scoring):
        score = scoring.textual_relevance("palette", "Brand Guidelines", "Color palette")
        assert score == pytest.approx(0.3)

    @pytest.mark.unit
    def test_capped_at_one(self, scoring):
        assert scoring.textual_relevance("logo", "Logo", "logo") == 1.0

    @pytest.mark.unit
    def test_no_match(self, scoring):
        assert scoring.textual_relevance("music", "Brand Guidelines", "Rules") == 0.0


class TestRecency:

    @pytest.fixture
    def scoring(self):
        return ScoringEngine()

    @pytest.mark.unit
    def test_age_zero_scores_one(self, scoring):
        assert scoring.recency_score(NOW, NOW) == pytest.approx(1.0)

    @pytest.mark.unit
    def test_half_life(self, scoring):
        assert scoring.recency_score(NOW - timedelta(days=90), NOW) == pytest.approx(0.5)

    @pytest.mark.unit
    def test_future_dates_score_one(self, scoring):
        assert scoring.recency_score(NOW + timedelta(days=3), NOW) == 1.0

    @pytest.mark.unit
    def test_zero_past_max_age(self, scoring):
        assert scoring.recency_score(NOW - timedelta(days=731), NOW) == 0.0
        assert scoring.recency_score(NOW - timedelta(days=730), NOW) > 0.0

    @pytest.mark.unit
    def test_monotonically_non_increasing(self, scoring):
        scores = [scoring.recency_score(NOW - timedelta(days=d), NOW) for d in range(0, 800, 7)]
        assert all(a >= b for a, b in zip(scores, scores[1:]))

    @pytest.mark.unit
    def test_custom_half_life(self):
        config = SearchConfig(recency=RecencyConfig(half_life_days=10, max_age_days=100))
        scoring = ScoringEngine(config)
        assert scoring.recency_score(NOW - timedelta(days=10), NOW) == pytest.approx(0.5)
        assert scoring.recency_score(NOW - timedelta(days=101), NOW) == 0.0


class TestCombinedScore:

    @pytest.mark.unit
    def test_exact_title_created_now(self):
        """An exact title match created at search time scores 0.5 + 0.2 + 0.2p + 0.1q."""
        scoring = ScoringEngine()
        breakdown = scoring.score(
            "Brand Logo", "Brand Logo", None, NOW, popularity=0.5, quality=0.7, now=NOW
        )

        assert breakdown.textual_relevance == 1.0
        assert breakdown.recency_score == pytest.approx(1.0)
        assert breakdown.final_score == pytest.approx(0.5 + 0.2 + 0.2 * 0.5 + 0.1 * 0.7)

    @pytest.mark.unit
    def test_final_score_is_weighted_sum(self):
        config = SearchConfig(weights=ScoringWeights(0.4, 0.3, 0.2, 0.1))
        breakdown = ScoringEngine(config).combine(0.5, 0.6, 0.7, 0.8)

        expected = 0.5 * 0.4 + 0.6 * 0.3 + 0.7 * 0.2 + 0.8 * 0.1
        assert breakdown.final_score == pytest.approx(expected)

    @pytest.mark.unit
    def test_components_clamped(self):
        breakdown = ScoringEngine().combine(1.5, -0.2, 2.0, 0.5)

        assert breakdown.textual_relevance == 1.0
        assert breakdown.recency_score == 0.0
        assert breakdown.popularity_score == 1.0
        assert 0.0 <= breakdown.final_score <= 1.0


class TestSignals:

    @pytest.mark.unit
    def test_creator_popularity_neutral_without_metrics(self):
        assert creator_popularity(None) == 0.6
        assert creator_popularity({}) == 0.6

    @pytest.mark.unit
    def test_creator_popularity_blend(self):
        metrics = {"totalCollaborations": 25, "totalRevenue": 50000, "averageRating": 4.0}
        expected = 0.5 * 0.4 + 0.5 * 0.3 + 0.8 * 0.3
        assert creator_popularity(metrics) == pytest.approx(expected)

    @pytest.mark.unit
    def test_creator_popularity_capped(self):
        metrics = {"totalCollaborations": 500, "totalRevenue": 10_000_000, "averageRating": 5}
        assert creator_popularity(metrics) == pytest.approx(1.0)

    @pytest.mark.unit
    @pytest.mark.parametrize("status,expected", [
        ("approved", 1.0),
        ("pending", 0.7),
        ("rejected", 0.5),
        (None, 0.5),
    ])
    def test_verification_quality(self, status, expected):
        assert verification_quality(status) == expected

    @pytest.mark.unit
    def test_license_quality(self):
        assert license_quality("ACTIVE") == 1.0
        assert license_quality("EXPIRED") == 0.5


class TestHighlights:

    @pytest.mark.unit
    def test_wraps_first_match_only(self):
        assert highlight("Logo and logo", "logo") == "<mark>Logo</mark> and logo"

    @pytest.mark.unit
    def test_no_match_returns_none(self):
        assert highlight("Brand Guidelines", "music") is None
        assert highlight(None, "music") is None

    @pytest.mark.unit
    def test_build_highlights(self):
        result = build_highlights("logo", "Logo Pack", "Vector logo files")

        assert result.title == "<mark>Logo</mark> Pack"
        assert result.description == "Vector <mark>logo</mark> files"
