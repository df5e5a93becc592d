"""
Unit tests for ranking and pagination.
"""
import pytest
from datetime import datetime, timedelta
from catalog_search.search.config import ResultLimits
from catalog_search.search.ranking import paginate, rank_results, resolve_page_size
from catalog_search.search.types import (
    AssetMetadata,
    CreatorMetadata,
    EntityKind,
    PerformanceMetrics,
    ScoreBreakdown,
    SearchHighlights,
    SearchResult,
    SortBy,
    SortOrder,
)

NOW = datetime(2026, 6, 1)


def make_result(id, score, kind=EntityKind.ASSETS, title=None, created_days_ago=0, metadata=None):
    if metadata is None:
        if kind == EntityKind.CREATORS:
            metadata = CreatorMetadata(stage_name=title or id, verification_status="approved")
        else:
            metadata = AssetMetadata(
                asset_type="IMAGE", status="APPROVED", file_size=1, mime_type="image/png", created_by="u1"
            )
    created = NOW - timedelta(days=created_days_ago)
    return SearchResult(
        id=id,
        entity_type=kind,
        title=title or id,
        description=None,
        relevance_score=score,
        score_breakdown=ScoreBreakdown(score, 1.0, 0.5, 0.5, score),
        highlights=SearchHighlights(),
        metadata=metadata,
        created_at=created,
        updated_at=created,
    )


class TestRankResults:

    @pytest.mark.unit
    def test_relevance_descending(self):
        results = [make_result("a", 0.2), make_result("b", 0.9), make_result("c", 0.5)]
        ranked = rank_results(results)

        scores = [r.relevance_score for r in ranked]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.unit
    def test_relevance_ignores_sort_order(self):
        results = [make_result("a", 0.2), make_result("b", 0.9)]
        ranked = rank_results(results, SortBy.RELEVANCE, SortOrder.ASC)

        assert [r.id for r in ranked] == ["b", "a"]

    @pytest.mark.unit
    def test_ties_broken_by_kind_then_id(self):
        results = [
            make_result("z", 0.5, kind=EntityKind.PROJECTS),
            make_result("b", 0.5, kind=EntityKind.ASSETS),
            make_result("a", 0.5, kind=EntityKind.ASSETS),
            make_result("c", 0.5, kind=EntityKind.CREATORS),
        ]
        ranked = rank_results(results)

        assert [r.id for r in ranked] == ["a", "b", "c", "z"]

    @pytest.mark.unit
    def test_tie_break_independent_of_input_order(self):
        results = [make_result(str(i), 0.5) for i in range(10)]
        assert [r.id for r in rank_results(results)] == [r.id for r in rank_results(reversed(results))]

    @pytest.mark.unit
    def test_sort_by_created_at(self):
        results = [
            make_result("old", 0.9, created_days_ago=30),
            make_result("new", 0.1, created_days_ago=1),
        ]

        assert [r.id for r in rank_results(results, SortBy.CREATED_AT, SortOrder.DESC)] == ["new", "old"]
        assert [r.id for r in rank_results(results, SortBy.CREATED_AT, SortOrder.ASC)] == ["old", "new"]

    @pytest.mark.unit
    def test_sort_by_title_case_insensitive(self):
        results = [make_result("1", 0.5, title="beta"), make_result("2", 0.5, title="Alpha")]
        ranked = rank_results(results, SortBy.TITLE, SortOrder.ASC)

        assert [r.title for r in ranked] == ["Alpha", "beta"]

    @pytest.mark.unit
    def test_creator_metric_sort_puts_other_kinds_at_zero(self):
        rated = CreatorMetadata(
            stage_name="Rated",
            verification_status="approved",
            performance_metrics=PerformanceMetrics(average_rating=4.5),
        )
        results = [
            make_result("asset", 0.9),
            make_result("creator", 0.1, kind=EntityKind.CREATORS, metadata=rated),
        ]
        ranked = rank_results(results, SortBy.AVERAGE_RATING, SortOrder.DESC)

        assert [r.id for r in ranked] == ["creator", "asset"]


class TestPaginate:

    @pytest.mark.unit
    def test_last_partial_page(self):
        """Page 2 of 25 results at 20 per page holds the last 5."""
        results = [make_result(str(i), 0.5) for i in range(25)]
        page, info = paginate(results, page=2, limit=20)

        assert len(page) == 5
        assert info.total == 25
        assert info.total_pages == 2
        assert info.has_next_page is False
        assert info.has_previous_page is True

    @pytest.mark.unit
    @pytest.mark.parametrize("n,page_number,limit", [
        (0, 1, 10), (5, 1, 10), (10, 1, 10), (11, 2, 10), (30, 4, 10), (7, 3, 3),
    ])
    def test_page_size_and_next_flag(self, n, page_number, limit):
        results = [make_result(str(i), 0.5) for i in range(n)]
        page, info = paginate(results, page=page_number, limit=limit)

        assert len(page) == max(0, min(n - (page_number - 1) * limit, limit))
        assert info.has_next_page == (page_number * limit < n)

    @pytest.mark.unit
    def test_page_below_one_treated_as_first(self):
        results = [make_result(str(i), 0.5) for i in range(3)]
        page, info = paginate(results, page=0, limit=2)

        assert info.page == 1
        assert len(page) == 2
        assert info.has_previous_page is False


class TestResolvePageSize:

    @pytest.mark.unit
    def test_default_when_missing(self):
        assert resolve_page_size(None, ResultLimits()) == 20

    @pytest.mark.unit
    def test_capped_at_max(self):
        assert resolve_page_size(500, ResultLimits()) == 100

    @pytest.mark.unit
    def test_requested_value_kept(self):
        assert resolve_page_size(5, ResultLimits()) == 5
