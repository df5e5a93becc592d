"""
Merging, ordering and paginating search results.

Relevance ordering is descending by relevance_score. Ties are broken by
entity kind (fan-out order) and then by id, so the order never depends on
which adapter finished first.
"""

import math
from typing import Iterable, List, Optional, Tuple

from catalog_search.search.config import ResultLimits
from catalog_search.search.types import (
    ALL_ENTITY_KINDS,
    CreatorMetadata,
    PaginationInfo,
    SearchResult,
    SortBy,
    SortOrder,
)

_KIND_ORDER = {kind: index for index, kind in enumerate(ALL_ENTITY_KINDS)}

_METRIC_FIELDS = {
    SortBy.TOTAL_COLLABORATIONS: "total_collaborations",
    SortBy.TOTAL_REVENUE: "total_revenue",
    SortBy.AVERAGE_RATING: "average_rating",
}


def _tie_break(result: SearchResult) -> Tuple[int, str]:
    return _KIND_ORDER.get(result.entity_type, len(_KIND_ORDER)), result.id


def _field_value(result: SearchResult, sort_by: SortBy):
    """Sort key for a field ordering; results lacking the field sort as zero/empty."""
    if sort_by in (SortBy.TITLE, SortBy.NAME):
        return result.title.lower()
    if sort_by == SortBy.CREATED_AT:
        return result.created_at.timestamp()
    if sort_by == SortBy.UPDATED_AT:
        return result.updated_at.timestamp()

    metadata = result.metadata
    if not isinstance(metadata, CreatorMetadata):
        return 0.0
    if sort_by == SortBy.VERIFIED_AT:
        return metadata.verified_at.timestamp() if metadata.verified_at else 0.0
    metrics = metadata.performance_metrics
    if metrics is None:
        return 0.0
    return float(getattr(metrics, _METRIC_FIELDS[sort_by]) or 0)


def rank_results(
    results: Iterable[SearchResult],
    sort_by: SortBy = SortBy.RELEVANCE,
    sort_order: SortOrder = SortOrder.DESC,
) -> List[SearchResult]:
    """
    Order merged results.

    Relevance is always descending; sort_order applies to field orderings.
    """
    # Stable sorts: apply the tie-break first, then the primary key
    ordered = sorted(results, key=_tie_break)

    if sort_by == SortBy.RELEVANCE:
        ordered.sort(key=lambda r: r.relevance_score, reverse=True)
        return ordered

    ordered.sort(
        key=lambda r: _field_value(r, sort_by),
        reverse=(sort_order == SortOrder.DESC),
    )
    return ordered


def resolve_page_size(requested: Optional[int], limits: ResultLimits) -> int:
    """Requested limit bounded to [1, max_page_size]; default when missing."""
    if not requested or requested < 1:
        return limits.default_page_size
    return min(requested, limits.max_page_size)


def paginate(
    results: List[SearchResult], page: int, limit: int
) -> Tuple[List[SearchResult], PaginationInfo]:
    """
    Slice one page out of the ranked results.

    Page numbers are 1-based; values below 1 are treated as 1.
    """
    page = max(page, 1)
    total = len(results)
    start = (page - 1) * limit
    end = start + limit

    info = PaginationInfo(
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit) if limit else 0,
        has_next_page=end < total,
        has_previous_page=page > 1,
    )
    return results[start:end], info


def empty_pagination(limit: int) -> PaginationInfo:
    return PaginationInfo(
        page=1,
        limit=limit,
        total=0,
        total_pages=0,
        has_next_page=False,
        has_previous_page=False,
    )
