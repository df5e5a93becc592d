"""
Facet aggregation.

Two flavours:
- summarize(): counts over an already-fetched result list, returned with
  every search response
- facet_groups()/totals(): per-field counts computed by the record store
  for filter UIs. When counting a field, that field's own selection is
  removed from the filters so every available value is listed; all other
  filters still apply.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from catalog_search.search.adapters import EntitySearchAdapter
from catalog_search.search.types import (
    ALL_ENTITY_KINDS,
    AssetMetadata,
    CreatorMetadata,
    DateRangeCounts,
    DegradedEntity,
    EnhancedSearchFacets,
    FacetGroup,
    FacetOption,
    LicenseMetadata,
    ProjectMetadata,
    SearchFacets,
    SearchFilters,
    SearchResult,
)

logger = logging.getLogger(__name__)


class FacetAggregator:
    """Computes facet counts for search responses and filter UIs."""

    def summarize(
        self, results: Iterable[SearchResult], now: Optional[datetime] = None
    ) -> SearchFacets:
        """
        Facet counts over merged (pre-pagination) results.

        Entity counts always list every kind, zero-filled.
        """
        now = now or datetime.utcnow()
        entity_counts: Dict[str, int] = {kind.value: 0 for kind in ALL_ENTITY_KINDS}
        asset_types: Counter = Counter()
        project_types: Counter = Counter()
        license_types: Counter = Counter()
        statuses: Counter = Counter()
        verification: Counter = Counter()
        buckets = Counter()

        for result in results:
            entity_counts[result.entity_type.value] += 1
            metadata = result.metadata

            if isinstance(metadata, AssetMetadata):
                asset_types[metadata.asset_type] += 1
                statuses[metadata.status] += 1
            elif isinstance(metadata, CreatorMetadata):
                verification[metadata.verification_status] += 1
            elif isinstance(metadata, ProjectMetadata):
                project_types[metadata.project_type] += 1
                statuses[metadata.status] += 1
            elif isinstance(metadata, LicenseMetadata):
                license_types[metadata.license_type] += 1
                statuses[metadata.status] += 1

            buckets[self._date_bucket(result.created_at, now)] += 1

        return SearchFacets(
            entity_counts=entity_counts,
            asset_types=dict(asset_types),
            project_types=dict(project_types),
            license_types=dict(license_types),
            statuses=dict(statuses),
            verification_status=dict(verification),
            date_ranges=DateRangeCounts(
                last_7_days=buckets["last_7_days"],
                last_30_days=buckets["last_30_days"],
                last_90_days=buckets["last_90_days"],
                older=buckets["older"],
            ),
        )

    @staticmethod
    def _date_bucket(created_at: datetime, now: datetime) -> str:
        age = now - created_at
        if age <= timedelta(days=7):
            return "last_7_days"
        if age <= timedelta(days=30):
            return "last_30_days"
        if age <= timedelta(days=90):
            return "last_90_days"
        return "older"

    def facet_groups(
        self,
        session: Session,
        adapter: EntitySearchAdapter,
        query: Optional[str],
        filters: SearchFilters,
        visibility: Optional[ColumnElement] = None,
    ) -> List[FacetGroup]:
        """
        One group per filterable field of the adapter's kind.

        Options are ordered by count (descending) then value. Groups without
        any option are omitted.
        """
        groups = []
        for facet in adapter.facet_fields:
            counts = adapter.facet_counts(
                session, facet, query, filters.without(facet.field), visibility
            )
            if not counts:
                continue

            selected = set(getattr(filters, facet.field) or ())
            options = [
                FacetOption(
                    value=value,
                    label=value,
                    count=count,
                    is_selected=value in selected,
                )
                for value, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
            ]
            groups.append(FacetGroup(
                field=facet.field,
                label=facet.label,
                entity=adapter.kind,
                options=options,
            ))
        return groups

    def totals(
        self,
        session: Session,
        adapter: EntitySearchAdapter,
        query: Optional[str],
        filters: SearchFilters,
        visibility: Optional[ColumnElement] = None,
    ) -> Tuple[int, int]:
        """(results ignoring all filters, results under the applied filters)."""
        unfiltered = adapter.count(session, query, SearchFilters(), visibility)
        filtered = adapter.count(session, query, filters, visibility)
        return unfiltered, filtered

    def combine(
        self,
        per_kind: Sequence[Tuple[List[FacetGroup], int, int]],
        filters: SearchFilters,
        degraded: Sequence[DegradedEntity] = (),
    ) -> EnhancedSearchFacets:
        """Merge per-kind groups and totals into one response."""
        groups: List[FacetGroup] = []
        total_results = 0
        filtered_results = 0
        for kind_groups, unfiltered, filtered in per_kind:
            groups.extend(kind_groups)
            total_results += unfiltered
            filtered_results += filtered

        return EnhancedSearchFacets(
            groups=groups,
            applied_filters=filters.applied(),
            total_results=total_results,
            filtered_results=filtered_results,
            degraded_entities=tuple(degraded),
        )
