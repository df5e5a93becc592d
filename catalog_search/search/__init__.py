"""
Catalog search core.

Unified search across IP assets, creators, projects and licenses with
composite relevance scoring, facets, autocomplete and spell correction.
The orchestrator lives in catalog_search.search.engine.
"""

from catalog_search.search.config import DEFAULT_SEARCH_CONFIG, SearchConfig
from catalog_search.search.types import (
    EntityKind,
    SearchFilters,
    SearchQuery,
    SearchResponse,
    SearchResult,
)

__all__ = [
    "DEFAULT_SEARCH_CONFIG",
    "EntityKind",
    "SearchConfig",
    "SearchFilters",
    "SearchQuery",
    "SearchResponse",
    "SearchResult",
]
