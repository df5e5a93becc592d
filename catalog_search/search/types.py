"""
Data model of the unified search.

Per-call objects (SearchQuery, SearchResult, SearchResponse, ...) are frozen
dataclasses. Entity metadata is a tagged union: one dataclass per entity
kind, each carrying a `kind` discriminator.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union


class EntityKind(str, Enum):
    """Searchable entity kinds."""
    ASSETS = "assets"
    CREATORS = "creators"
    PROJECTS = "projects"
    LICENSES = "licenses"


# Fan-out order; also the deterministic tie-break order between kinds
ALL_ENTITY_KINDS: Tuple[EntityKind, ...] = (
    EntityKind.ASSETS,
    EntityKind.CREATORS,
    EntityKind.PROJECTS,
    EntityKind.LICENSES,
)


class SortBy(str, Enum):
    RELEVANCE = "relevance"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    TITLE = "title"
    NAME = "name"
    VERIFIED_AT = "verified_at"
    TOTAL_COLLABORATIONS = "total_collaborations"
    TOTAL_REVENUE = "total_revenue"
    AVERAGE_RATING = "average_rating"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# =============================================================================
# Request
# =============================================================================


@dataclass(frozen=True)
class SearchFilters:
    """Structured filters. List-valued fields match any of the given values,
    except tags and specialties, which must all be present."""

    # Assets
    asset_type: Tuple[str, ...] = ()
    asset_status: Tuple[str, ...] = ()
    project_id: Optional[str] = None
    creator_id: Optional[str] = None
    tags: Tuple[str, ...] = ()
    created_by: Optional[str] = None

    # Creators
    verification_status: Tuple[str, ...] = ()
    specialties: Tuple[str, ...] = ()
    availability_status: Optional[str] = None

    # Projects
    project_type: Tuple[str, ...] = ()
    project_status: Tuple[str, ...] = ()
    brand_id: Optional[str] = None

    # Licenses
    license_type: Tuple[str, ...] = ()
    license_status: Tuple[str, ...] = ()

    # Common
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    def without(self, name: str) -> "SearchFilters":
        """Copy with one filter cleared (used when faceting that field)."""
        current = getattr(self, name)
        return replace(self, **{name: () if isinstance(current, tuple) else None})

    def applied(self) -> Dict[str, List[str]]:
        """Non-empty list-valued filters, for echoing back to filter UIs."""
        return {
            f.name: list(getattr(self, f.name))
            for f in fields(self)
            if isinstance(getattr(self, f.name), tuple) and getattr(self, f.name)
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation of the set filters."""
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or value == ():
                continue
            if isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, datetime):
                value = value.isoformat()
            result[f.name] = value
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SearchFilters":
        """
        Inverse of to_dict; unknown keys are ignored.

        A bare string for a list-valued filter is read as a one-item list.

        Raises:
            ValueError: If a value has the wrong shape for its filter
        """
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        list_valued = {f.name for f in fields(cls) if f.default == ()}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key in list_valued:
                if isinstance(value, str):
                    value = (value,)
                elif isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
                    value = tuple(value)
                else:
                    raise ValueError(f"{key} must be a string or a list of strings")
            elif key in ("date_from", "date_to"):
                if isinstance(value, str):
                    value = datetime.fromisoformat(value)
                elif not isinstance(value, datetime):
                    raise ValueError(f"{key} must be an ISO 8601 date")
            elif not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
            values[key] = value
        return cls(**values)


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: Optional[int] = None  # None -> configured default page size


@dataclass(frozen=True)
class SearchQuery:
    text: str
    entities: Tuple[EntityKind, ...] = ()  # empty -> all kinds
    filters: SearchFilters = field(default_factory=SearchFilters)
    pagination: Pagination = field(default_factory=Pagination)
    sort_by: SortBy = SortBy.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC

    @property
    def entity_kinds(self) -> Tuple[EntityKind, ...]:
        return self.entities or ALL_ENTITY_KINDS


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class ScoreBreakdown:
    textual_relevance: float
    recency_score: float
    popularity_score: float
    quality_score: float
    final_score: float


@dataclass(frozen=True)
class SearchHighlights:
    title: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class AssetMetadata:
    kind: ClassVar[str] = "asset"
    asset_type: str
    status: str
    file_size: int
    mime_type: str
    created_by: str
    thumbnail_url: Optional[str] = None
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CreatorAvailability:
    status: str
    next_available: Optional[str] = None


@dataclass(frozen=True)
class PerformanceMetrics:
    total_collaborations: Optional[float] = None
    total_revenue: Optional[float] = None
    average_rating: Optional[float] = None
    recent_activity_score: Optional[float] = None


@dataclass(frozen=True)
class CreatorMetadata:
    kind: ClassVar[str] = "creator"
    stage_name: str
    verification_status: str
    specialties: Tuple[str, ...] = ()
    avatar: Optional[str] = None
    portfolio_url: Optional[str] = None
    availability: Optional[CreatorAvailability] = None
    performance_metrics: Optional[PerformanceMetrics] = None
    verified_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProjectMetadata:
    kind: ClassVar[str] = "project"
    project_type: str
    status: str
    brand_name: str
    budget_cents: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass(frozen=True)
class LicenseMetadata:
    kind: ClassVar[str] = "license"
    license_type: str
    status: str
    fee_cents: int
    start_date: datetime
    end_date: datetime
    asset_title: str
    brand_name: str


EntityMetadata = Union[AssetMetadata, CreatorMetadata, ProjectMetadata, LicenseMetadata]


@dataclass(frozen=True)
class SearchResult:
    id: str
    entity_type: EntityKind
    title: str
    description: Optional[str]
    relevance_score: float
    score_breakdown: ScoreBreakdown
    highlights: SearchHighlights
    metadata: EntityMetadata
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class PaginationInfo:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


@dataclass(frozen=True)
class DateRangeCounts:
    last_7_days: int = 0
    last_30_days: int = 0
    last_90_days: int = 0
    older: int = 0


@dataclass(frozen=True)
class SearchFacets:
    """Facet counts over the merged (pre-pagination) result set."""
    entity_counts: Dict[str, int]
    asset_types: Dict[str, int] = field(default_factory=dict)
    project_types: Dict[str, int] = field(default_factory=dict)
    license_types: Dict[str, int] = field(default_factory=dict)
    statuses: Dict[str, int] = field(default_factory=dict)
    verification_status: Dict[str, int] = field(default_factory=dict)
    date_ranges: DateRangeCounts = field(default_factory=DateRangeCounts)


@dataclass(frozen=True)
class DegradedEntity:
    """An entity kind whose adapter failed or timed out during a search."""
    entity: EntityKind
    reason: str
    retryable: bool = False


@dataclass(frozen=True)
class SearchResponse:
    results: List[SearchResult]
    pagination: PaginationInfo
    facets: SearchFacets
    query: str
    execution_time_ms: float
    degraded_entities: Tuple[DegradedEntity, ...] = ()

    @property
    def is_degraded(self) -> bool:
        return bool(self.degraded_entities)


# =============================================================================
# Enhanced facets
# =============================================================================


@dataclass(frozen=True)
class FacetOption:
    value: str
    label: str
    count: int
    is_selected: bool = False


@dataclass(frozen=True)
class FacetGroup:
    field: str
    label: str
    entity: EntityKind
    options: List[FacetOption]
    type: str = "checkbox"


@dataclass(frozen=True)
class EnhancedSearchFacets:
    groups: List[FacetGroup]
    applied_filters: Dict[str, List[str]]
    total_results: int
    filtered_results: int
    degraded_entities: Tuple[DegradedEntity, ...] = ()


# =============================================================================
# Suggestions
# =============================================================================


@dataclass(frozen=True)
class SpellingSuggestion:
    original_query: str
    suggested_query: str
    confidence: float
    expected_result_count: int
    distance: int


@dataclass(frozen=True)
class DidYouMeanResponse:
    has_alternative: bool
    suggestion: Optional[SpellingSuggestion] = None
    alternatives: List[SpellingSuggestion] = field(default_factory=list)


@dataclass(frozen=True)
class Suggestion:
    """An autocomplete suggestion."""
    id: str
    title: str
    type: str  # asset, creator, project, license
    subtitle: Optional[str] = None
    thumbnail_url: Optional[str] = None


# =============================================================================
# Related content
# =============================================================================


class RelationshipType(str, Enum):
    SIMILAR_CONTENT = "similar_content"
    SAME_CATEGORY = "same_category"
    SAME_CREATOR = "same_creator"
    SAME_PROJECT = "same_project"


@dataclass(frozen=True)
class RelatedContent:
    """A record related to a source record by one content rule."""
    id: str
    entity_type: EntityKind
    title: str
    description: Optional[str]
    relevance_score: float
    relationship_type: RelationshipType
    relationship_reason: str
    metadata: EntityMetadata
    created_at: datetime
    thumbnail_url: Optional[str] = None


# =============================================================================
# Analytics
# =============================================================================


@dataclass(frozen=True)
class SearchEvent:
    query: str
    entities: Tuple[str, ...]
    filters: Dict[str, Any]
    results_count: int
    execution_time_ms: float
    user_id: Optional[str] = None
    session_id: Optional[str] = None


@dataclass(frozen=True)
class ClickEvent:
    result_id: str
    query: str
    position: int
    entity_type: Optional[str] = None
    user_id: Optional[str] = None
