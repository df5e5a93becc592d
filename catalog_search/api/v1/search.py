"""
Catalog Search API.

Unified search across IP assets, creators, projects and licenses with
faceted filtering, autocomplete, "did you mean" suggestions, related
content, saved searches and search analytics.

The caller's identity arrives in the X-User-Id header; authentication
happens upstream.
"""

import logging
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from catalog_search.core.database import get_db
from catalog_search.core.errors import SavedSearchNotFoundError, SearchError
from catalog_search.core.models import SavedSearch
from catalog_search.search.engine import SearchEngine, get_search_engine
from catalog_search.search.types import (
    DidYouMeanResponse,
    EnhancedSearchFacets,
    EntityKind,
    Pagination,
    RelatedContent,
    RelationshipType,
    SearchFilters,
    SearchQuery,
    SearchResponse,
    SearchResult,
    SortBy,
    SortOrder,
    SpellingSuggestion,
)
from catalog_search.services.saved_search_service import SavedSearchService
from catalog_search.services.search_analytics_service import SearchAnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["Search"])

DEFAULT_ANALYTICS_WINDOW_DAYS = 30


# =============================================================================
# Request/Response Models
# =============================================================================


class ScoreBreakdownModel(BaseModel):
    textual_relevance: float
    recency_score: float
    popularity_score: float
    quality_score: float
    final_score: float


class HighlightsModel(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class SearchResultModel(BaseModel):
    """A single search result."""
    id: str = Field(..., description="Entity ID")
    entity_type: EntityKind = Field(..., description="assets, creators, projects or licenses")
    title: str
    description: Optional[str] = None
    relevance_score: float = Field(..., description="Composite score (0-1)")
    score_breakdown: ScoreBreakdownModel
    highlights: HighlightsModel
    metadata: Dict[str, Any] = Field(..., description="Kind-specific fields, tagged by 'kind'")
    created_at: datetime
    updated_at: datetime


class PaginationModel(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class DateRangesModel(BaseModel):
    last_7_days: int = 0
    last_30_days: int = 0
    last_90_days: int = 0
    older: int = 0


class SearchFacetsModel(BaseModel):
    """Facet counts over all matching results (before pagination)."""
    entity_counts: Dict[str, int]
    asset_types: Dict[str, int] = Field(default_factory=dict)
    project_types: Dict[str, int] = Field(default_factory=dict)
    license_types: Dict[str, int] = Field(default_factory=dict)
    statuses: Dict[str, int] = Field(default_factory=dict)
    verification_status: Dict[str, int] = Field(default_factory=dict)
    date_ranges: DateRangesModel


class DegradedEntityModel(BaseModel):
    entity: EntityKind
    reason: str
    retryable: bool = False


class SearchResponseModel(BaseModel):
    """Complete search response."""
    results: List[SearchResultModel]
    pagination: PaginationModel
    facets: SearchFacetsModel
    query: str
    execution_time_ms: float
    degraded_entities: List[DegradedEntityModel] = Field(
        default_factory=list, description="Entity kinds whose results are missing"
    )


class SuggestionModel(BaseModel):
    id: str
    title: str
    type: str = Field(..., description="asset, creator, project or license")
    subtitle: Optional[str] = None
    thumbnail_url: Optional[str] = None


class SuggestResponse(BaseModel):
    suggestions: List[SuggestionModel]
    prefix: str


class SpellingSuggestionModel(BaseModel):
    original_query: str
    suggested_query: str
    confidence: float
    expected_result_count: int
    distance: int


class DidYouMeanModel(BaseModel):
    has_alternative: bool
    suggestion: Optional[SpellingSuggestionModel] = None
    alternatives: List[SpellingSuggestionModel] = Field(default_factory=list)


class FacetOptionModel(BaseModel):
    value: str
    label: str
    count: int
    is_selected: bool = False


class FacetGroupModel(BaseModel):
    field: str
    label: str
    entity: EntityKind
    options: List[FacetOptionModel]
    type: str = "checkbox"


class EnhancedFacetsModel(BaseModel):
    groups: List[FacetGroupModel]
    applied_filters: Dict[str, List[str]]
    total_results: int = Field(..., description="Results ignoring all filters")
    filtered_results: int = Field(..., description="Results under the applied filters")
    degraded_entities: List[DegradedEntityModel] = Field(default_factory=list)


class RelatedContentModel(BaseModel):
    """A record related to the requested one."""
    id: str
    entity_type: EntityKind
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    relevance_score: float
    relationship_type: RelationshipType
    relationship_reason: str
    metadata: Dict[str, Any] = Field(..., description="Kind-specific fields, tagged by 'kind'")
    created_at: datetime


class ClickRequest(BaseModel):
    result_id: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1)
    position: int = Field(..., ge=0)
    entity_type: Optional[EntityKind] = None


class SuccessResponse(BaseModel):
    success: bool = True


class RecentSearchModel(BaseModel):
    query: str
    searched_at: datetime


class CorpusRefreshResponse(BaseModel):
    unique_words: int
    built_at: Optional[datetime]


class SavedSearchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    query: str = Field(..., min_length=1, max_length=500)
    entities: List[EntityKind] = Field(default_factory=list)
    filters: Dict[str, Any] = Field(default_factory=dict)


class SavedSearchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    query: Optional[str] = Field(None, min_length=1, max_length=500)
    entities: Optional[List[EntityKind]] = None
    filters: Optional[Dict[str, Any]] = None


class SavedSearchModel(BaseModel):
    id: str
    name: str
    query: str
    entities: List[str]
    filters: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


class TopQueryModel(BaseModel):
    query: str
    count: int
    average_results_count: float


class TopEntityModel(BaseModel):
    entity: str
    search_count: int


class QueryCountModel(BaseModel):
    query: str
    count: int


class SearchAnalyticsModel(BaseModel):
    total_searches: int
    average_execution_time_ms: float
    average_results_count: float
    zero_results_rate: float
    click_through_rate: float
    top_queries: List[TopQueryModel]
    top_entities: List[TopEntityModel]
    zero_result_queries: List[QueryCountModel]


class SlowQueryModel(BaseModel):
    query: str
    execution_time_ms: float


class PerformanceMetricsModel(BaseModel):
    average_execution_time: float
    p50_execution_time: float
    p95_execution_time: float
    p99_execution_time: float
    slowest_queries: List[SlowQueryModel]


class TrendingQueryModel(BaseModel):
    query: str
    count: int
    growth: float = Field(..., description="Growth (%) over the previous window")


# =============================================================================
# Dependencies and converters
# =============================================================================


def get_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id or None


def require_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id


def search_filters(
    asset_type: Optional[List[str]] = Query(None, description="Asset types (any of)"),
    asset_status: Optional[List[str]] = Query(None, description="Asset statuses (any of)"),
    project_id: Optional[str] = Query(None),
    creator_id: Optional[str] = Query(None, description="Assets actively owned by this creator"),
    tags: Optional[List[str]] = Query(None, description="Asset tags (all required)"),
    created_by: Optional[str] = Query(None),
    verification_status: Optional[List[str]] = Query(None),
    specialties: Optional[List[str]] = Query(None, description="Creator specialties (all required)"),
    availability_status: Optional[str] = Query(None),
    project_type: Optional[List[str]] = Query(None),
    project_status: Optional[List[str]] = Query(None),
    brand_id: Optional[str] = Query(None),
    license_type: Optional[List[str]] = Query(None),
    license_status: Optional[List[str]] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
) -> SearchFilters:
    return SearchFilters(
        asset_type=tuple(asset_type or ()),
        asset_status=tuple(asset_status or ()),
        project_id=project_id,
        creator_id=creator_id,
        tags=tuple(tags or ()),
        created_by=created_by,
        verification_status=tuple(verification_status or ()),
        specialties=tuple(specialties or ()),
        availability_status=availability_status,
        project_type=tuple(project_type or ()),
        project_status=tuple(project_status or ()),
        brand_id=brand_id,
        license_type=tuple(license_type or ()),
        license_status=tuple(license_status or ()),
        date_from=date_from,
        date_to=date_to,
    )


def _filters_from_body(data: Dict[str, Any]) -> SearchFilters:
    try:
        return SearchFilters.from_dict(data)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid filters: {e}")


def _analytics_window(start_date: Optional[datetime], end_date: Optional[datetime]):
    end = end_date or datetime.utcnow()
    start = start_date or end - timedelta(days=DEFAULT_ANALYTICS_WINDOW_DAYS)
    if start > end:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")
    return start, end


def _result_model(result: SearchResult) -> SearchResultModel:
    metadata = asdict(result.metadata)
    metadata["kind"] = result.metadata.kind
    return SearchResultModel(
        id=result.id,
        entity_type=result.entity_type,
        title=result.title,
        description=result.description,
        relevance_score=result.relevance_score,
        score_breakdown=ScoreBreakdownModel(**asdict(result.score_breakdown)),
        highlights=HighlightsModel(**asdict(result.highlights)),
        metadata=metadata,
        created_at=result.created_at,
        updated_at=result.updated_at,
    )


def _response_model(response: SearchResponse) -> SearchResponseModel:
    return SearchResponseModel(
        results=[_result_model(r) for r in response.results],
        pagination=PaginationModel(**asdict(response.pagination)),
        facets=SearchFacetsModel(**asdict(response.facets)),
        query=response.query,
        execution_time_ms=response.execution_time_ms,
        degraded_entities=[DegradedEntityModel(**asdict(d)) for d in response.degraded_entities],
    )


def _related_model(item: RelatedContent) -> RelatedContentModel:
    metadata = asdict(item.metadata)
    metadata["kind"] = item.metadata.kind
    return RelatedContentModel(
        id=item.id,
        entity_type=item.entity_type,
        title=item.title,
        description=item.description,
        thumbnail_url=item.thumbnail_url,
        relevance_score=item.relevance_score,
        relationship_type=item.relationship_type,
        relationship_reason=item.relationship_reason,
        metadata=metadata,
        created_at=item.created_at,
    )


def _spelling_model(suggestion: SpellingSuggestion) -> SpellingSuggestionModel:
    return SpellingSuggestionModel(**asdict(suggestion))


def _did_you_mean_model(response: DidYouMeanResponse) -> DidYouMeanModel:
    return DidYouMeanModel(
        has_alternative=response.has_alternative,
        suggestion=_spelling_model(response.suggestion) if response.suggestion else None,
        alternatives=[_spelling_model(s) for s in response.alternatives],
    )


def _facets_model(facets: EnhancedSearchFacets) -> EnhancedFacetsModel:
    return EnhancedFacetsModel(
        groups=[FacetGroupModel(**asdict(g)) for g in facets.groups],
        applied_filters=facets.applied_filters,
        total_results=facets.total_results,
        filtered_results=facets.filtered_results,
        degraded_entities=[DegradedEntityModel(**asdict(d)) for d in facets.degraded_entities],
    )


def _saved_model(saved: SavedSearch) -> SavedSearchModel:
    return SavedSearchModel(
        id=saved.id,
        name=saved.name,
        query=saved.search_query,
        entities=list(saved.entities or []),
        filters=dict(saved.filters or {}),
        created_at=saved.created_at,
        updated_at=saved.updated_at,
    )


# =============================================================================
# Search Endpoints
# =============================================================================


@router.get("", response_model=SearchResponseModel)
async def search(
    q: str = Query(..., description="Search query"),
    entities: Optional[List[EntityKind]] = Query(None, description="Entity kinds to search (default: all)"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: Optional[int] = Query(None, ge=1, description="Results per page"),
    sort_by: SortBy = Query(SortBy.RELEVANCE),
    sort_order: SortOrder = Query(SortOrder.DESC),
    filters: SearchFilters = Depends(search_filters),
    x_session_id: Optional[str] = Header(None),
    user_id: Optional[str] = Depends(get_user_id),
    engine: SearchEngine = Depends(get_search_engine),
):
    """
    Search across IP assets, creators, projects and licenses.

    **Examples:**
    - `/search?q=logo` - everything matching "logo"
    - `/search?q=logo&entities=assets&asset_type=IMAGE` - image assets only
    - `/search?q=studio&entities=creators&sort_by=average_rating` - creators by rating

    Queries shorter than the minimum length return an empty response.
    Entity kinds that failed are listed in `degraded_entities`.
    """
    try:
        query = SearchQuery(
            text=q,
            entities=tuple(entities or ()),
            filters=filters,
            pagination=Pagination(page=page, limit=limit),
            sort_by=sort_by,
            sort_order=sort_order,
        )
        response = await engine.search(query, user_id=user_id, session_id=x_session_id)
        return _response_model(response)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Search error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Search failed")


@router.get("/suggest", response_model=SuggestResponse)
async def suggest(
    q: str = Query(..., description="Prefix to complete"),
    entities: Optional[List[EntityKind]] = Query(None),
    limit: int = Query(10, ge=1, le=50, description="Max suggestions"),
    user_id: Optional[str] = Depends(get_user_id),
    engine: SearchEngine = Depends(get_search_engine),
):
    """Autocomplete: exact matches first, then prefix matches, then the rest."""
    try:
        suggestions = await engine.get_suggestions(q, entities=entities, limit=limit, user_id=user_id)
        return SuggestResponse(
            suggestions=[SuggestionModel(**asdict(s)) for s in suggestions],
            prefix=q,
        )
    except Exception as e:
        logger.error(f"Autocomplete error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Autocomplete failed")


@router.get("/spelling", response_model=DidYouMeanModel)
async def spelling(
    q: str = Query(..., description="Query as searched"),
    result_count: int = Query(0, ge=0, description="Results the query returned"),
    engine: SearchEngine = Depends(get_search_engine),
):
    """Spelling alternative for a query that found few results."""
    try:
        response = await engine.get_spelling_suggestion(q, result_count)
        return _did_you_mean_model(response)
    except Exception as e:
        logger.error(f"Spelling suggestion error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Spelling suggestion failed")


@router.get("/facets", response_model=EnhancedFacetsModel)
async def facets(
    q: Optional[str] = Query(None, description="Search query (optional)"),
    entities: Optional[List[EntityKind]] = Query(None),
    filters: SearchFilters = Depends(search_filters),
    user_id: Optional[str] = Depends(get_user_id),
    engine: SearchEngine = Depends(get_search_engine),
):
    """Facet groups with per-value counts and "N of M" totals."""
    try:
        result = await engine.get_enhanced_facets(q, entities=entities, filters=filters, user_id=user_id)
        return _facets_model(result)
    except Exception as e:
        logger.error(f"Facets error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Facet computation failed")


@router.get("/related/{kind}/{entity_id}", response_model=List[RelatedContentModel])
async def related_content(
    kind: EntityKind,
    entity_id: str,
    limit: int = Query(10, ge=1, le=50),
    include_types: Optional[List[RelationshipType]] = Query(None, description="Relationships to use (default: all)"),
    exclude_ids: Optional[List[str]] = Query(None, description="IDs never returned"),
    min_relevance_score: float = Query(0.3, ge=0.0, le=1.0),
    user_id: Optional[str] = Depends(get_user_id),
    engine: SearchEngine = Depends(get_search_engine),
):
    """
    Records related to one asset, creator, project or license.

    **Examples:**
    - `/search/related/assets/{id}` - same type, same project and same creator
    - `/search/related/projects/{id}?include_types=same_category` - same brand only

    An unknown or invisible record yields an empty list.
    """
    try:
        related = await engine.get_related_content(
            kind,
            entity_id,
            user_id=user_id,
            limit=limit,
            include_types=include_types,
            exclude_ids=exclude_ids or (),
            min_relevance_score=min_relevance_score,
        )
    except SearchError as e:
        logger.error(f"Related content error: {e.to_dict()}")
        raise HTTPException(status_code=503 if e.retryable else 500, detail=e.to_dict())
    return [_related_model(item) for item in related]


@router.post("/click", response_model=SuccessResponse)
async def track_click(
    request: ClickRequest,
    user_id: Optional[str] = Depends(get_user_id),
    engine: SearchEngine = Depends(get_search_engine),
):
    """Record a result click. Always succeeds; recording is best-effort."""
    await engine.track_click(
        result_id=request.result_id,
        query=request.query,
        position=request.position,
        entity_type=request.entity_type.value if request.entity_type else None,
        user_id=user_id,
    )
    return SuccessResponse()


@router.get("/recent", response_model=List[RecentSearchModel])
async def recent_searches(
    limit: int = Query(10, ge=1, le=50),
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    """The caller's most recent distinct searches."""
    rows = SearchAnalyticsService(db).get_recent_searches(user_id, limit=limit)
    return [RecentSearchModel(**row) for row in rows]


@router.post("/corpus/refresh", response_model=CorpusRefreshResponse)
async def refresh_corpus(engine: SearchEngine = Depends(get_search_engine)):
    """Rebuild the spelling corpus now. A failed rebuild keeps the previous corpus."""
    corpus = await engine.refresh_corpus()
    return CorpusRefreshResponse(unique_words=len(corpus), built_at=corpus.built_at)


# =============================================================================
# Saved Searches
# =============================================================================


@router.post("/saved", response_model=SavedSearchModel, status_code=status.HTTP_201_CREATED)
async def create_saved_search(
    request: SavedSearchCreate,
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    saved = SavedSearchService(db).create(
        user_id=user_id,
        name=request.name,
        query=request.query,
        entities=request.entities,
        filters=_filters_from_body(request.filters),
    )
    return _saved_model(saved)


@router.get("/saved", response_model=List[SavedSearchModel])
async def list_saved_searches(
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    return [_saved_model(s) for s in SavedSearchService(db).list_for_user(user_id)]


@router.patch("/saved/{saved_search_id}", response_model=SavedSearchModel)
async def update_saved_search(
    saved_search_id: str,
    request: SavedSearchUpdate,
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    filters = _filters_from_body(request.filters) if request.filters is not None else None
    try:
        saved = SavedSearchService(db).update(
            user_id,
            saved_search_id,
            name=request.name,
            query=request.query,
            entities=request.entities,
            filters=filters,
        )
    except SavedSearchNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())
    return _saved_model(saved)


@router.delete("/saved/{saved_search_id}", response_model=SuccessResponse)
async def delete_saved_search(
    saved_search_id: str,
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    try:
        SavedSearchService(db).delete(user_id, saved_search_id)
    except SavedSearchNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())
    return SuccessResponse()


@router.get("/saved/{saved_search_id}/execute", response_model=SearchResponseModel)
async def execute_saved_search(
    saved_search_id: str,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
    engine: SearchEngine = Depends(get_search_engine),
):
    """Run a saved search with its stored query, entity kinds and filters."""
    service = SavedSearchService(db)
    try:
        saved = service.get(user_id, saved_search_id)
    except SavedSearchNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())

    try:
        response = await engine.search(service.to_search_query(saved, page=page, limit=limit), user_id=user_id)
        return _response_model(response)
    except Exception as e:
        logger.error(f"Saved search execution error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Search failed")


# =============================================================================
# Analytics
# =============================================================================


@router.get("/analytics", response_model=SearchAnalyticsModel)
async def search_analytics(
    start_date: Optional[datetime] = Query(None, description="Window start (default: 30 days ago)"),
    end_date: Optional[datetime] = Query(None, description="Window end (default: now)"),
    db: Session = Depends(get_db),
):
    start, end = _analytics_window(start_date, end_date)
    return SearchAnalyticsModel(**SearchAnalyticsService(db).get_search_analytics(start, end))


@router.get("/analytics/zero-results", response_model=List[QueryCountModel])
async def zero_result_queries(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    start, end = _analytics_window(start_date, end_date)
    rows = SearchAnalyticsService(db).get_zero_result_queries(start, end, limit=limit)
    return [QueryCountModel(**row) for row in rows]


@router.get("/analytics/performance", response_model=PerformanceMetricsModel)
async def performance_metrics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
):
    start, end = _analytics_window(start_date, end_date)
    return PerformanceMetricsModel(**SearchAnalyticsService(db).get_performance_metrics(start, end))


@router.get("/analytics/trending", response_model=List[TrendingQueryModel])
async def trending_searches(
    hours: int = Query(24, ge=1, le=24 * 30),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows = SearchAnalyticsService(db).get_trending_searches(hours=hours, limit=limit)
    return [TrendingQueryModel(**row) for row in rows]
