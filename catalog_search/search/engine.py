"""
Catalog search orchestrator.

Unified search across IP assets, creators, projects and licenses:
parse -> concurrent per-kind adapter queries -> score -> rank/paginate ->
facets. Adapters use blocking SQLAlchemy sessions, so every per-kind task
gets its own session on the default executor and its own deadline. A kind
that fails or times out is reported in degraded_entities instead of
aborting the search.
"""

import asyncio
import logging
import math
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session

from catalog_search.core.config import get_settings
from catalog_search.core.database import get_session_factory
from catalog_search.core.errors import EntitySearchError, SearchTimeoutError
from catalog_search.search.adapters import EntitySearchAdapter, build_adapters
from catalog_search.search.analytics import AnalyticsSink, SqlAnalyticsSink
from catalog_search.search.config import DEFAULT_SEARCH_CONFIG, SearchConfig
from catalog_search.search.facets import FacetAggregator
from catalog_search.search.query_parser import QueryParser
from catalog_search.search.ranking import empty_pagination, paginate, rank_results, resolve_page_size
from catalog_search.search.related import DEFAULT_MIN_RELEVANCE_SCORE, DEFAULT_RELATED_LIMIT, RelatedContentFinder
from catalog_search.search.scoring import ScoringEngine
from catalog_search.search.spelling import Corpus, CorpusSource, CorpusStore, SpellCorrectionService
from catalog_search.search.types import (
    ALL_ENTITY_KINDS,
    ClickEvent,
    DegradedEntity,
    DidYouMeanResponse,
    EnhancedSearchFacets,
    EntityKind,
    RelatedContent,
    RelationshipType,
    SearchEvent,
    SearchFilters,
    SearchQuery,
    SearchResponse,
    SearchResult,
    Suggestion,
)
from catalog_search.search.visibility import RoleBasedVisibility, VisibilityProvider, VisibilityScope
from catalog_search.services.search_analytics_service import SearchAnalyticsService

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class SearchEngine:
    """
    Search across every catalog entity kind.

    Features:
    - Concurrent per-kind queries with failure isolation and deadlines
    - Composite relevance scoring (text, recency, popularity, quality)
    - Facet counts with every response and for filter UIs
    - Autocomplete suggestions
    - "Did you mean" spelling suggestions
    - Rule-based related content
    - Fire-and-forget analytics for searches and clicks
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        config: Optional[SearchConfig] = None,
        adapters: Optional[Dict[EntityKind, EntitySearchAdapter]] = None,
        visibility: Optional[VisibilityProvider] = None,
        analytics: Optional[AnalyticsSink] = None,
    ):
        self.session_factory = session_factory
        self.config = config or DEFAULT_SEARCH_CONFIG
        self.adapters = adapters if adapters is not None else build_adapters()
        self.visibility = visibility or RoleBasedVisibility()
        self.analytics = analytics if analytics is not None else SqlAnalyticsSink(session_factory)
        self.parser = QueryParser(self.config.parsing)
        self.facets = FacetAggregator()
        self.related = RelatedContentFinder(self.adapters)

        spelling = self.config.spelling
        self.corpus_store = CorpusStore(
            self._load_corpus,
            refresh_seconds=spelling.corpus_refresh_seconds,
            successful_query_weight=spelling.successful_query_weight,
        )
        self.spelling = SpellCorrectionService(
            self.corpus_store,
            self._estimate_result_count,
            config=spelling,
            estimate_timeout_seconds=self.config.estimate_timeout_seconds,
        )
        self._background_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        query: SearchQuery,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        config: Optional[SearchConfig] = None,
    ) -> SearchResponse:
        """
        Execute a search.

        Args:
            query: Text, entity kinds, filters, pagination and sort
            user_id: Caller identity for visibility and analytics
            session_id: Client session, recorded with analytics
            config: Per-call configuration (defaults to the engine's)

        Returns:
            SearchResponse; kinds that failed are listed in degraded_entities
        """
        start = time.perf_counter()
        config = config or self.config
        parser = self.parser if config is self.config else QueryParser(config.parsing)
        page_size = resolve_page_size(query.pagination.limit, config.limits)

        text = parser.parse(query.text)
        if text is None:
            return SearchResponse(
                results=[],
                pagination=empty_pagination(page_size),
                facets=self.facets.summarize([]),
                query=(query.text or "").strip(),
                execution_time_ms=0.0,
            )

        scope = await self._resolve_visibility(user_id)
        kinds = self._kinds(query.entity_kinds)
        scoring = ScoringEngine(config)
        now = datetime.utcnow()

        outcomes = await asyncio.gather(
            *(
                self._run_kind(
                    kind,
                    config.adapter_timeout_seconds,
                    self.adapters[kind].search,
                    text,
                    query.filters,
                    scope.clause_for(kind),
                    config.limits.max_results_per_entity,
                    scoring,
                    now,
                )
                for kind in kinds
            ),
            return_exceptions=True,
        )
        per_kind, degraded = self._collect(kinds, outcomes)

        merged: List[SearchResult] = [r for results in per_kind.values() for r in results]
        ranked = rank_results(merged, query.sort_by, query.sort_order)
        page, pagination = paginate(ranked, query.pagination.page, page_size)
        facets = self.facets.summarize(merged, now)
        execution_time_ms = (time.perf_counter() - start) * 1000

        self._record_in_background(
            self.analytics.record_search,
            SearchEvent(
                query=text,
                entities=tuple(kind.value for kind in kinds),
                filters=query.filters.to_dict(),
                results_count=len(merged),
                execution_time_ms=execution_time_ms,
                user_id=user_id,
                session_id=session_id,
            ),
        )

        return SearchResponse(
            results=page,
            pagination=pagination,
            facets=facets,
            query=text,
            execution_time_ms=execution_time_ms,
            degraded_entities=tuple(degraded),
        )

    # ------------------------------------------------------------------
    # Suggestions, spelling, facets
    # ------------------------------------------------------------------

    async def get_suggestions(
        self,
        prefix: str,
        entities: Optional[Sequence[EntityKind]] = None,
        limit: int = 10,
        user_id: Optional[str] = None,
    ) -> List[Suggestion]:
        """
        Autocomplete suggestions.

        Each kind contributes up to ceil(limit / kinds); the merged list is
        ordered exact match, then prefix match, then the rest.
        """
        text = self.parser.parse(prefix)
        if text is None or limit < 1:
            return []

        scope = await self._resolve_visibility(user_id)
        kinds = self._kinds(entities or ())
        if not kinds:
            return []
        per_kind_limit = math.ceil(limit / len(kinds))

        outcomes = await asyncio.gather(
            *(
                self._run_kind(
                    kind,
                    self.config.adapter_timeout_seconds,
                    self.adapters[kind].suggest,
                    text,
                    scope.clause_for(kind),
                    per_kind_limit,
                )
                for kind in kinds
            ),
            return_exceptions=True,
        )
        per_kind, _ = self._collect(kinds, outcomes)

        lowered = text.lower()

        def match_rank(suggestion: Suggestion) -> int:
            title = (suggestion.title or "").lower()
            if title == lowered:
                return 0
            if title.startswith(lowered):
                return 1
            return 2

        merged = [s for suggestions in per_kind.values() for s in suggestions]
        merged.sort(key=match_rank)
        return merged[:limit]

    async def get_spelling_suggestion(self, query: str, current_result_count: int) -> DidYouMeanResponse:
        text = self.parser.parse(query)
        if text is None:
            return DidYouMeanResponse(has_alternative=False)
        return await self.spelling.get_did_you_mean(text, current_result_count)

    async def get_enhanced_facets(
        self,
        query: Optional[str],
        entities: Optional[Sequence[EntityKind]] = None,
        filters: Optional[SearchFilters] = None,
        user_id: Optional[str] = None,
    ) -> EnhancedSearchFacets:
        """
        Facet groups per filterable field plus "N of M" totals.

        A missing or too-short query counts over all visible records.
        """
        text = self.parser.parse(query)
        filters = filters or SearchFilters()
        scope = await self._resolve_visibility(user_id)
        kinds = self._kinds(entities or ())

        outcomes = await asyncio.gather(
            *(
                self._run_kind(
                    kind,
                    self.config.adapter_timeout_seconds,
                    self._kind_facets,
                    self.adapters[kind],
                    text,
                    filters,
                    scope.clause_for(kind),
                )
                for kind in kinds
            ),
            return_exceptions=True,
        )
        per_kind, degraded = self._collect(kinds, outcomes)
        return self.facets.combine(list(per_kind.values()), filters, degraded)

    async def get_related_content(
        self,
        kind: EntityKind,
        entity_id: str,
        user_id: Optional[str] = None,
        limit: int = DEFAULT_RELATED_LIMIT,
        include_types: Optional[Sequence[RelationshipType]] = None,
        exclude_ids: Sequence[str] = (),
        min_relevance_score: float = DEFAULT_MIN_RELEVANCE_SCORE,
    ) -> List[RelatedContent]:
        """
        Records related to one catalog record by content rules.

        Raises:
            SearchTimeoutError: The lookup exceeded the adapter deadline
            EntitySearchError: The lookup failed
        """
        if kind not in self.adapters or limit < 1:
            return []
        scope = await self._resolve_visibility(user_id)
        return await self._run_kind(
            kind,
            self.config.adapter_timeout_seconds,
            self.related.find,
            kind,
            entity_id,
            scope.clause_for(kind),
            include_types,
            tuple(exclude_ids),
            min_relevance_score,
            limit,
        )

    def _kind_facets(self, session: Session, adapter: EntitySearchAdapter, text, filters, visibility):
        groups = self.facets.facet_groups(session, adapter, text, filters, visibility)
        unfiltered, filtered = self.facets.totals(session, adapter, text, filters, visibility)
        return groups, unfiltered, filtered

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    async def track_click(
        self,
        result_id: str,
        query: str,
        position: int,
        entity_type: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """
        Forward a result click to the analytics sink without waiting for it.

        The query is normalized the same way search() records it so the
        click can be matched to its search event.
        """
        self._record_in_background(
            self.analytics.record_click,
            ClickEvent(
                result_id=result_id,
                query=self.parser.parse(query) or query.strip(),
                position=position,
                entity_type=entity_type,
                user_id=user_id,
            ),
        )

    def _record_in_background(self, record: Callable[[Any], None], event: Any) -> None:
        task = asyncio.get_running_loop().create_task(self._record_safely(record, event))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _record_safely(self, record: Callable[[Any], None], event: Any) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, record, event)
        except Exception as e:
            logger.error(f"Failed to record search analytics: {e}", exc_info=True)

    async def wait_for_background_tasks(self) -> None:
        """Wait for pending analytics writes (shutdown, tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Spelling corpus
    # ------------------------------------------------------------------

    async def refresh_corpus(self) -> Corpus:
        return await self.corpus_store.refresh()

    def _load_corpus(self) -> CorpusSource:
        spelling = self.config.spelling
        sample_sizes = {
            EntityKind.ASSETS: spelling.asset_sample_size,
            EntityKind.CREATORS: spelling.creator_sample_size,
            EntityKind.PROJECTS: spelling.project_sample_size,
        }
        session = self.session_factory()
        try:
            texts: List[str] = []
            for kind, adapter in self.adapters.items():
                size = sample_sizes.get(kind, 0)
                if size > 0:
                    texts.extend(adapter.corpus_texts(session, size))

            queries = SearchAnalyticsService(session).get_successful_queries(
                days=spelling.query_history_days, limit=spelling.query_sample_size
            )
            return CorpusSource(texts=texts, successful_queries=queries)
        finally:
            session.close()

    async def _estimate_result_count(self, query: str) -> int:
        """Text-only count summed over every kind; failed kinds count as 0."""
        kinds = list(self.adapters)
        outcomes = await asyncio.gather(
            *(
                self._run_kind(kind, self.config.estimate_timeout_seconds, self.adapters[kind].count, query)
                for kind in kinds
            ),
            return_exceptions=True,
        )
        total = 0
        for kind, outcome in zip(kinds, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Count estimate for {kind.value} failed: {outcome}; treating as 0")
                continue
            total += outcome
        return total

    # ------------------------------------------------------------------
    # Execution helpers
    # ------------------------------------------------------------------

    def _kinds(self, requested: Iterable[EntityKind]) -> List[EntityKind]:
        requested = tuple(requested) or ALL_ENTITY_KINDS
        return [kind for kind in requested if kind in self.adapters]

    async def _resolve_visibility(self, user_id: Optional[str]) -> VisibilityScope:
        return await self._run_in_session(self.visibility.resolve, user_id)

    async def _run_in_session(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._call_with_session, fn, args)

    def _call_with_session(self, fn: Callable[..., Any], args: Tuple[Any, ...]) -> Any:
        session = self.session_factory()
        try:
            return fn(session, *args)
        finally:
            session.close()

    async def _run_kind(self, kind: EntityKind, timeout: float, fn: Callable[..., Any], *args: Any) -> Any:
        """Run one per-kind unit of work in its own session under a deadline."""
        try:
            return await asyncio.wait_for(self._run_in_session(fn, *args), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise SearchTimeoutError(kind.value, timeout) from e
        except Exception as e:
            raise EntitySearchError(kind.value, e) from e

    def _collect(
        self, kinds: Sequence[EntityKind], outcomes: Sequence[Any]
    ) -> Tuple[Dict[EntityKind, Any], List[DegradedEntity]]:
        """Split gathered outcomes into per-kind successes and degraded kinds."""
        successes: Dict[EntityKind, Any] = {}
        degraded: List[DegradedEntity] = []
        for kind, outcome in zip(kinds, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Search degraded for {kind.value}: {outcome}", exc_info=outcome)
                retryable = getattr(outcome, "retryable", False)
                degraded.append(DegradedEntity(entity=kind, reason=str(outcome), retryable=retryable))
            else:
                successes[kind] = outcome
        return successes, degraded


# Singleton engine for the API layer
_engine: Optional[SearchEngine] = None


def get_search_engine() -> SearchEngine:
    """Get the shared search engine, built from process settings."""
    global _engine
    if _engine is None:
        _engine = SearchEngine(
            session_factory=get_session_factory(),
            config=get_settings().build_search_config(),
        )
    return _engine


def reset_search_engine() -> None:
    global _engine
    _engine = None
