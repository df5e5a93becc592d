"""
Search analytics sinks.

The engine reports every executed search and every result click to a sink.
Recording happens off the request path; a sink failure is logged by the
engine and never reaches the caller.
"""

import logging
from typing import Callable, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from catalog_search.core.models import SearchAnalyticsEvent
from catalog_search.search.types import ClickEvent, SearchEvent

logger = logging.getLogger(__name__)


class AnalyticsSink(Protocol):
    def record_search(self, event: SearchEvent) -> None:
        ...

    def record_click(self, event: ClickEvent) -> None:
        ...


class NullAnalyticsSink:
    """Discards everything."""

    def record_search(self, event: SearchEvent) -> None:
        pass

    def record_click(self, event: ClickEvent) -> None:
        pass


class SqlAnalyticsSink:
    """
    Persists events to search_analytics_events.

    Both methods are blocking and open their own session; the engine calls
    them from the default executor.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record_search(self, event: SearchEvent) -> None:
        session = self.session_factory()
        try:
            session.add(SearchAnalyticsEvent(
                query=event.query,
                entities=list(event.entities),
                filters=event.filters or None,
                results_count=event.results_count,
                execution_time_ms=event.execution_time_ms,
                user_id=event.user_id,
                session_id=event.session_id,
            ))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def record_click(self, event: ClickEvent) -> None:
        """
        Attach the click to the most recent search event for the same query
        (and user, when known). Clicks with no matching search are dropped.
        """
        session = self.session_factory()
        try:
            stmt = select(SearchAnalyticsEvent).where(SearchAnalyticsEvent.query == event.query)
            if event.user_id:
                stmt = stmt.where(SearchAnalyticsEvent.user_id == event.user_id)
            stmt = stmt.order_by(SearchAnalyticsEvent.created_at.desc()).limit(1)

            search_event = session.scalars(stmt).first()
            if search_event is None:
                logger.info(f"No search event for click on {event.result_id} (query={event.query!r}); dropped")
                return

            search_event.clicked_result_id = event.result_id
            search_event.clicked_result_position = event.position
            search_event.clicked_result_entity_type = event.entity_type
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
