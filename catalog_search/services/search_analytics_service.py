"""
Search Analytics Service.

Reports over recorded search events: volume, zero-result rate,
click-through, latency percentiles and trending queries.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from catalog_search.core.models import SearchAnalyticsEvent

TOP_QUERIES_LIMIT = 20
SLOWEST_QUERIES_LIMIT = 10
TRENDING_MIN_COUNT = 3


class SearchAnalyticsService:
    """Service for computing search analytics."""

    def __init__(self, db: Session):
        self.db = db

    def _events_between(self, start_date: datetime, end_date: datetime):
        return self.db.query(SearchAnalyticsEvent).filter(
            SearchAnalyticsEvent.created_at >= start_date,
            SearchAnalyticsEvent.created_at <= end_date,
        )

    def get_search_analytics(self, start_date: datetime, end_date: datetime) -> Dict[str, Any]:
        """
        Aggregate search behaviour for a date window.

        Returns totals, averages, zero-result and click-through rates, top
        queries, per-entity search counts and the most common zero-result
        queries.
        """
        events = (
            self._events_between(start_date, end_date)
            .order_by(SearchAnalyticsEvent.created_at.desc())
            .all()
        )
        if not events:
            return self._empty_analytics()

        total = len(events)
        zero_results = [e for e in events if e.results_count == 0]
        clicked = [e for e in events if e.clicked_result_id is not None]

        query_counts: Counter = Counter()
        query_results: Dict[str, int] = {}
        entity_counts: Counter = Counter()
        for e in events:
            query_counts[e.query] += 1
            query_results[e.query] = query_results.get(e.query, 0) + e.results_count
            for entity in e.entities or []:
                entity_counts[entity] += 1

        top_queries = [
            {
                "query": query,
                "count": count,
                "average_results_count": query_results[query] / count,
            }
            for query, count in query_counts.most_common(TOP_QUERIES_LIMIT)
        ]

        return {
            "total_searches": total,
            "average_execution_time_ms": sum(e.execution_time_ms for e in events) / total,
            "average_results_count": sum(e.results_count for e in events) / total,
            "zero_results_rate": len(zero_results) / total,
            "click_through_rate": len(clicked) / total,
            "top_queries": top_queries,
            "top_entities": [
                {"entity": entity, "search_count": count}
                for entity, count in entity_counts.most_common()
            ],
            "zero_result_queries": [
                {"query": query, "count": count}
                for query, count in Counter(e.query for e in zero_results).most_common(TOP_QUERIES_LIMIT)
            ],
        }

    def get_zero_result_queries(
        self, start_date: datetime, end_date: datetime, limit: int = 20
    ) -> List[Dict[str, Any]]:
        """Most frequent queries that returned nothing."""
        rows = (
            self.db.query(SearchAnalyticsEvent.query, func.count(SearchAnalyticsEvent.id).label("count"))
            .filter(
                SearchAnalyticsEvent.results_count == 0,
                SearchAnalyticsEvent.created_at >= start_date,
                SearchAnalyticsEvent.created_at <= end_date,
            )
            .group_by(SearchAnalyticsEvent.query)
            .order_by(func.count(SearchAnalyticsEvent.id).desc(), SearchAnalyticsEvent.query)
            .limit(limit)
            .all()
        )
        return [{"query": r.query, "count": r.count} for r in rows]

    def get_performance_metrics(self, start_date: datetime, end_date: datetime) -> Dict[str, Any]:
        """
        Execution-time distribution for a date window.

        Percentiles use the nearest-rank index floor(n * p) over the sorted
        execution times.
        """
        events = (
            self._events_between(start_date, end_date)
            .order_by(SearchAnalyticsEvent.execution_time_ms.asc())
            .all()
        )
        if not events:
            return {
                "average_execution_time": 0.0,
                "p50_execution_time": 0.0,
                "p95_execution_time": 0.0,
                "p99_execution_time": 0.0,
                "slowest_queries": [],
            }

        times = [e.execution_time_ms for e in events]

        def percentile(p: float) -> float:
            index = min(int(len(times) * p), len(times) - 1)
            return times[index]

        return {
            "average_execution_time": sum(times) / len(times),
            "p50_execution_time": percentile(0.5),
            "p95_execution_time": percentile(0.95),
            "p99_execution_time": percentile(0.99),
            "slowest_queries": [
                {"query": e.query, "execution_time_ms": e.execution_time_ms}
                for e in reversed(events[-SLOWEST_QUERIES_LIMIT:])
            ],
        }

    def get_trending_searches(
        self, hours: int = 24, limit: int = 10, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Queries searched at least 3 times in the last `hours`, ordered by
        growth (%) over the preceding window of the same length. Queries
        new in this window count as 100% growth.
        """
        now = now or datetime.utcnow()
        recent_start = now - timedelta(hours=hours)
        previous_start = recent_start - timedelta(hours=hours)

        recent = Counter(
            q for (q,) in self.db.query(SearchAnalyticsEvent.query).filter(
                SearchAnalyticsEvent.created_at >= recent_start,
                SearchAnalyticsEvent.created_at <= now,
            )
        )
        previous = Counter(
            q for (q,) in self.db.query(SearchAnalyticsEvent.query).filter(
                SearchAnalyticsEvent.created_at >= previous_start,
                SearchAnalyticsEvent.created_at < recent_start,
            )
        )

        trending = []
        for query, count in recent.items():
            if count < TRENDING_MIN_COUNT:
                continue
            before = previous.get(query, 0)
            growth = ((count - before) / before) * 100 if before > 0 else 100.0
            trending.append({"query": query, "count": count, "growth": growth})

        trending.sort(key=lambda t: (-t["growth"], -t["count"], t["query"]))
        return trending[:limit]

    def cleanup_old_events(self, days_to_keep: int = 90) -> int:
        """Delete events older than days_to_keep. Returns rows deleted."""
        cutoff = datetime.utcnow() - timedelta(days=days_to_keep)
        deleted = (
            self.db.query(SearchAnalyticsEvent)
            .filter(SearchAnalyticsEvent.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def get_recent_searches(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """A user's most recent distinct queries, newest first."""
        last_searched = func.max(SearchAnalyticsEvent.created_at).label("last_searched_at")
        rows = (
            self.db.query(SearchAnalyticsEvent.query, last_searched)
            .filter(SearchAnalyticsEvent.user_id == user_id)
            .group_by(SearchAnalyticsEvent.query)
            .order_by(last_searched.desc())
            .limit(limit)
            .all()
        )
        return [{"query": r.query, "searched_at": r.last_searched_at} for r in rows]

    def get_successful_queries(self, days: int = 30, limit: int = 1000) -> List[str]:
        """Distinct queries with at least one result in the last `days`."""
        cutoff = datetime.utcnow() - timedelta(days=days)
        rows = (
            self.db.query(SearchAnalyticsEvent.query)
            .filter(
                SearchAnalyticsEvent.results_count > 0,
                SearchAnalyticsEvent.created_at >= cutoff,
            )
            .distinct()
            .limit(limit)
            .all()
        )
        return [r.query for r in rows]

    def _empty_analytics(self) -> Dict[str, Any]:
        return {
            "total_searches": 0,
            "average_execution_time_ms": 0.0,
            "average_results_count": 0.0,
            "zero_results_rate": 0.0,
            "click_through_rate": 0.0,
            "top_queries": [],
            "top_entities": [],
            "zero_result_queries": [],
        }
