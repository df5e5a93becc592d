"""
Saved Search Service.

Per-user named searches. A saved search owned by another user is
indistinguishable from a missing one.
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from catalog_search.core.errors import SavedSearchNotFoundError
from catalog_search.core.models import SavedSearch
from catalog_search.search.types import (
    EntityKind,
    Pagination,
    SearchFilters,
    SearchQuery,
)

logger = logging.getLogger(__name__)


class SavedSearchService:
    """CRUD for saved searches, scoped to the owning user."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        name: str,
        query: str,
        entities: Sequence[EntityKind] = (),
        filters: Optional[SearchFilters] = None,
    ) -> SavedSearch:
        saved = SavedSearch(
            user_id=user_id,
            name=name,
            search_query=query,
            entities=[EntityKind(e).value for e in entities],
            filters=(filters or SearchFilters()).to_dict(),
        )
        self.db.add(saved)
        self.db.commit()
        self.db.refresh(saved)
        logger.info(f"Saved search {saved.id} created for user {user_id}")
        return saved

    def list_for_user(self, user_id: str) -> List[SavedSearch]:
        """A user's saved searches, newest first."""
        return (
            self.db.query(SavedSearch)
            .filter(SavedSearch.user_id == user_id)
            .order_by(SavedSearch.created_at.desc(), SavedSearch.id)
            .all()
        )

    def get(self, user_id: str, saved_search_id: str) -> SavedSearch:
        saved = self.db.get(SavedSearch, saved_search_id)
        if saved is None or saved.user_id != user_id:
            raise SavedSearchNotFoundError(saved_search_id)
        return saved

    def update(
        self,
        user_id: str,
        saved_search_id: str,
        name: Optional[str] = None,
        query: Optional[str] = None,
        entities: Optional[Sequence[EntityKind]] = None,
        filters: Optional[SearchFilters] = None,
    ) -> SavedSearch:
        """Update only the fields that were given."""
        saved = self.get(user_id, saved_search_id)
        if name:
            saved.name = name
        if query:
            saved.search_query = query
        if entities is not None:
            saved.entities = [EntityKind(e).value for e in entities]
        if filters is not None:
            saved.filters = filters.to_dict()
        self.db.commit()
        self.db.refresh(saved)
        return saved

    def delete(self, user_id: str, saved_search_id: str) -> None:
        saved = self.get(user_id, saved_search_id)
        self.db.delete(saved)
        self.db.commit()
        logger.info(f"Saved search {saved_search_id} deleted")

    @staticmethod
    def to_search_query(saved: SavedSearch, page: int = 1, limit: Optional[int] = None) -> SearchQuery:
        """The stored parameters as an executable query."""
        return SearchQuery(
            text=saved.search_query,
            entities=tuple(EntityKind(e) for e in saved.entities or []),
            filters=SearchFilters.from_dict(saved.filters),
            pagination=Pagination(page=page, limit=limit),
        )
