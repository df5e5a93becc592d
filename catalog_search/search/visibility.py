"""
Per-user visibility constraints.

The search core never decides who may see what. A VisibilityProvider
resolves a user into a VisibilityScope, which hands each adapter a boolean
SQL predicate (or None for "no restriction") to AND into its query.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Protocol

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from catalog_search.core.models import IpAsset, IpOwnership, License, Project, User, UserRole
from catalog_search.search.types import EntityKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisibilityScope:
    """Resolved predicates per entity kind. Missing kinds are unrestricted."""
    predicates: Dict[EntityKind, ColumnElement] = field(default_factory=dict)

    def clause_for(self, kind: EntityKind) -> Optional[ColumnElement]:
        return self.predicates.get(kind)


UNRESTRICTED = VisibilityScope()


class VisibilityProvider(Protocol):
    def resolve(self, session: Session, user_id: Optional[str]) -> VisibilityScope:
        ...


class UnrestrictedVisibility:
    """Provider that applies no constraint (internal tools, tests)."""

    def resolve(self, session: Session, user_id: Optional[str]) -> VisibilityScope:
        return UNRESTRICTED


class RoleBasedVisibility:
    """
    Visibility derived from the user's role.

    - CREATOR: assets they actively own; licenses on those assets
    - BRAND: assets in their projects or under an active, unexpired license
      they hold; their own projects and licenses
    - ADMIN, VIEWER, unknown users: unrestricted
    Creators are public profiles and are never restricted.
    """

    def resolve(self, session: Session, user_id: Optional[str]) -> VisibilityScope:
        if not user_id:
            return UNRESTRICTED

        user = session.get(User, user_id)
        if user is None:
            logger.debug(f"Visibility: unknown user {user_id}, no constraint applied")
            return UNRESTRICTED

        if user.role == UserRole.CREATOR and user.creator is not None:
            return self._creator_scope(user.creator.id)
        if user.role == UserRole.BRAND and user.brand is not None:
            return self._brand_scope(user.brand.id)
        return UNRESTRICTED

    @staticmethod
    def _active_ownership(creator_id: str) -> ColumnElement:
        return IpAsset.ownerships.any(
            and_(IpOwnership.creator_id == creator_id, IpOwnership.end_date.is_(None))
        )

    def _creator_scope(self, creator_id: str) -> VisibilityScope:
        owned = self._active_ownership(creator_id)
        return VisibilityScope(predicates={
            EntityKind.ASSETS: owned,
            EntityKind.LICENSES: License.ip_asset.has(owned),
        })

    def _brand_scope(self, brand_id: str) -> VisibilityScope:
        brand_projects = select(Project.id).where(
            Project.brand_id == brand_id, Project.deleted_at.is_(None)
        )
        licensed = IpAsset.licenses.any(
            and_(
                License.brand_id == brand_id,
                License.status == "ACTIVE",
                License.end_date >= datetime.utcnow(),
            )
        )
        return VisibilityScope(predicates={
            EntityKind.ASSETS: or_(IpAsset.project_id.in_(brand_projects), licensed),
            EntityKind.PROJECTS: Project.brand_id == brand_id,
            EntityKind.LICENSES: License.brand_id == brand_id,
        })
