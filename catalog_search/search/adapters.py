"""
Per-entity search adapters.

One adapter per searchable kind. Each adapter knows the kind's searchable
text columns, its attribute filters and how to map a row into the common
SearchResult shape. Adapters work on a caller-supplied Session and never
decide visibility themselves: the predicate they receive is ANDed in.

Soft-deleted rows (deleted_at IS NOT NULL) are always excluded.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy.sql.elements import ColumnElement

from catalog_search.core.models import (
    AssetTag,
    Brand,
    Creator,
    CreatorSpecialty,
    IpAsset,
    IpOwnership,
    License,
    Project,
)
from catalog_search.search.scoring import (
    DEFAULT_QUALITY,
    NEUTRAL_POPULARITY,
    ScoringEngine,
    build_highlights,
    creator_popularity,
    license_quality,
    verification_quality,
)
from catalog_search.search.types import (
    AssetMetadata,
    CreatorAvailability,
    CreatorMetadata,
    EntityKind,
    EntityMetadata,
    LicenseMetadata,
    PerformanceMetrics,
    ProjectMetadata,
    SearchFilters,
    SearchResult,
    Suggestion,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FacetField:
    """A filterable column exposed as a facet group."""
    field: str  # SearchFilters attribute name
    label: str
    column: Any


class EntitySearchAdapter(ABC):
    """Base class: query building, counting, faceting and suggestions."""

    kind: EntityKind
    model: Any
    suggestion_type: str
    facet_fields: Tuple[FacetField, ...] = ()

    # ------------------------------------------------------------------
    # Kind-specific hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def text_predicate(self, query: str) -> ColumnElement:
        """OR across the kind's searchable text fields (case-insensitive)."""

    @abstractmethod
    def filter_predicates(self, filters: SearchFilters) -> List[ColumnElement]:
        """Attribute filters applicable to this kind (excluding dates)."""

    @abstractmethod
    def to_result(
        self, record: Any, query: str, scoring: ScoringEngine, now: datetime
    ) -> SearchResult:
        """Normalize a row into a scored SearchResult."""

    @abstractmethod
    def to_suggestion(self, record: Any) -> Suggestion:
        ...

    @abstractmethod
    def metadata(self, record: Any) -> EntityMetadata:
        """Kind-specific metadata for a row."""

    @abstractmethod
    def display(self, record: Any) -> Tuple[str, Optional[str]]:
        """(title, description) as shown in results."""

    def thumbnail_url(self, record: Any) -> Optional[str]:
        return None

    def load_options(self) -> list:
        return []

    def suggestion_predicate(self, prefix: str) -> ColumnElement:
        return self.text_predicate(prefix)

    def corpus_statement(self, sample_size: int):
        """Select (title, description) pairs for the spelling corpus, or None."""
        return None

    # ------------------------------------------------------------------
    # Query building
    # ------------------------------------------------------------------

    def conditions(
        self,
        query: Optional[str],
        filters: Optional[SearchFilters] = None,
        visibility: Optional[ColumnElement] = None,
    ) -> List[ColumnElement]:
        conditions = [self.model.deleted_at.is_(None)]
        if query:
            conditions.append(self.text_predicate(query))
        if filters is not None:
            conditions.extend(self.filter_predicates(filters))
            conditions.extend(self._date_predicates(filters))
        if visibility is not None:
            conditions.append(visibility)
        return conditions

    def _date_predicates(self, filters: SearchFilters) -> List[ColumnElement]:
        predicates = []
        if filters.date_from:
            predicates.append(self.model.created_at >= filters.date_from)
        if filters.date_to:
            predicates.append(self.model.created_at <= filters.date_to)
        return predicates

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def fetch(
        self,
        session: Session,
        query: str,
        filters: Optional[SearchFilters],
        visibility: Optional[ColumnElement],
        limit: int,
    ) -> List[Any]:
        """Matching rows, newest first, capped at limit."""
        stmt = (
            select(self.model)
            .where(*self.conditions(query, filters, visibility))
            .options(*self.load_options())
            .order_by(self.model.created_at.desc(), self.model.id)
            .limit(limit)
        )
        return list(session.scalars(stmt).unique().all())

    def search(
        self,
        session: Session,
        query: str,
        filters: Optional[SearchFilters],
        visibility: Optional[ColumnElement],
        limit: int,
        scoring: ScoringEngine,
        now: Optional[datetime] = None,
    ) -> List[SearchResult]:
        """Fetch and normalize matching rows into scored results."""
        now = now or datetime.utcnow()
        records = self.fetch(session, query, filters, visibility, limit)
        return [self.to_result(record, query, scoring, now) for record in records]

    def count(
        self,
        session: Session,
        query: Optional[str],
        filters: Optional[SearchFilters] = None,
        visibility: Optional[ColumnElement] = None,
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(*self.conditions(query, filters, visibility))
        )
        return int(session.scalar(stmt) or 0)

    def facet_counts(
        self,
        session: Session,
        facet: FacetField,
        query: Optional[str],
        filters: SearchFilters,
        visibility: Optional[ColumnElement] = None,
    ) -> Dict[str, int]:
        """Count rows per distinct value of a facet column."""
        stmt = (
            select(facet.column, func.count(self.model.id))
            .where(*self.conditions(query, filters, visibility))
            .group_by(facet.column)
        )
        return {
            value: int(count)
            for value, count in session.execute(stmt).all()
            if value is not None
        }

    def suggest(
        self,
        session: Session,
        prefix: str,
        visibility: Optional[ColumnElement],
        limit: int,
    ) -> List[Suggestion]:
        stmt = (
            select(self.model)
            .where(
                self.model.deleted_at.is_(None),
                self.suggestion_predicate(prefix),
                *([visibility] if visibility is not None else []),
            )
            .options(*self.load_options())
            .order_by(self.model.created_at.desc(), self.model.id)
            .limit(limit)
        )
        return [self.to_suggestion(r) for r in session.scalars(stmt).unique().all()]

    def corpus_texts(self, session: Session, sample_size: int) -> Iterator[str]:
        """Yield text snippets for the spelling corpus."""
        stmt = self.corpus_statement(sample_size)
        if stmt is None:
            return
        for title, description in session.execute(stmt).all():
            if title:
                yield title
            if description:
                yield description


# =============================================================================
# Assets
# =============================================================================


class AssetSearchAdapter(EntitySearchAdapter):
    kind = EntityKind.ASSETS
    model = IpAsset
    suggestion_type = "asset"
    facet_fields = (
        FacetField("asset_type", "Asset Type", IpAsset.asset_type),
        FacetField("asset_status", "Status", IpAsset.status),
    )

    def text_predicate(self, query: str) -> ColumnElement:
        return or_(
            IpAsset.title.icontains(query, autoescape=True),
            IpAsset.description.icontains(query, autoescape=True),
        )

    def suggestion_predicate(self, prefix: str) -> ColumnElement:
        return IpAsset.title.icontains(prefix, autoescape=True)

    def filter_predicates(self, filters: SearchFilters) -> List[ColumnElement]:
        predicates = []
        if filters.asset_type:
            predicates.append(IpAsset.asset_type.in_(filters.asset_type))
        if filters.asset_status:
            predicates.append(IpAsset.status.in_(filters.asset_status))
        if filters.project_id:
            predicates.append(IpAsset.project_id == filters.project_id)
        if filters.creator_id:
            predicates.append(IpAsset.ownerships.any(
                and_(IpOwnership.creator_id == filters.creator_id, IpOwnership.end_date.is_(None))
            ))
        for tag in filters.tags:
            predicates.append(IpAsset.tags.any(AssetTag.tag == tag))
        if filters.created_by:
            predicates.append(IpAsset.created_by == filters.created_by)
        return predicates

    def load_options(self) -> list:
        return [selectinload(IpAsset.tags)]

    def corpus_statement(self, sample_size: int):
        return (
            select(IpAsset.title, IpAsset.description)
            .where(IpAsset.deleted_at.is_(None))
            .limit(sample_size)
        )

    def to_result(self, asset: IpAsset, query: str, scoring: ScoringEngine, now: datetime) -> SearchResult:
        breakdown = scoring.score(
            query,
            asset.title,
            asset.description,
            asset.created_at,
            popularity=NEUTRAL_POPULARITY["assets"],
            quality=DEFAULT_QUALITY["assets"],
            now=now,
        )
        return SearchResult(
            id=asset.id,
            entity_type=self.kind,
            title=asset.title,
            description=asset.description,
            relevance_score=breakdown.final_score,
            score_breakdown=breakdown,
            highlights=build_highlights(query, asset.title, asset.description),
            metadata=self.metadata(asset),
            created_at=asset.created_at,
            updated_at=asset.updated_at,
        )

    def metadata(self, asset: IpAsset) -> AssetMetadata:
        return AssetMetadata(
            asset_type=asset.asset_type,
            status=asset.status,
            file_size=int(asset.file_size or 0),
            mime_type=asset.mime_type,
            created_by=asset.created_by,
            thumbnail_url=asset.thumbnail_url,
            tags=tuple(sorted(t.tag for t in asset.tags)),
        )

    def display(self, asset: IpAsset) -> Tuple[str, Optional[str]]:
        return asset.title, asset.description

    def thumbnail_url(self, asset: IpAsset) -> Optional[str]:
        return asset.thumbnail_url

    def to_suggestion(self, asset: IpAsset) -> Suggestion:
        return Suggestion(
            id=asset.id,
            title=asset.title,
            type=self.suggestion_type,
            subtitle=asset.asset_type,
            thumbnail_url=asset.thumbnail_url,
        )


# =============================================================================
# Creators
# =============================================================================


class CreatorSearchAdapter(EntitySearchAdapter):
    kind = EntityKind.CREATORS
    model = Creator
    suggestion_type = "creator"
    facet_fields = (
        FacetField("verification_status", "Verification Status", Creator.verification_status),
    )

    def text_predicate(self, query: str) -> ColumnElement:
        return or_(
            Creator.stage_name.icontains(query, autoescape=True),
            Creator.bio.icontains(query, autoescape=True),
        )

    def filter_predicates(self, filters: SearchFilters) -> List[ColumnElement]:
        predicates = []
        if filters.verification_status:
            predicates.append(Creator.verification_status.in_(filters.verification_status))
        for specialty in filters.specialties:
            predicates.append(Creator.specialties.any(CreatorSpecialty.name == specialty))
        if filters.availability_status:
            predicates.append(Creator.availability_status == filters.availability_status)
        return predicates

    def load_options(self) -> list:
        return [selectinload(Creator.specialties), joinedload(Creator.user)]

    def corpus_statement(self, sample_size: int):
        return (
            select(Creator.stage_name, Creator.bio)
            .where(Creator.deleted_at.is_(None))
            .limit(sample_size)
        )

    def to_result(self, creator: Creator, query: str, scoring: ScoringEngine, now: datetime) -> SearchResult:
        metrics = creator.performance_metrics or None
        breakdown = scoring.score(
            query,
            creator.stage_name,
            creator.bio,
            creator.created_at,
            popularity=creator_popularity(metrics),
            quality=verification_quality(creator.verification_status),
            now=now,
        )
        return SearchResult(
            id=creator.id,
            entity_type=self.kind,
            title=creator.stage_name,
            description=creator.bio,
            relevance_score=breakdown.final_score,
            score_breakdown=breakdown,
            highlights=build_highlights(query, creator.stage_name, creator.bio),
            metadata=self.metadata(creator),
            created_at=creator.created_at,
            updated_at=creator.updated_at,
        )

    def metadata(self, creator: Creator) -> CreatorMetadata:
        metrics = creator.performance_metrics or None
        availability = None
        if creator.availability_status:
            availability = CreatorAvailability(
                status=creator.availability_status,
                next_available=creator.next_available,
            )

        performance = None
        if metrics:
            performance = PerformanceMetrics(
                total_collaborations=metrics.get("totalCollaborations"),
                total_revenue=metrics.get("totalRevenue"),
                average_rating=metrics.get("averageRating"),
                recent_activity_score=metrics.get("recentActivityScore"),
            )

        return CreatorMetadata(
            stage_name=creator.stage_name,
            verification_status=creator.verification_status,
            specialties=tuple(sorted(s.name for s in creator.specialties)),
            avatar=creator.user.avatar if creator.user else None,
            portfolio_url=creator.portfolio_url,
            availability=availability,
            performance_metrics=performance,
            verified_at=creator.verified_at,
        )

    def display(self, creator: Creator) -> Tuple[str, Optional[str]]:
        return creator.stage_name, creator.bio

    def to_suggestion(self, creator: Creator) -> Suggestion:
        return Suggestion(
            id=creator.id,
            title=creator.stage_name,
            type=self.suggestion_type,
            subtitle=creator.verification_status or "Creator",
        )


# =============================================================================
# Projects
# =============================================================================


class ProjectSearchAdapter(EntitySearchAdapter):
    kind = EntityKind.PROJECTS
    model = Project
    suggestion_type = "project"
    facet_fields = (
        FacetField("project_type", "Project Type", Project.project_type),
        FacetField("project_status", "Project Status", Project.status),
    )

    def text_predicate(self, query: str) -> ColumnElement:
        return or_(
            Project.name.icontains(query, autoescape=True),
            Project.description.icontains(query, autoescape=True),
        )

    def filter_predicates(self, filters: SearchFilters) -> List[ColumnElement]:
        predicates = []
        if filters.project_type:
            predicates.append(Project.project_type.in_(filters.project_type))
        if filters.project_status:
            predicates.append(Project.status.in_(filters.project_status))
        if filters.brand_id:
            predicates.append(Project.brand_id == filters.brand_id)
        return predicates

    def load_options(self) -> list:
        return [joinedload(Project.brand)]

    def corpus_statement(self, sample_size: int):
        return (
            select(Project.name, Project.description)
            .where(Project.deleted_at.is_(None))
            .limit(sample_size)
        )

    def to_result(self, project: Project, query: str, scoring: ScoringEngine, now: datetime) -> SearchResult:
        breakdown = scoring.score(
            query,
            project.name,
            project.description,
            project.created_at,
            popularity=NEUTRAL_POPULARITY["projects"],
            quality=DEFAULT_QUALITY["projects"],
            now=now,
        )
        return SearchResult(
            id=project.id,
            entity_type=self.kind,
            title=project.name,
            description=project.description,
            relevance_score=breakdown.final_score,
            score_breakdown=breakdown,
            highlights=build_highlights(query, project.name, project.description),
            metadata=self.metadata(project),
            created_at=project.created_at,
            updated_at=project.updated_at,
        )

    def metadata(self, project: Project) -> ProjectMetadata:
        return ProjectMetadata(
            project_type=project.project_type,
            status=project.status,
            brand_name=project.brand.company_name if project.brand else "",
            budget_cents=int(project.budget_cents or 0),
            start_date=project.start_date,
            end_date=project.end_date,
        )

    def display(self, project: Project) -> Tuple[str, Optional[str]]:
        return project.name, project.description

    def to_suggestion(self, project: Project) -> Suggestion:
        return Suggestion(
            id=project.id,
            title=project.name,
            type=self.suggestion_type,
            subtitle=project.status or "Project",
        )


# =============================================================================
# Licenses
# =============================================================================


class LicenseSearchAdapter(EntitySearchAdapter):
    kind = EntityKind.LICENSES
    model = License
    suggestion_type = "license"
    facet_fields = (
        FacetField("license_type", "License Type", License.license_type),
        FacetField("license_status", "License Status", License.status),
    )

    def text_predicate(self, query: str) -> ColumnElement:
        return or_(
            License.ip_asset.has(IpAsset.title.icontains(query, autoescape=True)),
            License.brand.has(Brand.company_name.icontains(query, autoescape=True)),
        )

    def filter_predicates(self, filters: SearchFilters) -> List[ColumnElement]:
        predicates = []
        if filters.license_type:
            predicates.append(License.license_type.in_(filters.license_type))
        if filters.license_status:
            predicates.append(License.status.in_(filters.license_status))
        if filters.brand_id:
            predicates.append(License.brand_id == filters.brand_id)
        return predicates

    def load_options(self) -> list:
        return [joinedload(License.ip_asset), joinedload(License.brand)]

    @staticmethod
    def _title(license: License) -> str:
        asset_title = license.ip_asset.title if license.ip_asset else ""
        return f"{license.license_type} License - {asset_title}"

    @staticmethod
    def _description(license: License) -> str:
        brand_name = license.brand.company_name if license.brand else ""
        return f"License for {brand_name}"

    def to_result(self, license: License, query: str, scoring: ScoringEngine, now: datetime) -> SearchResult:
        title = self._title(license)
        description = self._description(license)
        breakdown = scoring.score(
            query,
            title,
            description,
            license.created_at,
            popularity=NEUTRAL_POPULARITY["licenses"],
            quality=license_quality(license.status),
            now=now,
        )
        return SearchResult(
            id=license.id,
            entity_type=self.kind,
            title=title,
            description=description,
            relevance_score=breakdown.final_score,
            score_breakdown=breakdown,
            highlights=build_highlights(query, title, description),
            metadata=self.metadata(license),
            created_at=license.created_at,
            updated_at=license.updated_at,
        )

    def metadata(self, license: License) -> LicenseMetadata:
        return LicenseMetadata(
            license_type=license.license_type,
            status=license.status,
            fee_cents=int(license.fee_cents or 0),
            start_date=license.start_date,
            end_date=license.end_date,
            asset_title=license.ip_asset.title if license.ip_asset else "",
            brand_name=license.brand.company_name if license.brand else "",
        )

    def display(self, license: License) -> Tuple[str, Optional[str]]:
        return self._title(license), self._description(license)

    def to_suggestion(self, license: License) -> Suggestion:
        return Suggestion(
            id=license.id,
            title=license.ip_asset.title if license.ip_asset else "",
            type=self.suggestion_type,
            subtitle=license.license_type or "License",
        )


def build_adapters() -> Dict[EntityKind, EntitySearchAdapter]:
    """Default adapter registry, one instance per entity kind."""
    adapters: Sequence[EntitySearchAdapter] = (
        AssetSearchAdapter(),
        CreatorSearchAdapter(),
        ProjectSearchAdapter(),
        LicenseSearchAdapter(),
    )
    return {adapter.kind: adapter for adapter in adapters}
