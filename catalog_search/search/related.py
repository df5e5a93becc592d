"""
Related content.

Content-based rules only: each source kind has a fixed set of relation
rules (same type, same project, same owner, ...) with a fixed score. Each
rule reads a handful of the newest matching records; a record reached by
several rules keeps its best score.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import and_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from catalog_search.core.models import Creator, CreatorSpecialty, IpAsset, IpOwnership, License, Project
from catalog_search.search.adapters import EntitySearchAdapter
from catalog_search.search.types import EntityKind, RelatedContent, RelationshipType

logger = logging.getLogger(__name__)

# Candidates read per rule
RULE_CANDIDATE_LIMIT = 5

DEFAULT_RELATED_LIMIT = 10
DEFAULT_MIN_RELEVANCE_SCORE = 0.3


@dataclass(frozen=True)
class RelationRule:
    relationship: RelationshipType
    score: float
    reason: str
    predicate: ColumnElement


def _asset_rules(asset: IpAsset) -> List[RelationRule]:
    rules = [
        RelationRule(
            RelationshipType.SIMILAR_CONTENT, 0.8,
            f"Similar asset type: {asset.asset_type}",
            IpAsset.asset_type == asset.asset_type,
        ),
    ]
    if asset.project_id:
        rules.append(RelationRule(
            RelationshipType.SAME_PROJECT, 0.9,
            "From the same project",
            IpAsset.project_id == asset.project_id,
        ))

    owners = sorted(
        (o for o in asset.ownerships if o.end_date is None),
        key=lambda o: (o.start_date, o.id),
    )
    if owners:
        rules.append(RelationRule(
            RelationshipType.SAME_CREATOR, 0.75,
            "From the same creator",
            IpAsset.ownerships.any(
                and_(IpOwnership.creator_id == owners[0].creator_id, IpOwnership.end_date.is_(None))
            ),
        ))
    return rules


def _creator_rules(creator: Creator) -> List[RelationRule]:
    rules = []
    specialties = sorted(s.name for s in creator.specialties)
    if specialties:
        rules.append(RelationRule(
            RelationshipType.SIMILAR_CONTENT, 0.8,
            "Similar specialties",
            and_(*(Creator.specialties.any(CreatorSpecialty.name == name) for name in specialties)),
        ))
    rules.append(RelationRule(
        RelationshipType.SAME_CATEGORY, 0.6,
        "Similar verification level",
        Creator.verification_status == creator.verification_status,
    ))
    return rules


def _project_rules(project: Project) -> List[RelationRule]:
    return [
        RelationRule(
            RelationshipType.SIMILAR_CONTENT, 0.8,
            f"Similar project type: {project.project_type}",
            Project.project_type == project.project_type,
        ),
        RelationRule(
            RelationshipType.SAME_CATEGORY, 0.85,
            "From the same brand",
            Project.brand_id == project.brand_id,
        ),
    ]


def _license_rules(license: License) -> List[RelationRule]:
    return [
        RelationRule(
            RelationshipType.SIMILAR_CONTENT, 0.8,
            f"Similar license type: {license.license_type}",
            License.license_type == license.license_type,
        ),
        RelationRule(
            RelationshipType.SAME_CATEGORY, 0.9,
            "License for the same asset",
            License.ip_asset_id == license.ip_asset_id,
        ),
    ]


RULES: Dict[EntityKind, Callable[[Any], List[RelationRule]]] = {
    EntityKind.ASSETS: _asset_rules,
    EntityKind.CREATORS: _creator_rules,
    EntityKind.PROJECTS: _project_rules,
    EntityKind.LICENSES: _license_rules,
}


class RelatedContentFinder:
    """Applies the relation rules of a source record's kind."""

    def __init__(self, adapters: Dict[EntityKind, EntitySearchAdapter]):
        self.adapters = adapters

    def find(
        self,
        session: Session,
        kind: EntityKind,
        entity_id: str,
        visibility: Optional[ColumnElement] = None,
        include_types: Optional[Sequence[RelationshipType]] = None,
        exclude_ids: Sequence[str] = (),
        min_relevance_score: float = DEFAULT_MIN_RELEVANCE_SCORE,
        limit: int = DEFAULT_RELATED_LIMIT,
    ) -> List[RelatedContent]:
        """
        Records related to one source record, best first.

        Args:
            session: Open session on the record store
            kind: Kind of the source record
            entity_id: ID of the source record
            visibility: Caller's predicate for this kind (None = unrestricted)
            include_types: Relationships to evaluate (None = all)
            exclude_ids: IDs never returned
            min_relevance_score: Lowest score kept
            limit: Max results

        Returns:
            Related records; empty when the source is missing, deleted or
            not visible to the caller.
        """
        adapter = self.adapters[kind]
        source = self._source(session, adapter, entity_id, visibility)
        if source is None:
            return []

        excluded = {entity_id, *exclude_ids}
        found: List[RelatedContent] = []
        for rule in RULES[kind](source):
            if include_types is not None and rule.relationship not in include_types:
                continue
            for record in self._candidates(session, adapter, rule, excluded, visibility):
                found.append(self._to_related(adapter, record, rule))

        # Stable sort: equal scores keep rule order, then newest first
        found.sort(key=lambda r: -r.relevance_score)
        seen = set()
        related = []
        for item in found:
            if item.id in seen or item.relevance_score < min_relevance_score:
                continue
            seen.add(item.id)
            related.append(item)
        return related[:limit]

    @staticmethod
    def _source(
        session: Session,
        adapter: EntitySearchAdapter,
        entity_id: str,
        visibility: Optional[ColumnElement],
    ) -> Optional[Any]:
        model = adapter.model
        stmt = select(model).where(model.id == entity_id, model.deleted_at.is_(None))
        if visibility is not None:
            stmt = stmt.where(visibility)
        source = session.scalars(stmt).first()
        if source is None:
            logger.debug(f"Related content: {adapter.kind.value} {entity_id} not found or not visible")
        return source

    @staticmethod
    def _candidates(
        session: Session,
        adapter: EntitySearchAdapter,
        rule: RelationRule,
        excluded: set,
        visibility: Optional[ColumnElement],
    ) -> List[Any]:
        model = adapter.model
        stmt = (
            select(model)
            .where(
                model.deleted_at.is_(None),
                model.id.notin_(excluded),
                rule.predicate,
                *([visibility] if visibility is not None else []),
            )
            .options(*adapter.load_options())
            .order_by(model.created_at.desc(), model.id)
            .limit(RULE_CANDIDATE_LIMIT)
        )
        return list(session.scalars(stmt).unique().all())

    @staticmethod
    def _to_related(adapter: EntitySearchAdapter, record: Any, rule: RelationRule) -> RelatedContent:
        title, description = adapter.display(record)
        return RelatedContent(
            id=record.id,
            entity_type=adapter.kind,
            title=title,
            description=description,
            relevance_score=rule.score,
            relationship_type=rule.relationship,
            relationship_reason=rule.reason,
            metadata=adapter.metadata(record),
            created_at=record.created_at,
            thumbnail_url=adapter.thumbnail_url(record),
        )
