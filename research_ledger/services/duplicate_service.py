"""Duplicate calculation and duplicate edge bookkeeping.

A duplicate edge (research_item_id, duplicate_id, research_entity_id) says
that, from the viewpoint of one research entity, two items describe the same
output. Edges with is_duplicate=False are dismissed matches: automatic
recalculation never turns them back on.

Two calculation modes exist:

- ``verified``: the item is compared against the items already verified by
  the entity (and by the groups the entity's person owns).
- ``draftAndSuggested``: the item is compared against the entity's own drafts
  and the items suggested to it; edges point from the candidate to the item.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from research_ledger.db.tables import (
    KIND_DRAFT,
    ROLE_GROUP_OWNER,
    Duplicate,
    ResearchEntityRole,
    ResearchItem,
    ResearchItemType,
    Suggested,
    Verified,
)
from research_ledger.models.category import Category
from research_ledger.models.results import (
    DuplicatePair,
    DuplicatesUpdateResult,
    DuplicateUpdate,
)
from research_ledger.observability.metrics import (
    DUPLICATE_CALCULATION_DURATION,
    DUPLICATE_CALCULATIONS,
    DUPLICATE_CANDIDATES,
    DUPLICATE_EDGES_WRITTEN,
)
from research_ledger.services.projection_service import ProjectionMaintainer
from research_ledger.services.similarity_rules import find_matches
from research_ledger.utils.exceptions import NotFoundResearchItemError

logger = structlog.get_logger()

CALCULATE_ON_VERIFIED = "verified"
CALCULATE_ON_DRAFT_AND_SUGGESTED = "draftAndSuggested"
CALCULATION_MODES = (CALCULATE_ON_VERIFIED, CALCULATE_ON_DRAFT_AND_SUGGESTED)


class DuplicateService:
    """Computes duplicate pairs and maintains duplicate edges."""

    def __init__(self, session: Session, projections: Optional[ProjectionMaintainer] = None):
        self.session = session
        self.projections = projections or ProjectionMaintainer(session)

    def calculate(
        self,
        research_item_id: int,
        research_entity_id: int,
        research_item_type_id: Optional[int] = None,
        calculate_on: str = CALCULATE_ON_VERIFIED,
        clean_old_duplicates: bool = False,
    ) -> List[DuplicatePair]:
        """Find the duplicates of an item and record them as edges.

        Args:
            research_item_id: Item being checked.
            research_entity_id: Entity from whose viewpoint the check runs.
            research_item_type_id: Item type; read from the item when omitted.
            calculate_on: "verified" or "draftAndSuggested".
            clean_old_duplicates: In verified mode, first delete every edge
                of the item in the entity scope, dismissed ones included.

        Returns:
            The matching pairs, each already written as an edge.
        """
        if calculate_on not in CALCULATION_MODES:
            raise ValueError(f"Unknown calculation mode: {calculate_on}")

        if research_item_type_id is None:
            item = self.session.get(ResearchItem, research_item_id)
            if item is None:
                raise NotFoundResearchItemError(research_item_id=research_item_id)
            research_item_type_id = item.research_item_type_id

        item_type = self.session.get(ResearchItemType, research_item_type_id)
        category = Category.from_type(item_type.type, item_type.key) if item_type else None
        if category is None:
            logger.debug(
                "duplicate_calculation_skipped",
                research_item_id=research_item_id,
                research_item_type_id=research_item_type_id,
            )
            return []

        DUPLICATE_CALCULATIONS.labels(mode=calculate_on).inc()
        with DUPLICATE_CALCULATION_DURATION.labels(mode=calculate_on).time():
            if calculate_on == CALCULATE_ON_VERIFIED:
                entity_ids = [research_entity_id, *self.group_entity_ids(research_entity_id)]
                if clean_old_duplicates:
                    self.delete(research_item_id, entity_ids)
                candidates = self._verified_candidates(
                    research_item_id, research_item_type_id, entity_ids
                )
            else:
                candidates = self._draft_and_suggested_candidates(
                    research_item_id, research_item_type_id, research_entity_id
                )

            DUPLICATE_CANDIDATES.observe(len(candidates))
            pairs = self._match(research_item_id, category, candidates, calculate_on)

            for pair in pairs:
                self.update_or_create(
                    pair.research_item_id, pair.duplicate_id, pair.research_entity_id, True
                )

        logger.info(
            "duplicates_calculated",
            research_item_id=research_item_id,
            research_entity_id=research_entity_id,
            mode=calculate_on,
            category=category.label,
            candidates=len(candidates),
            duplicates=len(pairs),
        )
        return pairs

    def group_entity_ids(self, research_entity_id: int) -> List[int]:
        """Entities on which the given person holds the group owner role."""
        return list(
            self.session.scalars(
                select(ResearchEntityRole.research_entity_id)
                .where(ResearchEntityRole.user_entity_id == research_entity_id)
                .where(ResearchEntityRole.role_key == ROLE_GROUP_OWNER)
                .order_by(ResearchEntityRole.research_entity_id)
            )
        )

    def _verified_candidates(
        self, research_item_id: int, research_item_type_id: int, entity_ids: Sequence[int]
    ) -> List[Tuple[int, int]]:
        stmt = (
            select(Verified.research_item_id, Verified.research_entity_id)
            .join(ResearchItem, ResearchItem.id == Verified.research_item_id)
            .where(Verified.research_entity_id.in_(entity_ids))
            .where(ResearchItem.research_item_type_id == research_item_type_id)
            .where(ResearchItem.id != research_item_id)
            .distinct()
        )
        return [(row[0], row[1]) for row in self.session.execute(stmt)]

    def _draft_and_suggested_candidates(
        self, research_item_id: int, research_item_type_id: int, research_entity_id: int
    ) -> List[Tuple[int, int]]:
        drafts = self.session.scalars(
            select(ResearchItem.id)
            .where(ResearchItem.kind == KIND_DRAFT)
            .where(ResearchItem.creator_research_entity_id == research_entity_id)
            .where(ResearchItem.research_item_type_id == research_item_type_id)
            .where(ResearchItem.id != research_item_id)
        ).all()
        suggested = self.session.scalars(
            select(ResearchItem.id)
            .join(Suggested, Suggested.research_item_id == ResearchItem.id)
            .where(Suggested.research_entity_id == research_entity_id)
            .where(Suggested.discarded.is_(False))
            .where(ResearchItem.research_item_type_id == research_item_type_id)
            .where(ResearchItem.id != research_item_id)
        ).all()
        ids = sorted(set(drafts) | set(suggested))
        return [(item_id, research_entity_id) for item_id in ids]

    def _match(
        self,
        research_item_id: int,
        category: Category,
        candidates: Sequence[Tuple[int, int]],
        calculate_on: str,
    ) -> List[DuplicatePair]:
        constant = self.projections.load(research_item_id)
        if constant is None or not candidates:
            return []

        rows = self.projections.load_many({item_id for item_id, _ in candidates})
        matched = {row.research_item_id for row in find_matches(category, constant, rows)}

        pairs = []
        for candidate_id, entity_id in candidates:
            if candidate_id not in matched:
                continue
            if calculate_on == CALCULATE_ON_VERIFIED:
                pairs.append(
                    DuplicatePair(
                        research_item_id=research_item_id,
                        duplicate_id=candidate_id,
                        research_entity_id=entity_id,
                    )
                )
            else:
                pairs.append(
                    DuplicatePair(
                        research_item_id=candidate_id,
                        duplicate_id=research_item_id,
                        research_entity_id=entity_id,
                    )
                )
        return pairs

    def update_or_create(
        self,
        research_item_id: int,
        duplicate_id: int,
        research_entity_id: int,
        is_duplicate: bool,
    ) -> Duplicate:
        """Write one duplicate edge.

        An existing dismissed edge (is_duplicate=False) is returned untouched.
        """
        edge = self.session.scalars(
            select(Duplicate)
            .where(Duplicate.research_item_id == research_item_id)
            .where(Duplicate.duplicate_id == duplicate_id)
            .where(Duplicate.research_entity_id == research_entity_id)
        ).one_or_none()

        if edge is None:
            edge = Duplicate(
                research_item_id=research_item_id,
                duplicate_id=duplicate_id,
                research_entity_id=research_entity_id,
                is_duplicate=is_duplicate,
            )
            self.session.add(edge)
            self.session.flush()
            DUPLICATE_EDGES_WRITTEN.labels(
                outcome="created" if is_duplicate else "set_false"
            ).inc()
            return edge

        if not edge.is_duplicate:
            DUPLICATE_EDGES_WRITTEN.labels(outcome="kept_false").inc()
            return edge

        if not is_duplicate:
            edge.is_duplicate = False
            self.session.flush()
            DUPLICATE_EDGES_WRITTEN.labels(outcome="set_false").inc()
        return edge

    def delete(self, research_item_id: int, entity_ids: Optional[Iterable[int]] = None) -> int:
        """Delete every edge of an item, optionally limited to some entities.

        Returns:
            Number of edges deleted.
        """
        stmt = select(Duplicate).where(Duplicate.research_item_id == research_item_id)
        if entity_ids is not None:
            stmt = stmt.where(Duplicate.research_entity_id.in_(list(entity_ids)))

        edges = self.session.scalars(stmt).all()
        for edge in edges:
            self.session.delete(edge)
        self.session.flush()

        logger.debug(
            "duplicates_deleted",
            research_item_id=research_item_id,
            count=len(edges),
        )
        return len(edges)

    def set_duplicates_false(
        self,
        duplicate_ids: Iterable[int],
        research_item_id: int,
        research_entity_id: int,
    ) -> DuplicatesUpdateResult:
        """Dismiss matches, creating dismissed edges where none exist.

        Each id is written in its own savepoint; a failure is reported in the
        result and does not undo the others.
        """
        result = DuplicatesUpdateResult()
        for duplicate_id in duplicate_ids:
            try:
                with self.session.begin_nested():
                    self.update_or_create(
                        research_item_id, duplicate_id, research_entity_id, False
                    )
            except SQLAlchemyError as e:
                logger.warning(
                    "duplicate_dismiss_failed",
                    research_item_id=research_item_id,
                    duplicate_id=duplicate_id,
                    error=str(e),
                )
                result.success = False
                result.updates.append(
                    DuplicateUpdate(
                        duplicate_id=duplicate_id,
                        success=False,
                        message=f"Failed update duplicate with ID {duplicate_id}",
                    )
                )
                continue

            result.updates.append(
                DuplicateUpdate(
                    duplicate_id=duplicate_id,
                    success=True,
                    message=f"Duplicate with ID {duplicate_id} updated successfully",
                )
            )
        return result

    def get_active_duplicates(
        self, research_item_id: int, research_entity_id: int
    ) -> List[Duplicate]:
        """Current is_duplicate=True edges of an item for one entity."""
        return list(
            self.session.scalars(
                select(Duplicate)
                .where(Duplicate.research_item_id == research_item_id)
                .where(Duplicate.research_entity_id == research_entity_id)
                .where(Duplicate.is_duplicate.is_(True))
                .order_by(Duplicate.duplicate_id)
                .execution_options(populate_existing=True)
            )
        )
