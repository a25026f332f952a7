"""Suggestions of research items to research entities.

Alias suggestions are derived: an entity is suggested every verified item
carrying an author whose name equals one of the entity's aliases, unless the
entity already verified it. Manual suggestions are created on request.
A suggestion is discarded (never deleted) when the entity dismisses it, so
it is not proposed again.
"""

from typing import Iterable, List, Optional, Set, Tuple

import structlog
from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from research_ledger.db.tables import (
    KIND_VERIFIED,
    Alias,
    Author,
    ResearchItem,
    Suggested,
    Verified,
)
from research_ledger.models.inputs import SuggestionRequest
from research_ledger.models.results import SuggestionResult
from research_ledger.observability.metrics import SUGGESTIONS_CREATED
from research_ledger.services.duplicate_service import DuplicateService
from research_ledger.utils.exceptions import LedgerError

logger = structlog.get_logger()

SUGGESTION_ALIAS = "alias"
SUGGESTION_MANUAL = "manual"
SUGGESTION_TYPES = ("alias", "membership", "external", "manual", "other")


class SuggestionService:
    """Creates, discards and removes Suggested rows."""

    def __init__(self, session: Session, duplicates: Optional[DuplicateService] = None):
        self.session = session
        self.duplicates = duplicates or DuplicateService(session)

    def find_or_create(
        self, research_item_id: int, research_entity_id: int, type_: str
    ) -> Tuple[Suggested, bool]:
        """Return the Suggested row for the triple, creating it if missing.

        An existing row keeps its discarded flag.
        """
        suggested = self.session.scalars(
            select(Suggested)
            .where(Suggested.research_item_id == research_item_id)
            .where(Suggested.research_entity_id == research_entity_id)
            .where(Suggested.type == type_)
        ).one_or_none()
        if suggested is not None:
            return suggested, False

        suggested = Suggested(
            research_item_id=research_item_id,
            research_entity_id=research_entity_id,
            type=type_,
            discarded=False,
        )
        self.session.add(suggested)
        self.session.flush()
        SUGGESTIONS_CREATED.labels(type=type_).inc()
        return suggested, True

    def calculate_research_item_suggestions(
        self, research_item_id: int, research_item_type_id: Optional[int] = None
    ) -> List[int]:
        """Suggest a verified item to every entity with a matching alias.

        Returns:
            Ids of the entities the item was suggested to.
        """
        already_verified = exists().where(
            Verified.research_item_id == ResearchItem.id,
            Verified.research_entity_id == Alias.research_entity_id,
        )
        entity_ids = self.session.scalars(
            select(Alias.research_entity_id)
            .join(Author, Author.name == Alias.value)
            .join(ResearchItem, ResearchItem.id == Author.research_item_id)
            .where(ResearchItem.id == research_item_id)
            .where(ResearchItem.kind == KIND_VERIFIED)
            .where(~already_verified)
            .distinct()
            .order_by(Alias.research_entity_id)
        ).all()

        for entity_id in entity_ids:
            self.find_or_create(research_item_id, entity_id, SUGGESTION_ALIAS)
            self.duplicates.calculate(research_item_id, entity_id, research_item_type_id)

        logger.info(
            "research_item_suggestions_calculated",
            research_item_id=research_item_id,
            entities=len(entity_ids),
        )
        return list(entity_ids)

    def _alias_candidates(self, research_entity_id: int) -> Set[int]:
        already_verified = exists().where(
            Verified.research_item_id == ResearchItem.id,
            Verified.research_entity_id == research_entity_id,
        )
        return set(
            self.session.scalars(
                select(ResearchItem.id)
                .join(Author, Author.research_item_id == ResearchItem.id)
                .join(Alias, Alias.value == Author.name)
                .where(Alias.research_entity_id == research_entity_id)
                .where(ResearchItem.kind == KIND_VERIFIED)
                .where(~already_verified)
            )
        )

    def calculate_alias_suggestions(self, research_entity_id: int) -> Tuple[int, int]:
        """Recompute the alias suggestions of an entity from scratch.

        Newly qualifying items are suggested (with a duplicate calculation),
        items that no longer qualify lose their suggestions.

        Returns:
            Tuple of (added, removed) counts.
        """
        wanted = self._alias_candidates(research_entity_id)
        existing = set(
            self.session.scalars(
                select(Suggested.research_item_id)
                .where(Suggested.research_entity_id == research_entity_id)
                .where(Suggested.type == SUGGESTION_ALIAS)
            )
        )

        to_add = sorted(wanted - existing)
        to_remove = sorted(existing - wanted)

        for item_id in to_add:
            self.find_or_create(item_id, research_entity_id, SUGGESTION_ALIAS)
            self.duplicates.calculate(item_id, research_entity_id)

        for item_id in to_remove:
            self.remove_suggestions(research_entity_id, item_id)

        logger.info(
            "alias_suggestions_calculated",
            research_entity_id=research_entity_id,
            added=len(to_add),
            removed=len(to_remove),
        )
        return len(to_add), len(to_remove)

    def discard(self, research_entity_id: int, item_ids: Iterable[int]) -> int:
        """Mark suggestions as discarded.

        Returns:
            Number of rows affected.
        """
        ids = list(item_ids)
        if not ids:
            return 0

        rows = self.session.scalars(
            select(Suggested)
            .where(Suggested.research_entity_id == research_entity_id)
            .where(Suggested.research_item_id.in_(ids))
        ).all()
        for suggested in rows:
            suggested.discarded = True
        self.session.flush()

        logger.info(
            "suggestions_discarded",
            research_entity_id=research_entity_id,
            count=len(rows),
        )
        return len(rows)

    def suggest_research_items(
        self, suggestions: Iterable[SuggestionRequest]
    ) -> List[SuggestionResult]:
        """Create manual suggestions, reporting each item's outcome.

        An item can only be suggested to an entity that has not verified it
        and when some other entity has.
        """
        requests = list(suggestions)
        item_ids = {s.research_item_id for s in requests if s.research_item_id > 0}
        verifications: dict[int, Set[int]] = {}
        if item_ids:
            rows = self.session.execute(
                select(Verified.research_item_id, Verified.research_entity_id).where(
                    Verified.research_item_id.in_(item_ids)
                )
            )
            for item_id, entity_id in rows:
                verifications.setdefault(item_id, set()).add(entity_id)

        results = []
        for s in requests:
            result = SuggestionResult(
                research_item_id=s.research_item_id,
                research_entity_id=s.research_entity_id,
                success=False,
            )
            results.append(result)

            if s.research_item_id <= 0 or s.research_entity_id <= 0:
                result.message = "Invalid parameters"
                continue

            verifiers = verifications.get(s.research_item_id, set())
            if s.research_entity_id in verifiers:
                result.message = "Already verified by this entity"
                continue
            if not verifiers:
                result.message = "No verifications by other entities"
                continue

            try:
                with self.session.begin_nested():
                    self.find_or_create(
                        s.research_item_id, s.research_entity_id, SUGGESTION_MANUAL
                    )
                    self.duplicates.calculate(s.research_item_id, s.research_entity_id)
            except (LedgerError, SQLAlchemyError) as e:
                logger.warning(
                    "manual_suggestion_failed",
                    research_item_id=s.research_item_id,
                    research_entity_id=s.research_entity_id,
                    error=str(e),
                )
                result.message = str(e) or "Unknown error during creation"
                continue

            result.success = True

        logger.info(
            "research_items_suggested",
            total=len(results),
            succeeded=sum(1 for r in results if r.success),
        )
        return results

    def remove_suggestions(
        self,
        research_entity_id: int,
        research_item_id: Optional[int] = None,
        type_: Optional[str] = None,
    ) -> int:
        """Delete suggestions of an entity, optionally for one item or type.

        Returns:
            Number of rows deleted; 0 for a non-positive entity id.
        """
        if research_entity_id <= 0:
            return 0

        stmt = select(Suggested).where(Suggested.research_entity_id == research_entity_id)
        if research_item_id:
            stmt = stmt.where(Suggested.research_item_id == research_item_id)
        if type_:
            stmt = stmt.where(Suggested.type == type_)

        rows = self.session.scalars(stmt).all()
        for suggested in rows:
            self.session.delete(suggested)
        self.session.flush()

        logger.debug(
            "suggestions_removed",
            research_entity_id=research_entity_id,
            research_item_id=research_item_id,
            count=len(rows),
        )
        return len(rows)
