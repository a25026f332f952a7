"""Verification (claim) state machine.

A research item is created as a draft by a person or imported as external.
The first verification turns it into a verified item for good; removing the
last verification deletes it. Every operation runs in a SAVEPOINT so a
rejected verification leaves no Verified, Duplicate or Suggested rows behind.
"""

from typing import List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from research_ledger.db.tables import (
    ENTITY_PERSON,
    KIND_DRAFT,
    KIND_EXTERNAL,
    KIND_VERIFIED,
    Affiliation,
    Alias,
    Author,
    Duplicate,
    ResearchEntity,
    ResearchItem,
    Suggested,
    Verified,
)
from research_ledger.models.inputs import VerifyRequest
from research_ledger.observability.metrics import UNVERIFICATIONS, VERIFICATIONS
from research_ledger.services.alias_service import AliasService
from research_ledger.services.duplicate_service import (
    CALCULATE_ON_DRAFT_AND_SUGGESTED,
    DuplicateService,
)
from research_ledger.services.schema_validator import SchemaValidator
from research_ledger.services.suggestion_service import (
    SUGGESTION_MANUAL,
    SuggestionService,
)
from research_ledger.utils.exceptions import (
    LedgerError,
    NotFoundResearchEntityError,
    NotFoundResearchItemError,
    UnverificationAlreadyVerifiedError,
    ValidationError,
    VerificationAlreadyVerifiedError,
    VerificationIsDuplicateError,
    VerificationMissingAffiliationError,
    VerificationMissingAuthorInPositionError,
    VerificationMissingAuthorPositionError,
    VerificationNotDraftCreatorError,
)

logger = structlog.get_logger()


class VerificationService:
    """Claims and unclaims research items on behalf of research entities."""

    def __init__(
        self,
        session: Session,
        validator: Optional[SchemaValidator] = None,
        duplicates: Optional[DuplicateService] = None,
        suggestions: Optional[SuggestionService] = None,
        aliases: Optional[AliasService] = None,
    ):
        self.session = session
        self.validator = validator or SchemaValidator()
        self.duplicates = duplicates or DuplicateService(session)
        self.suggestions = suggestions or SuggestionService(session, self.duplicates)
        self.aliases = aliases or AliasService(session, self.suggestions)

    def verify_research_item(self, request: VerifyRequest) -> Verified:
        """Verify an item for an entity.

        Raises:
            NotFoundResearchItemError, NotFoundResearchEntityError,
            ValidationError, or any VerificationError subclass. The
            savepoint is rolled back before the error propagates.
        """
        log = logger.bind(
            research_item_id=request.research_item_id,
            research_entity_id=request.research_entity_id,
        )
        try:
            with self.session.begin_nested():
                verified = self._verify(request)
        except LedgerError as e:
            VERIFICATIONS.labels(outcome=e.code).inc()
            log.info("verification_rejected", code=e.code)
            if e.research_item_id is None:
                e.research_item_id = request.research_item_id
            if e.research_entity_id is None:
                e.research_entity_id = request.research_entity_id
            raise

        VERIFICATIONS.labels(outcome="success").inc()
        log.info("research_item_verified", verified_id=verified.id)
        return verified

    def _verify(self, request: VerifyRequest) -> Verified:
        item_id = request.research_item_id
        entity_id = request.research_entity_id

        has_suggestion = self.session.scalar(
            select(Suggested.id)
            .where(Suggested.research_item_id == item_id)
            .where(Suggested.research_entity_id == entity_id)
            .limit(1)
        )
        if has_suggestion is None and self.session.get(ResearchItem, item_id) is not None:
            self.duplicates.calculate(item_id, entity_id, request.research_item_type_id)

        if request.set_duplicates_false:
            active = self.duplicates.get_active_duplicates(item_id, entity_id)
            if active:
                self.duplicates.set_duplicates_false(
                    [d.duplicate_id for d in active], item_id, entity_id
                )

        self.session.flush()
        item = self.session.get(ResearchItem, item_id)
        if item is None:
            raise NotFoundResearchItemError(research_item_id=item_id)
        self.session.expire(item)
        entity = self.session.get(ResearchEntity, entity_id)
        if entity is None:
            raise NotFoundResearchEntityError(research_entity_id=entity_id)

        item_type = item.research_item_type
        self.validator.validate(item_type.type, item_type.key, item.data or {}, "verified")

        if item.kind == KIND_VERIFIED and self._has_verified(item_id, entity_id):
            raise VerificationAlreadyVerifiedError()

        author = None
        if entity.type == ENTITY_PERSON:
            author = self._resolve_author(item, entity, request)

        if self.duplicates.get_active_duplicates(item_id, entity_id):
            raise VerificationIsDuplicateError()

        verified = Verified(research_item_id=item_id, research_entity_id=entity_id)
        try:
            with self.session.begin_nested():
                self.session.add(verified)
        except IntegrityError as e:
            raise VerificationAlreadyVerifiedError() from e

        if author is not None:
            self._verify_as_author(author, verified, request)
            self._add_alias_if_needed(entity_id, author)

        self._mark_as_verified(item)

        self.duplicates.calculate(
            item.id,
            entity_id,
            item.research_item_type_id,
            calculate_on=CALCULATE_ON_DRAFT_AND_SUGGESTED,
        )
        self.suggestions.remove_suggestions(entity_id, item.id)
        return verified

    def _has_verified(self, research_item_id: int, research_entity_id: int) -> bool:
        return (
            self.session.scalar(
                select(Verified.id)
                .where(Verified.research_item_id == research_item_id)
                .where(Verified.research_entity_id == research_entity_id)
            )
            is not None
        )

    def _entity_alias_values(self, research_entity_id: int) -> List[str]:
        return list(
            self.session.scalars(
                select(Alias.value).where(Alias.research_entity_id == research_entity_id)
            )
        )

    def _resolve_author(
        self, item: ResearchItem, entity: ResearchEntity, request: VerifyRequest
    ) -> Author:
        position = request.author_position
        if position is None:
            aliases = set(self._entity_alias_values(entity.id))
            matched = next((a for a in item.authors if a.name in aliases), None)
            if matched is None:
                raise VerificationMissingAuthorPositionError()
            position = matched.position

        if item.kind == KIND_DRAFT and item.creator_research_entity_id != entity.id:
            raise VerificationNotDraftCreatorError()

        author = next((a for a in item.authors if a.position == position), None)
        if author is None:
            raise VerificationMissingAuthorInPositionError()
        if author.verified_id is not None:
            raise VerificationAlreadyVerifiedError()

        if not author.affiliations and not request.affiliations:
            raise VerificationMissingAffiliationError()
        return author

    def _verify_as_author(
        self, author: Author, verified: Verified, request: VerifyRequest
    ) -> None:
        author.verified_id = verified.id
        for flag in (
            "is_corresponding_author",
            "is_oral_presentation",
            "is_first_coauthor",
            "is_last_coauthor",
        ):
            value = getattr(request, flag)
            if value is not None:
                setattr(author, flag, value)

        known = {a.institute_id for a in author.affiliations}
        for affiliation in request.affiliations or []:
            if affiliation.institute_id in known:
                continue
            author.affiliations.append(Affiliation(institute_id=affiliation.institute_id))
            known.add(affiliation.institute_id)
        self.session.flush()

    def _add_alias_if_needed(self, research_entity_id: int, author: Author) -> None:
        if not author.name:
            return
        if author.name in self._entity_alias_values(research_entity_id):
            return
        self.aliases.add_alias(research_entity_id, author.name, main=False)

    def _mark_as_verified(self, item: ResearchItem) -> None:
        if item.kind == KIND_DRAFT:
            item.kind = KIND_VERIFIED
            item.creator_research_entity_id = None
            self.session.flush()
            self.suggestions.calculate_research_item_suggestions(
                item.id, item.research_item_type_id
            )
        elif item.kind == KIND_EXTERNAL:
            item.kind = KIND_VERIFIED
            self.session.flush()

    def unverify(self, research_entity_id: int, research_item_id: int) -> bool:
        """Remove an entity's verification of an item.

        The pair is recorded as a discarded suggestion so it is not proposed
        again. The item is deleted when no verification remains.

        Returns:
            True if the item itself was deleted.
        """
        try:
            with self.session.begin_nested():
                deleted = self._unverify(research_entity_id, research_item_id)
        except LedgerError as e:
            UNVERIFICATIONS.labels(outcome=e.code).inc()
            logger.info(
                "unverification_rejected",
                research_item_id=research_item_id,
                research_entity_id=research_entity_id,
                code=e.code,
            )
            raise

        UNVERIFICATIONS.labels(outcome="item_deleted" if deleted else "success").inc()
        logger.info(
            "research_item_unverified",
            research_item_id=research_item_id,
            research_entity_id=research_entity_id,
            item_deleted=deleted,
        )
        return deleted

    def _unverify(self, research_entity_id: int, research_item_id: int) -> bool:
        if not _positive_id(research_entity_id) or not _positive_id(research_item_id):
            raise ValidationError(
                "Invalid research item or research entity id",
                research_item_id=research_item_id,
                research_entity_id=research_entity_id,
            )

        verified = self.session.scalars(
            select(Verified)
            .where(Verified.research_item_id == research_item_id)
            .where(Verified.research_entity_id == research_entity_id)
        ).one_or_none()
        if verified is None:
            raise UnverificationAlreadyVerifiedError(
                research_item_id=research_item_id,
                research_entity_id=research_entity_id,
            )

        linked = self.session.scalars(
            select(Author).where(Author.verified_id == verified.id)
        ).all()
        for author in linked:
            author.verified_id = None
        self.session.delete(verified)
        self.session.flush()

        self._record_discarded_suggestion(research_entity_id, research_item_id)

        reverse = self.session.scalars(
            select(Duplicate)
            .where(Duplicate.duplicate_id == research_item_id)
            .where(Duplicate.research_entity_id == research_entity_id)
        ).all()
        for edge in reverse:
            self.session.delete(edge)
        self.session.flush()
        logger.debug(
            "reverse_duplicates_removed",
            research_item_id=research_item_id,
            research_entity_id=research_entity_id,
            count=len(reverse),
        )

        remaining = self.session.scalar(
            select(func.count(Verified.id)).where(
                Verified.research_item_id == research_item_id
            )
        )
        if remaining:
            return False

        item = self.session.get(ResearchItem, research_item_id)
        if item is None:
            return False
        self.session.expire(item)
        self.session.delete(item)
        self.session.flush()
        return True

    def _record_discarded_suggestion(
        self, research_entity_id: int, research_item_id: int
    ) -> None:
        existing = self.session.scalars(
            select(Suggested)
            .where(Suggested.research_entity_id == research_entity_id)
            .where(Suggested.research_item_id == research_item_id)
        ).all()
        if existing:
            for suggested in existing:
                suggested.discarded = True
            self.session.flush()
            return

        self.session.add(
            Suggested(
                research_item_id=research_item_id,
                research_entity_id=research_entity_id,
                type=SUGGESTION_MANUAL,
                discarded=True,
            )
        )
        self.session.flush()

    def replace(
        self, research_entity_id: int, to_replace_id: int, request: VerifyRequest
    ) -> Verified:
        """Swap one verified item for another in a single unit of work.

        If the new verification fails, the unverification is rolled back too.
        """
        with self.session.begin_nested():
            self.unverify(research_entity_id, to_replace_id)
            verified = self.verify_research_item(request)

        logger.info(
            "research_item_replaced",
            research_entity_id=research_entity_id,
            replaced_id=to_replace_id,
            research_item_id=request.research_item_id,
        )
        return verified


def _positive_id(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0
