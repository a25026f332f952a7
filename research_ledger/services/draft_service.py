"""Draft lifecycle: create, update and delete a person's unclaimed items.

Saving a draft replaces its author list, refreshes the duplicate-search
projection and recomputes the draft's duplicates against the items the
creator already verified.
"""

import copy
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from research_ledger.db.tables import (
    ENTITY_PERSON,
    KIND_DRAFT,
    Affiliation,
    Author,
    ResearchEntity,
    ResearchItem,
    ResearchItemType,
)
from research_ledger.models.inputs import AuthorInput, DraftInput
from research_ledger.services.duplicate_service import DuplicateService
from research_ledger.services.projection_service import ProjectionMaintainer
from research_ledger.services.schema_validator import SchemaValidator
from research_ledger.utils.exceptions import (
    NotFoundResearchEntityError,
    NotFoundResearchItemError,
    ValidationError,
)

logger = structlog.get_logger()

DOI_URL_PREFIX = "https://doi.org/"

AUTHOR_FLAGS = (
    "is_corresponding_author",
    "is_first_coauthor",
    "is_last_coauthor",
    "is_oral_presentation",
)


def clean_doi(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of the payload with the DOI resolver prefix removed."""
    cleaned = copy.deepcopy(data)
    doi = cleaned.get("doi")
    if isinstance(doi, str) and doi:
        cleaned["doi"] = doi.replace(DOI_URL_PREFIX, "")
    return cleaned


def replace_authors(
    session: Session,
    item: ResearchItem,
    authors: Sequence[AuthorInput],
    projections: Optional[ProjectionMaintainer] = None,
) -> List[Author]:
    """Make an item's author list match the given one.

    Authors are matched by position: an existing slot keeps its id and its
    verification link, its name, flags and affiliations are overwritten.
    Slots at positions missing from the new list are deleted.
    """
    wanted = {a.position: a for a in authors}
    current = {a.position: a for a in item.authors}

    stale = [author for position, author in current.items() if position not in wanted]
    for author in stale:
        session.delete(author)
    if stale:
        session.flush()
        session.expire(item, ["authors"])

    for position in sorted(wanted):
        data = wanted[position]
        author = current.get(position)
        if author is None:
            author = Author(position=position)
            item.authors.append(author)

        author.name = data.name
        for flag in AUTHOR_FLAGS:
            setattr(author, flag, getattr(data, flag))
        _replace_affiliations(session, author, [aff.institute_id for aff in data.affiliations])

    session.flush()
    (projections or ProjectionMaintainer(session)).on_author_set_changed(item.id)

    logger.debug(
        "authors_replaced",
        research_item_id=item.id,
        authors=len(wanted),
        removed=len(stale),
    )
    return list(item.authors)


def _replace_affiliations(session: Session, author: Author, institute_ids: List[int]) -> None:
    desired = list(dict.fromkeys(institute_ids))

    if author.id is not None:
        removed = [aff for aff in author.affiliations if aff.institute_id not in desired]
        for affiliation in removed:
            session.delete(affiliation)
        if removed:
            session.flush()
            session.expire(author, ["affiliations"])

    present = {aff.institute_id for aff in author.affiliations}
    for institute_id in desired:
        if institute_id not in present:
            author.affiliations.append(Affiliation(institute_id=institute_id))


class DraftService:
    """Saves, updates and deletes drafts of person entities."""

    def __init__(
        self,
        session: Session,
        validator: Optional[SchemaValidator] = None,
        projections: Optional[ProjectionMaintainer] = None,
        duplicates: Optional[DuplicateService] = None,
    ):
        self.session = session
        self.validator = validator or SchemaValidator()
        self.projections = projections or ProjectionMaintainer(session)
        self.duplicates = duplicates or DuplicateService(session, self.projections)

    def _item_type(self, research_item_type_id: int) -> ResearchItemType:
        item_type = self.session.get(ResearchItemType, research_item_type_id)
        if item_type is None:
            raise ValidationError(
                errors=[f"research_item_type_id: unknown type {research_item_type_id}"]
            )
        return item_type

    def create_draft(self, research_entity_id: int, draft: DraftInput) -> ResearchItem:
        """Create a draft owned by a person entity.

        Raises:
            NotFoundResearchEntityError: The creator does not exist.
            ValidationError: The payload fails the draft profile, the type is
                unknown, or the creator is not a person.
        """
        entity = self.session.get(ResearchEntity, research_entity_id)
        if entity is None:
            raise NotFoundResearchEntityError(research_entity_id=research_entity_id)
        if entity.type != ENTITY_PERSON:
            raise ValidationError(
                "Only person entities can create drafts",
                research_entity_id=research_entity_id,
            )

        item_type = self._item_type(draft.research_item_type_id)
        data = clean_doi(draft.data)
        self.validator.validate(item_type.type, item_type.key, data, "draft")

        with self.session.begin_nested():
            item = ResearchItem(
                kind=KIND_DRAFT,
                creator_research_entity_id=research_entity_id,
                research_item_type_id=item_type.id,
                data=data,
            )
            self.session.add(item)
            self.session.flush()

            self.projections.on_item_write(item)
            replace_authors(self.session, item, draft.authors, self.projections)
            self.duplicates.calculate(item.id, research_entity_id, item_type.id)

        logger.info(
            "draft_created",
            research_item_id=item.id,
            research_entity_id=research_entity_id,
            type=item_type.key,
        )
        return item

    def update_draft(self, research_entity_id: int, draft: DraftInput) -> ResearchItem:
        """Overwrite a draft's payload and authors.

        Only the creator can update a draft; to anybody else the draft does
        not exist.
        """
        if draft.id is None:
            raise ValidationError("Draft id is required", research_entity_id=research_entity_id)

        item = self.session.get(ResearchItem, draft.id)
        if (
            item is None
            or item.kind != KIND_DRAFT
            or item.creator_research_entity_id != research_entity_id
        ):
            raise NotFoundResearchItemError(
                research_item_id=draft.id, research_entity_id=research_entity_id
            )

        item_type = self._item_type(draft.research_item_type_id)
        data = clean_doi(draft.data)
        self.validator.validate(item_type.type, item_type.key, data, "draft")

        with self.session.begin_nested():
            item.research_item_type_id = item_type.id
            item.data = data
            self.session.flush()

            self.projections.on_item_write(item)
            replace_authors(self.session, item, draft.authors, self.projections)
            self.duplicates.calculate(
                item.id,
                research_entity_id,
                item_type.id,
                clean_old_duplicates=True,
            )

        logger.info(
            "draft_updated",
            research_item_id=item.id,
            research_entity_id=research_entity_id,
        )
        return item

    def delete_draft(self, research_entity_id: int, research_item_id: int) -> None:
        item = self.session.scalars(
            select(ResearchItem)
            .where(ResearchItem.id == research_item_id)
            .where(ResearchItem.kind == KIND_DRAFT)
            .where(ResearchItem.creator_research_entity_id == research_entity_id)
        ).one_or_none()
        if item is None:
            raise NotFoundResearchItemError(
                research_item_id=research_item_id, research_entity_id=research_entity_id
            )

        self.session.expire(item)
        self.session.delete(item)
        self.session.flush()
        logger.info(
            "draft_deleted",
            research_item_id=research_item_id,
            research_entity_id=research_entity_id,
        )
