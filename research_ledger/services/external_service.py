"""Upsert of items imported from external bibliographic sources.

Imported items are keyed by their OpenAlex origin identifier and enter the
ledger as ``external`` until someone verifies them.
"""

import copy
from typing import Any, Dict, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from research_ledger.db.tables import (
    KIND_EXTERNAL,
    KIND_VERIFIED,
    ORIGIN_OPEN_ALEX,
    OriginIdentifier,
    ResearchItem,
    ResearchItemType,
)
from research_ledger.models.inputs import AuthorInput
from research_ledger.services.draft_service import replace_authors
from research_ledger.services.projection_service import ProjectionMaintainer
from research_ledger.utils.exceptions import ValidationError

logger = structlog.get_logger()

IGNORED_SOURCE_TYPE_FIELDS = ("created_at", "updated_at")


def _without_nulls(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _without_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_without_nulls(v) for v in value]
    return value


def compare_data(data1: Optional[Dict[str, Any]], data2: Optional[Dict[str, Any]]) -> bool:
    """Compare two payloads, ignoring source type timestamps.

    Null values and missing keys are treated as equal.
    """
    clean1 = copy.deepcopy(data1) or {}
    clean2 = copy.deepcopy(data2) or {}
    for clean in (clean1, clean2):
        source_type = clean.get("sourceType")
        if isinstance(source_type, dict):
            for field in IGNORED_SOURCE_TYPE_FIELDS:
                source_type.pop(field, None)

    return _without_nulls(clean1) == _without_nulls(clean2)


class ExternalService:
    def __init__(self, session: Session, projections: Optional[ProjectionMaintainer] = None):
        self.session = session
        self.projections = projections or ProjectionMaintainer(session)

    def find_external(
        self, origin_identifier: str, kind: str, origin_name: str = ORIGIN_OPEN_ALEX
    ) -> Optional[ResearchItem]:
        """Find an item of the given kind linked to an origin identifier."""
        return self.session.scalars(
            select(ResearchItem)
            .join(ResearchItem.origin_identifiers)
            .where(OriginIdentifier.name == origin_name)
            .where(OriginIdentifier.identifier == origin_identifier)
            .where(ResearchItem.kind == kind)
            .order_by(ResearchItem.id)
            .limit(1)
        ).first()

    def upsert_external(
        self,
        origin_identifier: str,
        authors: Sequence[AuthorInput],
        research_item_type_id: int,
        data: Dict[str, Any],
    ) -> ResearchItem:
        """Insert or refresh an imported item.

        - An external item with the identifier gets the new authors, and the
          new payload when it changed.
        - A verified item with the identifier and the same payload is
          returned as is.
        - Otherwise a new external item is created and linked.
        """
        if not origin_identifier:
            raise ValidationError("Origin identifier is required")
        if self.session.get(ResearchItemType, research_item_type_id) is None:
            raise ValidationError(
                errors=[f"research_item_type_id: unknown type {research_item_type_id}"]
            )

        existing = self.find_external(origin_identifier, KIND_EXTERNAL)
        if existing is not None:
            changed = not compare_data(existing.data, data)
            replace_authors(self.session, existing, authors, self.projections)
            if changed:
                existing.data = copy.deepcopy(data)
                self.session.flush()
                self.projections.on_item_write(existing)
            logger.info(
                "external_item_refreshed",
                research_item_id=existing.id,
                origin_identifier=origin_identifier,
                data_changed=changed,
            )
            return existing

        verified = self.find_external(origin_identifier, KIND_VERIFIED)
        if verified is not None and compare_data(verified.data, data):
            logger.info(
                "external_item_already_verified",
                research_item_id=verified.id,
                origin_identifier=origin_identifier,
            )
            return verified

        return self._create_external(origin_identifier, authors, research_item_type_id, data)

    def _create_external(
        self,
        origin_identifier: str,
        authors: Sequence[AuthorInput],
        research_item_type_id: int,
        data: Dict[str, Any],
    ) -> ResearchItem:
        item = ResearchItem(
            kind=KIND_EXTERNAL,
            research_item_type_id=research_item_type_id,
            data=copy.deepcopy(data),
        )
        self.session.add(item)

        origin = self.session.scalars(
            select(OriginIdentifier)
            .where(OriginIdentifier.name == ORIGIN_OPEN_ALEX)
            .where(OriginIdentifier.identifier == origin_identifier)
        ).first()
        if origin is None:
            origin = OriginIdentifier(name=ORIGIN_OPEN_ALEX, identifier=origin_identifier)
            self.session.add(origin)
        item.origin_identifiers.append(origin)
        self.session.flush()

        self.projections.on_item_write(item)
        replace_authors(self.session, item, authors, self.projections)

        logger.info(
            "external_item_created",
            research_item_id=item.id,
            origin_identifier=origin_identifier,
        )
        return item
