"""Duplicate-search projection maintenance.

Keeps one `duplicate_search_optimization` row per research item holding the
normalized text and metadata that duplicate matching compares. The row is
recomputed in the caller's transaction whenever an item or its author list
is written.
"""

import json
from typing import Any, Dict, Iterable, List, Optional, Set

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from research_ledger.db.tables import (
    ORIGIN_OPEN_ALEX,
    Author,
    DuplicateSearchOptimization,
    OriginIdentifier,
    ResearchItem,
    ResearchItemType,
    research_item_origin_identifier,
)
from research_ledger.models.category import AccomplishmentKind
from research_ledger.models.projection import ProjectionRow
from research_ledger.utils.hash import payload_fingerprint
from research_ledger.utils.trigram import normalize_text

logger = structlog.get_logger()

# Payload fields whose change invalidates the projection row
WATCHED_FIELDS = (
    "doi",
    "title",
    "source.title",
    "year",
    "event",
    "eventType",
    "applicationNumber",
    "filingDate",
    "patentNumber",
    "issueDate",
)


def _as_text(value: Any) -> Optional[str]:
    """Render a JSON scalar the way a text column would store it."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _as_year(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        logger.debug("projection_year_not_integer", year=value)
        return None


def _sub_type(event_type: Any) -> Optional[str]:
    if isinstance(event_type, dict):
        return _as_text(event_type.get("label"))
    return _as_text(event_type)


class ProjectionMaintainer:
    """Writes and reads duplicate-search projection rows."""

    def __init__(self, session: Session):
        self.session = session

    def on_item_write(
        self, item: ResearchItem, force: bool = False
    ) -> DuplicateSearchOptimization:
        """Recompute the projection of an inserted or updated item.

        The recompute is skipped when none of the watched payload fields
        nor the item type changed since the last write.

        Args:
            item: The research item just added or modified.
            force: Recompute even if the fingerprint is unchanged.

        Returns:
            The item's projection row.
        """
        if item.id is None:
            self.session.flush()

        data = item.data or {}
        fingerprint = payload_fingerprint(
            data, WATCHED_FIELDS, research_item_type_id=item.research_item_type_id
        )

        row = self.session.get(DuplicateSearchOptimization, item.id)
        if row is not None and row.source_fingerprint == fingerprint and not force:
            return row

        if row is None:
            row = DuplicateSearchOptimization(
                research_item_id=item.id,
                authors_string="",
                authors_string_length=0,
            )
            self.session.add(row)

        item_type = self.session.get(ResearchItemType, item.research_item_type_id)
        if item_type is not None and item_type.key == AccomplishmentKind.EDITORSHIP.value:
            source = data.get("source")
            raw_title = source.get("title") if isinstance(source, dict) else None
        else:
            raw_title = data.get("title")

        title = normalize_text(_as_text(raw_title))
        event = normalize_text(_as_text(data.get("event")))

        row.research_item_type_id = item.research_item_type_id
        row.doi = _as_text(data.get("doi"))
        row.title_string = title
        row.title_string_length = len(title)
        row.event_string = event
        row.event_string_length = len(event)
        row.year = _as_year(data.get("year"))
        row.sub_type = _sub_type(data.get("eventType"))
        row.application_number = _as_text(data.get("applicationNumber"))
        row.filing_date = _as_text(data.get("filingDate"))
        row.patent_number = _as_text(data.get("patentNumber"))
        row.issue_date = _as_text(data.get("issueDate"))
        row.source_fingerprint = fingerprint
        self.session.flush()

        logger.debug(
            "projection_updated",
            research_item_id=item.id,
            title_length=row.title_string_length,
        )
        return row

    def on_author_set_changed(self, research_item_id: int) -> DuplicateSearchOptimization:
        """Recompute the concatenated author string of an item."""
        row = self.session.get(DuplicateSearchOptimization, research_item_id)
        if row is None:
            item = self.session.get(ResearchItem, research_item_id)
            row = self.on_item_write(item)

        names = self.session.scalars(
            select(Author.name)
            .where(Author.research_item_id == research_item_id)
            .order_by(Author.position)
        ).all()
        authors = "".join(name or "" for name in names).lower()

        row.authors_string = authors
        row.authors_string_length = len(authors)
        self.session.flush()

        logger.debug(
            "projection_authors_updated",
            research_item_id=research_item_id,
            authors=len(names),
        )
        return row

    def rebuild(self, item_ids: Optional[Iterable[int]] = None) -> int:
        """Recompute projection rows for the given items, or for all items.

        Returns:
            Number of rows rebuilt.
        """
        stmt = select(ResearchItem).order_by(ResearchItem.id)
        if item_ids is not None:
            stmt = stmt.where(ResearchItem.id.in_(list(item_ids)))

        count = 0
        for item in self.session.scalars(stmt):
            self.on_item_write(item, force=True)
            self.on_author_set_changed(item.id)
            count += 1

        logger.info("projections_rebuilt", count=count)
        return count

    def load(self, research_item_id: int) -> Optional[ProjectionRow]:
        rows = self.load_many([research_item_id])
        return rows[0] if rows else None

    def load_many(self, item_ids: Iterable[int]) -> List[ProjectionRow]:
        """Read projection rows with each item's OpenAlex origin ids.

        Items without a projection row are skipped.
        """
        ids = list(item_ids)
        if not ids:
            return []

        link = research_item_origin_identifier
        origin_ids: Dict[int, Set[str]] = {}
        links = self.session.execute(
            select(link.c.research_item_id, OriginIdentifier.identifier)
            .join(OriginIdentifier, OriginIdentifier.id == link.c.origin_identifier_id)
            .where(OriginIdentifier.name == ORIGIN_OPEN_ALEX)
            .where(link.c.research_item_id.in_(ids))
        )
        for item_id, identifier in links:
            origin_ids.setdefault(item_id, set()).add(identifier)

        rows = self.session.scalars(
            select(DuplicateSearchOptimization)
            .where(DuplicateSearchOptimization.research_item_id.in_(ids))
            .order_by(DuplicateSearchOptimization.research_item_id)
        )

        columns = [c.key for c in DuplicateSearchOptimization.__table__.columns]
        result = []
        for row in rows:
            values = {key: getattr(row, key) for key in columns}
            values["origin_ids"] = frozenset(origin_ids.get(row.research_item_id, ()))
            result.append(ProjectionRow.model_validate(values))
        return result
