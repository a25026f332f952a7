"""Shared fixtures: an in-memory ledger database and a record factory."""

from typing import Iterable, Optional, Sequence

import pytest

from research_ledger.db import create_db_engine, create_session_factory, init_db
from research_ledger.db.tables import (
    ENTITY_GROUP,
    ENTITY_PERSON,
    KIND_DRAFT,
    KIND_EXTERNAL,
    KIND_VERIFIED,
    ROLE_GROUP_OWNER,
    Affiliation,
    Alias,
    Author,
    Institute,
    ResearchEntity,
    ResearchEntityRole,
    ResearchItem,
    ResearchItemType,
    Verified,
)
from research_ledger.models.config import DatabaseSettings
from research_ledger.services.projection_service import ProjectionMaintainer

ITEM_TYPES = [
    ("article", "publication", "Article"),
    ("organized_event", "accomplishment", "Organized Event"),
    ("award_achievement", "accomplishment", "Award / Achievement"),
    ("editorship", "accomplishment", "Editorship"),
    ("scientific", "invited_talk", "Scientific"),
    ("prosecution", "patent", "Prosecution"),
    ("project_competitive", "project", "Competitive Project"),
]

BASE_TITLE = "Test publication for threshold analysis"
BASE_AUTHORS = ["Doe John", "Smith Simpson John Victor"]


@pytest.fixture
def engine():
    """In-memory SQLite engine with the full schema."""
    engine = create_db_engine(DatabaseSettings(url="sqlite://"))
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session
        session.rollback()


class LedgerFactory:
    """Builds ledger records directly, bypassing the services under test."""

    def __init__(self, session):
        self.session = session
        self.types = {}
        for key, type_, label in ITEM_TYPES:
            item_type = ResearchItemType(key=key, type=type_, label=label)
            session.add(item_type)
            self.types[key] = item_type
        self.institute = Institute(name="Italian Institute of Technology")
        session.add(self.institute)
        session.flush()

    def person(self, name: str, surname: str, aliases: Iterable[str] = ()) -> ResearchEntity:
        entity = ResearchEntity(
            type=ENTITY_PERSON,
            code=f"{name}.{surname}".lower(),
            data={"name": name, "surname": surname},
        )
        self.session.add(entity)
        self.session.flush()
        for value in aliases:
            self.session.add(Alias(research_entity_id=entity.id, value=value, main=False))
        self.session.flush()
        return entity

    def group(self, name: str, owners: Sequence[ResearchEntity] = ()) -> ResearchEntity:
        entity = ResearchEntity(type=ENTITY_GROUP, code=name.lower(), data={"name": name})
        self.session.add(entity)
        self.session.flush()
        for owner in owners:
            self.session.add(
                ResearchEntityRole(
                    user_entity_id=owner.id,
                    research_entity_id=entity.id,
                    role_key=ROLE_GROUP_OWNER,
                )
            )
        self.session.flush()
        return entity

    def item(
        self,
        type_key: str = "article",
        data: Optional[dict] = None,
        authors: Sequence[str] = (),
        kind: str = KIND_VERIFIED,
        creator: Optional[ResearchEntity] = None,
        verified_by: Sequence[ResearchEntity] = (),
        affiliated: bool = True,
    ) -> ResearchItem:
        item = ResearchItem(
            kind=kind,
            research_item_type_id=self.types[type_key].id,
            creator_research_entity_id=creator.id if kind == KIND_DRAFT else None,
            data=dict(data or {}),
        )
        self.session.add(item)
        self.session.flush()

        for position, name in enumerate(authors):
            author = Author(research_item_id=item.id, position=position, name=name)
            self.session.add(author)
            self.session.flush()
            if affiliated:
                self.session.add(
                    Affiliation(author_id=author.id, institute_id=self.institute.id)
                )

        for entity in verified_by:
            self.session.add(Verified(research_item_id=item.id, research_entity_id=entity.id))
        self.session.flush()

        projections = ProjectionMaintainer(self.session)
        projections.on_item_write(item)
        projections.on_author_set_changed(item.id)
        self.session.expire(item)
        return item

    def publication(self, title: str = BASE_TITLE, authors=BASE_AUTHORS, **kwargs):
        data = {"title": title, "year": 2020, "source": {"title": "Journal"}}
        data.update(kwargs.pop("data", {}))
        return self.item("article", data=data, authors=authors, **kwargs)

    def draft(self, creator: ResearchEntity, **kwargs):
        return self.publication(kind=KIND_DRAFT, creator=creator, **kwargs)

    def external(self, **kwargs):
        return self.publication(kind=KIND_EXTERNAL, **kwargs)


@pytest.fixture
def factory(session):
    return LedgerFactory(session)


@pytest.fixture
def john(factory):
    """Person entity whose alias matches the first author of BASE_AUTHORS."""
    return factory.person("John", "Doe", aliases=["John Doe", "Doe John"])


@pytest.fixture
def victor(factory):
    """Person entity whose alias matches the second author of BASE_AUTHORS."""
    return factory.person("Victor", "Smith", aliases=["Smith Simpson John Victor"])
