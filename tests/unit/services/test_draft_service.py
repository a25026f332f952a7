"""Tests for the draft lifecycle"""

import pytest
from sqlalchemy import select

from research_ledger.db.tables import Affiliation, Author, Duplicate, Institute, ResearchItem
from research_ledger.models.inputs import AffiliationInput, AuthorInput, DraftInput
from research_ledger.services.draft_service import DraftService, clean_doi, replace_authors
from research_ledger.services.projection_service import ProjectionMaintainer
from research_ledger.utils.exceptions import (
    NotFoundResearchEntityError,
    NotFoundResearchItemError,
    ValidationError,
)


@pytest.fixture
def service(session):
    return DraftService(session)


def _authors(institute_id, *names):
    return [
        AuthorInput(
            name=name,
            position=position,
            affiliations=[AffiliationInput(institute_id=institute_id)],
        )
        for position, name in enumerate(names)
    ]


def _draft(factory, title="A new study", doi=None, authors=None, draft_id=None):
    data = {"title": title, "year": 2021}
    if doi is not None:
        data["doi"] = doi
    return DraftInput(
        id=draft_id,
        research_item_type_id=factory.types["article"].id,
        data=data,
        authors=authors or _authors(factory.institute.id, "Doe John", "Roe Mary"),
    )


def test_clean_doi_strips_resolver_prefix():
    data = {"doi": "https://doi.org/10.1000/xyz", "title": "T"}

    cleaned = clean_doi(data)

    assert cleaned["doi"] == "10.1000/xyz"
    assert data["doi"] == "https://doi.org/10.1000/xyz"
    assert clean_doi({"doi": None}) == {"doi": None}


class TestCreateDraft:
    def test_creates_draft_with_authors_and_projection(self, session, factory, service, john):
        item = service.create_draft(john.id, _draft(factory, doi="https://doi.org/10.1/abc"))

        assert item.kind == "draft"
        assert item.creator_research_entity_id == john.id
        assert item.data["doi"] == "10.1/abc"
        assert [(a.position, a.name) for a in item.authors] == [(0, "Doe John"), (1, "Roe Mary")]

        row = ProjectionMaintainer(session).load(item.id)
        assert row.doi == "10.1/abc"
        assert row.title_string == "a new study"
        assert row.authors_string == "doe johnroe mary"

    def test_flags_duplicate_by_doi(self, session, factory, service, john):
        verified = factory.publication(
            title="Unrelated title", data={"doi": "10.1/abc"}, verified_by=[john]
        )

        item = service.create_draft(john.id, _draft(factory, doi="https://doi.org/10.1/abc"))

        edges = session.scalars(select(Duplicate)).all()
        assert [(e.research_item_id, e.duplicate_id, e.is_duplicate) for e in edges] == [
            (item.id, verified.id, True)
        ]

    def test_draft_profile_allows_missing_fields(self, session, factory, service, john):
        draft = DraftInput(research_item_type_id=factory.types["article"].id, data={})

        item = service.create_draft(john.id, draft)

        assert item.data == {}

    def test_invalid_year_rejected(self, session, factory, service, john):
        draft = DraftInput(
            research_item_type_id=factory.types["article"].id, data={"year": "20x1"}
        )

        with pytest.raises(ValidationError):
            service.create_draft(john.id, draft)

    def test_unknown_type(self, factory, service, john):
        with pytest.raises(ValidationError):
            service.create_draft(john.id, DraftInput(research_item_type_id=999))

    def test_missing_creator(self, factory, service):
        with pytest.raises(NotFoundResearchEntityError):
            service.create_draft(999, _draft(factory))

    def test_group_cannot_create_drafts(self, factory, service):
        group = factory.group("Robotics Lab")

        with pytest.raises(ValidationError):
            service.create_draft(group.id, _draft(factory))


class TestUpdateDraft:
    def test_removing_doi_clears_duplicate(self, session, factory, service, john):
        factory.publication(title="Unrelated title", data={"doi": "10.1/abc"}, verified_by=[john])
        item = service.create_draft(john.id, _draft(factory, doi="10.1/abc"))
        assert len(session.scalars(select(Duplicate)).all()) == 1

        service.update_draft(john.id, _draft(factory, draft_id=item.id))

        assert session.scalars(select(Duplicate)).all() == []
        assert ProjectionMaintainer(session).load(item.id).doi is None

    def test_replaces_authors_by_position(self, session, factory, service, john):
        item = service.create_draft(john.id, _draft(factory))
        first_author_id = item.authors[0].id

        service.update_draft(
            john.id,
            _draft(factory, draft_id=item.id, authors=_authors(factory.institute.id, "Doe J.")),
        )

        authors = session.scalars(
            select(Author).where(Author.research_item_id == item.id)
        ).all()
        assert [(a.id, a.position, a.name) for a in authors] == [
            (first_author_id, 0, "Doe J.")
        ]
        assert ProjectionMaintainer(session).load(item.id).authors_string == "doe j."

    def test_requires_id(self, factory, service, john):
        with pytest.raises(ValidationError):
            service.update_draft(john.id, _draft(factory))

    def test_only_creator_can_update(self, session, factory, service, john, victor):
        item = service.create_draft(john.id, _draft(factory))

        with pytest.raises(NotFoundResearchItemError):
            service.update_draft(victor.id, _draft(factory, draft_id=item.id))

    def test_verified_items_are_not_drafts(self, session, factory, service, john):
        item = factory.publication(verified_by=[john])

        with pytest.raises(NotFoundResearchItemError):
            service.update_draft(john.id, _draft(factory, draft_id=item.id))


class TestDeleteDraft:
    def test_deletes_own_draft(self, session, factory, service, john):
        item = service.create_draft(john.id, _draft(factory))
        item_id = item.id

        service.delete_draft(john.id, item_id)

        assert session.get(ResearchItem, item_id) is None
        assert session.scalars(select(Author)).all() == []

    def test_other_creator(self, session, factory, service, john, victor):
        item = service.create_draft(john.id, _draft(factory))

        with pytest.raises(NotFoundResearchItemError):
            service.delete_draft(victor.id, item.id)


class TestReplaceAuthors:
    def test_reconciles_affiliations_and_flags(self, session, factory, john):
        item = factory.draft(john)
        other = Institute(name="University of Genoa")
        session.add(other)
        session.flush()

        replace_authors(
            session,
            item,
            [
                AuthorInput(
                    name="Doe John",
                    position=0,
                    affiliations=[AffiliationInput(institute_id=other.id)],
                    is_corresponding_author=True,
                ),
            ],
        )

        author = session.scalars(select(Author).where(Author.research_item_id == item.id)).one()
        assert author.is_corresponding_author is True
        institutes = session.scalars(
            select(Affiliation.institute_id).where(Affiliation.author_id == author.id)
        ).all()
        assert institutes == [other.id]
        assert ProjectionMaintainer(session).load(item.id).authors_string == "doe john"
