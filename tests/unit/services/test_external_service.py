"""Tests for upserting externally imported items"""

import pytest
from sqlalchemy import func, select

from research_ledger.db.tables import OriginIdentifier, ResearchItem
from research_ledger.models.inputs import AuthorInput
from research_ledger.services.external_service import ExternalService, compare_data
from research_ledger.services.projection_service import ProjectionMaintainer
from research_ledger.utils.exceptions import ValidationError

DATA = {"title": "Imported work", "year": 2022, "source": {"title": "Journal"}}


@pytest.fixture
def service(session):
    return ExternalService(session)


def _authors(*names):
    return [AuthorInput(name=name, position=i) for i, name in enumerate(names)]


class TestCompareData:
    def test_equal_payloads(self):
        assert compare_data(DATA, dict(DATA))

    def test_source_type_timestamps_ignored(self):
        first = {"title": "A", "sourceType": {"key": "journal", "created_at": "2020"}}
        second = {"title": "A", "sourceType": {"key": "journal", "updated_at": "2024"}}
        assert compare_data(first, second)

    def test_null_equals_missing(self):
        assert compare_data({"title": "A", "doi": None}, {"title": "A"})
        assert compare_data(None, {})

    def test_different_payloads(self):
        assert not compare_data({"title": "A"}, {"title": "B"})
        assert not compare_data(
            {"sourceType": {"key": "journal"}}, {"sourceType": {"key": "book"}}
        )

    def test_inputs_not_modified(self):
        first = {"sourceType": {"key": "journal", "created_at": "2020"}}
        compare_data(first, {})
        assert first["sourceType"]["created_at"] == "2020"


class TestUpsertExternal:
    def test_creates_external_item(self, session, factory, service):
        item = service.upsert_external(
            "W100", _authors("Doe John", "Roe Mary"), factory.types["article"].id, DATA
        )

        assert item.kind == "external"
        assert item.creator_research_entity_id is None
        assert [o.identifier for o in item.origin_identifiers] == ["W100"]
        row = ProjectionMaintainer(session).load(item.id)
        assert row.origin_ids == frozenset({"W100"})
        assert row.title_string == "imported work"
        assert row.authors_string == "doe johnroe mary"

    def test_refreshes_existing_external(self, session, factory, service):
        type_id = factory.types["article"].id
        first = service.upsert_external("W100", _authors("Doe John"), type_id, DATA)

        changed = dict(DATA, title="Imported work, revised")
        second = service.upsert_external("W100", _authors("Doe J.", "Roe Mary"), type_id, changed)

        assert second.id == first.id
        assert second.data["title"] == "Imported work, revised"
        row = ProjectionMaintainer(session).load(first.id)
        assert row.title_string == "imported work, revised"
        assert row.authors_string == "doe j.roe mary"
        assert session.scalar(select(func.count(ResearchItem.id))) == 1

    def test_returns_verified_item_with_same_payload(self, session, factory, service, john):
        verified = factory.publication(title="Imported work", verified_by=[john])
        verified.origin_identifiers.append(OriginIdentifier(identifier="W100"))
        session.flush()

        same = {"title": "Imported work", "year": 2020, "source": {"title": "Journal"}}

        item = service.upsert_external(
            "W100", _authors("Doe John"), factory.types["article"].id, same
        )

        assert item.id == verified.id
        assert item.kind == "verified"

    def test_changed_verified_item_gets_new_external(self, session, factory, service, john):
        verified = factory.publication(title="Imported work", verified_by=[john])
        verified.origin_identifiers.append(OriginIdentifier(identifier="W100"))
        session.flush()

        item = service.upsert_external(
            "W100", _authors("Doe John"), factory.types["article"].id, DATA
        )

        assert item.id != verified.id
        assert item.kind == "external"
        assert session.scalar(select(func.count(OriginIdentifier.id))) == 1
        assert service.find_external("W100", "external").id == item.id

    def test_other_source_identifier_not_reused(self, session, factory, service, john):
        other = factory.publication(title="Indexed elsewhere", verified_by=[john])
        other.origin_identifiers.append(OriginIdentifier(name="scopus", identifier="W100"))
        session.flush()
        type_id = factory.types["article"].id

        first = service.upsert_external("W100", _authors("Doe John"), type_id, DATA)
        second = service.upsert_external("W100", _authors("Doe John"), type_id, DATA)

        assert second.id == first.id
        assert [(o.name, o.identifier) for o in first.origin_identifiers] == [
            ("open_alex", "W100")
        ]
        assert service.find_external("W100", "external").id == first.id
        assert session.scalar(select(func.count(OriginIdentifier.id))) == 2

    def test_requires_origin_identifier(self, factory, service):
        with pytest.raises(ValidationError):
            service.upsert_external("", [], factory.types["article"].id, DATA)

    def test_unknown_type(self, factory, service):
        with pytest.raises(ValidationError):
            service.upsert_external("W1", [], 999, DATA)
