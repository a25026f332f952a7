"""Tests for correlation id helpers."""

import uuid

import pytest

from research_ledger.observability.context import (
    clear_correlation_id,
    correlation_id_context,
    get_correlation_id,
    new_correlation_id,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def reset_correlation_id():
    clear_correlation_id()
    yield
    clear_correlation_id()


class TestNewCorrelationId:
    def test_plain_uuid(self):
        uuid.UUID(new_correlation_id())

    def test_prefixed(self):
        corr_id = new_correlation_id("cli")

        prefix, suffix = corr_id.split("-", 1)
        assert prefix == "cli"
        assert len(suffix) == 12

    def test_ids_are_unique(self):
        assert new_correlation_id("cli") != new_correlation_id("cli")


class TestSetCorrelationId:
    def test_generates_id_when_none_given(self):
        corr_id = set_correlation_id()

        uuid.UUID(corr_id)
        assert get_correlation_id() == corr_id

    def test_uses_given_id(self):
        assert set_correlation_id("bulk-verify-3") == "bulk-verify-3"
        assert get_correlation_id() == "bulk-verify-3"

    def test_clear(self):
        set_correlation_id("to-clear")
        clear_correlation_id()

        assert get_correlation_id() is None


class TestCorrelationIdContext:
    def test_sets_id_inside_block(self):
        with correlation_id_context("cli-db_init") as corr_id:
            assert corr_id == "cli-db_init"
            assert get_correlation_id() == "cli-db_init"

    def test_restores_previous_id(self):
        set_correlation_id("outer")

        with correlation_id_context("inner"):
            assert get_correlation_id() == "inner"

        assert get_correlation_id() == "outer"

    def test_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with correlation_id_context("failing"):
                raise RuntimeError("boom")

        assert get_correlation_id() is None

    def test_generates_id_when_none_given(self):
        with correlation_id_context() as corr_id:
            assert get_correlation_id() == corr_id
            uuid.UUID(corr_id)
