"""Tests for Prometheus metrics definitions."""

from prometheus_client import CollectorRegistry

from research_ledger.observability.metrics import (
    BULK_ITEMS,
    DUPLICATE_CALCULATION_DURATION,
    DUPLICATE_CANDIDATES,
    DUPLICATE_EDGES_WRITTEN,
    REGISTRY,
    VERIFICATIONS,
    get_metrics_content_type,
    get_metrics_text,
)


def _sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0


class TestCounterMetrics:
    def test_duplicate_edges_written(self):
        before = _sample("ledger_duplicate_edges_written_total", {"outcome": "created"})

        DUPLICATE_EDGES_WRITTEN.labels(outcome="created").inc()

        assert _sample("ledger_duplicate_edges_written_total", {"outcome": "created"}) == (
            before + 1
        )

    def test_bulk_items_labels(self):
        labels = {"action": "verify", "status": "failed"}
        before = _sample("ledger_bulk_items_total", labels)

        BULK_ITEMS.labels(**labels).inc(3)

        assert _sample("ledger_bulk_items_total", labels) == before + 3


class TestHistogramMetrics:
    def test_calculation_duration_timer(self):
        labels = {"mode": "verified"}
        before = _sample("ledger_duplicate_calculation_duration_seconds_count", labels)

        with DUPLICATE_CALCULATION_DURATION.labels(**labels).time():
            pass

        assert _sample("ledger_duplicate_calculation_duration_seconds_count", labels) == (
            before + 1
        )

    def test_candidate_pool_size(self):
        before = _sample("ledger_duplicate_candidates_sum")

        DUPLICATE_CANDIDATES.observe(42)

        assert _sample("ledger_duplicate_candidates_sum") == before + 42


class TestMetricsUtilities:
    def test_get_metrics_text_contains_metric_names(self):
        VERIFICATIONS.labels(outcome="success")
        text = get_metrics_text().decode("utf-8")

        assert "ledger_verifications_total" in text
        assert "ledger_duplicate_calculation_duration_seconds" in text
        assert "# HELP" in text

    def test_get_metrics_content_type(self):
        assert get_metrics_content_type().startswith("text/plain")

    def test_registry_is_private(self):
        assert isinstance(REGISTRY, CollectorRegistry)

