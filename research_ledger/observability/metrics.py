"""Prometheus metrics definitions for the research ledger.

Defines counters and histograms for monitoring:
- Duplicate calculation volume and latency
- Verification and unverification outcomes
- Suggestion creation
- Bulk action item outcomes

Usage:
    from research_ledger.observability.metrics import (
        DUPLICATE_EDGES_WRITTEN,
        VERIFICATIONS,
        DUPLICATE_CALCULATION_DURATION,
    )

    DUPLICATE_EDGES_WRITTEN.labels(outcome="created").inc()

    with DUPLICATE_CALCULATION_DURATION.labels(mode="verified").time():
        duplicate_service.calculate(item_id, entity_id)

The hosting application exposes them with `get_metrics_text()`.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry to avoid conflicts with the host application's registry
REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# COUNTERS
# =============================================================================

DUPLICATE_CALCULATIONS = Counter(
    name="ledger_duplicate_calculations_total",
    documentation="Total duplicate calculations run",
    labelnames=["mode"],  # verified, draftAndSuggested
    registry=REGISTRY,
)

DUPLICATE_EDGES_WRITTEN = Counter(
    name="ledger_duplicate_edges_written_total",
    documentation="Duplicate edges written by calculation or dismissal",
    labelnames=["outcome"],  # created, kept_false, set_false
    registry=REGISTRY,
)

VERIFICATIONS = Counter(
    name="ledger_verifications_total",
    documentation="Verification attempts by outcome",
    labelnames=["outcome"],  # success or error code
    registry=REGISTRY,
)

UNVERIFICATIONS = Counter(
    name="ledger_unverifications_total",
    documentation="Unverification attempts by outcome",
    labelnames=["outcome"],  # success, item_deleted, or error code
    registry=REGISTRY,
)

SUGGESTIONS_CREATED = Counter(
    name="ledger_suggestions_created_total",
    documentation="Suggested rows created",
    labelnames=["type"],  # alias, manual
    registry=REGISTRY,
)

BULK_ITEMS = Counter(
    name="ledger_bulk_items_total",
    documentation="Items processed by bulk actions",
    labelnames=["action", "status"],  # verify/unverify/..., success/failed
    registry=REGISTRY,
)

# =============================================================================
# HISTOGRAMS
# =============================================================================

CALCULATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, float("inf"))

DUPLICATE_CALCULATION_DURATION = Histogram(
    name="ledger_duplicate_calculation_duration_seconds",
    documentation="Duplicate calculation duration in seconds",
    labelnames=["mode"],
    buckets=CALCULATION_BUCKETS,
    registry=REGISTRY,
)

DUPLICATE_CANDIDATES = Histogram(
    name="ledger_duplicate_candidates",
    documentation="Candidate pool size per duplicate calculation",
    buckets=(0, 1, 5, 10, 50, 100, 500, 1000, 5000, float("inf")),
    registry=REGISTRY,
)


def get_metrics_text() -> bytes:
    """Generate Prometheus metrics in text format.

    Returns:
        UTF-8 encoded metrics in Prometheus exposition format.
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Content-Type header value for the metrics response."""
    return CONTENT_TYPE_LATEST

