"""Observability: correlation ids, structured logging, Prometheus metrics.

Usage:
    from research_ledger.observability import (
        correlation_id_context,
        get_metrics_text,
        new_correlation_id,
    )

    with correlation_id_context(new_correlation_id("verify")):
        service.verify_research_item(request)
    payload = get_metrics_text()
"""

from research_ledger.observability.context import (
    clear_correlation_id,
    correlation_id_context,
    get_correlation_id,
    new_correlation_id,
    set_correlation_id,
)
from research_ledger.observability.logging import (
    add_correlation_id_processor,
    configure_logging,
    log_context,
)
from research_ledger.observability.metrics import (
    # Counters
    DUPLICATE_CALCULATIONS,
    DUPLICATE_EDGES_WRITTEN,
    VERIFICATIONS,
    UNVERIFICATIONS,
    SUGGESTIONS_CREATED,
    BULK_ITEMS,
    # Histograms
    DUPLICATE_CALCULATION_DURATION,
    DUPLICATE_CANDIDATES,
    # Registry and utilities
    REGISTRY,
    get_metrics_text,
)

__all__ = [
    # Context
    "clear_correlation_id",
    "correlation_id_context",
    "get_correlation_id",
    "new_correlation_id",
    "set_correlation_id",
    # Logging
    "add_correlation_id_processor",
    "configure_logging",
    "log_context",
    # Counters
    "DUPLICATE_CALCULATIONS",
    "DUPLICATE_EDGES_WRITTEN",
    "VERIFICATIONS",
    "UNVERIFICATIONS",
    "SUGGESTIONS_CREATED",
    "BULK_ITEMS",
    # Histograms
    "DUPLICATE_CALCULATION_DURATION",
    "DUPLICATE_CANDIDATES",
    # Utilities
    "REGISTRY",
    "get_metrics_text",
]
