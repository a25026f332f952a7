"""structlog setup for the ledger.

Every entry carries the current correlation id and any keys bound with
`log_context`. Production runs render JSON lines on stderr; `json_output=False`
switches to the console renderer for local work.

    configure_logging(level="INFO")

    with log_context(bulk_action="unverify", research_entity_id=3):
        logger.info("bulk_item_failed", item_id=12, code="UnverificationAlreadyVerifiedError")
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, List

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from research_ledger.observability.context import get_correlation_id


def add_correlation_id_processor(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Inject the current correlation id ("none" outside any context)."""
    event_dict["correlation_id"] = get_correlation_id() or "none"
    return event_dict


def _processors(json_output: bool, add_timestamp: bool) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_correlation_id_processor,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    add_timestamp: bool = True,
) -> None:
    """Configure structlog globally.

    Args:
        level: Minimum level name; unknown names fall back to INFO.
        json_output: Render JSON lines instead of console output.
        add_timestamp: Add an ISO timestamp to each entry.
    """
    structlog.configure(
        processors=_processors(json_output, add_timestamp),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


@contextmanager
def log_context(**context: Any) -> Iterator[None]:
    """Bind keys to every entry logged inside the block."""
    with structlog.contextvars.bound_contextvars(**context):
        yield
