"""Correlation ids for grouping the log lines of one ledger operation.

A verification fans out into duplicate calculations, suggestion updates and
alias writes; all of them log under the correlation id of the command or
bulk action that started the work.

    with correlation_id_context(new_correlation_id("bulk-verify")):
        bulk_actions(session, verify, item_ids=ids)
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar("ledger_correlation_id", default=None)


def new_correlation_id(prefix: Optional[str] = None) -> str:
    """Return a fresh id, e.g. ``cli-db_init-3f2a9c1b7d04``."""
    if prefix:
        return f"{prefix}-{uuid.uuid4().hex[:12]}"
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(corr_id: Optional[str] = None) -> str:
    """Set the id for the current context, generating one when omitted."""
    corr_id = corr_id or new_correlation_id()
    _correlation_id.set(corr_id)
    return corr_id


def clear_correlation_id() -> None:
    _correlation_id.set(None)


@contextmanager
def correlation_id_context(corr_id: Optional[str] = None) -> Iterator[str]:
    """Run a block under a correlation id; the previous one is restored on exit."""
    token = _correlation_id.set(corr_id or new_correlation_id())
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)
