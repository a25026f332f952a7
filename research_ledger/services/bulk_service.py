"""Bulk actions over many research items.

Each item is processed in its own SAVEPOINT: a failing item is rolled back
and counted under its error code, the others are kept.

Example:
    verification = VerificationService(session)
    result = bulk_actions(
        session,
        lambda research_item_id, research_entity_id: verification.unverify(
            research_entity_id, research_item_id
        ),
        item_ids=[12, 15],
        research_entity_id=3,
    )
    # result.successes.ids == [12], result.failures == {"UnverificationAlreadyVerifiedError": 1}
"""

from typing import Any, Callable, Iterable, List, Optional

import structlog
from sqlalchemy import Select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from research_ledger.models.results import BulkResult
from research_ledger.observability.logging import log_context
from research_ledger.observability.metrics import BULK_ITEMS
from research_ledger.utils.exceptions import LedgerError, error_code

logger = structlog.get_logger()


def bulk_actions(
    session: Session,
    action: Callable[..., Any],
    item_ids: Optional[Iterable[int]] = None,
    select_all_query: Optional[Select] = None,
    item_key: str = "research_item_id",
    action_name: Optional[str] = None,
    **params: Any,
) -> BulkResult:
    """Run an action once per item.

    Args:
        session: Session whose transaction encloses the whole batch.
        action: Callable invoked as ``action(**params, **{item_key: id})``.
        item_ids: Ids to process; ignored when select_all_query is given.
        select_all_query: Query selecting the ids to process.
        item_key: Keyword under which each id is passed to the action.
        action_name: Label for metrics and logs; defaults to the action name.
        **params: Extra keyword arguments for every call.

    Returns:
        Success count and ids, and failure counts per error code.
    """
    name = action_name or getattr(action, "__name__", "action")
    result = BulkResult()

    if select_all_query is not None:
        try:
            with session.begin_nested():
                ids: List[int] = list(dict.fromkeys(session.scalars(select_all_query)))
        except SQLAlchemyError as e:
            logger.error("bulk_selection_failed", action=name, error=str(e))
            result.failures[error_code(e)] = 1
            return result
    else:
        ids = list(item_ids or [])

    with log_context(bulk_action=name):
        for item_id in ids:
            try:
                with session.begin_nested():
                    action(**params, **{item_key: item_id})
            except (LedgerError, SQLAlchemyError) as e:
                code = error_code(e)
                result.failures[code] = result.failures.get(code, 0) + 1
                BULK_ITEMS.labels(action=name, status="failed").inc()
                logger.info("bulk_item_failed", item_id=item_id, code=code)
                continue

            result.successes.count += 1
            result.successes.ids.append(item_id)
            BULK_ITEMS.labels(action=name, status="success").inc()

        logger.info(
            "bulk_action_complete",
            total=len(ids),
            succeeded=result.successes.count,
            failed=result.failure_count,
        )
    return result
