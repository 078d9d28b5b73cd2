"""
ledger_services.retry -- Whole-unit-of-work retry for lost balance races.

A unit of work is a zero-argument callable that opens its own session,
does its work, and commits.  When it loses an optimistic-lock race it has
already rolled back, so running it again from the top is safe.  Database
lock and statement timeouts surface as OperationTimeoutError and are not
retried.
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError

from ledger_config.schema import RetryPolicy
from ledger_kernel.exceptions import OperationTimeoutError, OptimisticLockError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

# Driver messages for lock_timeout / statement_timeout (PostgreSQL) and the
# busy timeout (SQLite).
_TIMEOUT_MARKERS = (
    "lock timeout",
    "statement timeout",
    "canceling statement",
    "database is locked",
)


def is_timeout(exc: OperationalError) -> bool:
    text = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in text for marker in _TIMEOUT_MARKERS)


def run_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    operation_name: str,
    record_id: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation`` until it succeeds or the retry budget is spent.

    Raises:
        OptimisticLockError: still conflicting after ``policy.max_attempts``.
        OperationTimeoutError: the database gave up waiting for a lock.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return operation()
        except OptimisticLockError as exc:
            if attempt >= policy.max_attempts:
                logger.warning(
                    "retry_exhausted",
                    extra={
                        "operation": operation_name,
                        "attempts": attempt,
                        "conflict_record_id": exc.record_id,
                    },
                )
                raise
            logger.info(
                "retrying_after_conflict",
                extra={
                    "operation": operation_name,
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                },
            )
            sleep(policy.backoff_seconds * attempt)
        except OperationalError as exc:
            if is_timeout(exc):
                logger.warning(
                    "operation_timed_out",
                    extra={"operation": operation_name, "attempt": attempt},
                )
                raise OperationTimeoutError(operation_name, record_id) from exc
            raise
    raise AssertionError("unreachable")
