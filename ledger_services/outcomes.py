"""
Shared helpers for module handler results and best-effort steps.

Used by ledger_modules/*/service.py: the fatal core commits first, then
each downstream step runs through ``run_best_effort`` in its own
transaction so a failing aggregate never undoes a committed money movement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.exceptions import DependencyFailure
from ledger_kernel.logging_config import get_logger
from ledger_services.settlement import SettlementResult

logger = get_logger("services.outcomes")


@dataclass(frozen=True)
class ProcessOutcome:
    """Result of a handler whose fatal core has committed."""

    record_id: UUID
    status: str
    settlement: SettlementResult | None = None
    warnings: tuple[DependencyFailure, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


def run_best_effort(
    session: Session,
    step: str,
    entity_type: str,
    record_id: UUID | str,
    action: Callable[[], Any],
) -> DependencyFailure | None:
    """
    Run ``action`` and commit it on its own.

    Returns None on success.  Any exception rolls back this step only and
    comes back as a DependencyFailure after being logged with its step and
    record id.
    """
    try:
        action()
        session.commit()
    except Exception as exc:
        session.rollback()
        failure = DependencyFailure(step, entity_type, str(record_id), str(exc) or type(exc).__name__)
        logger.warning(
            "downstream_update_failed",
            extra={
                "step": step,
                "entity_type": entity_type,
                "failed_record_id": str(record_id),
                "error_type": type(exc).__name__,
            },
            exc_info=True,
        )
        return failure
    return None
