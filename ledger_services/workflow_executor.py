"""
ledger_services.workflow_executor -- Workflow transition execution.

Responsibility:
    The only code path that changes the status of a business record.
    Finds the transition for (current status, action), evaluates its guard,
    and returns the target status.  Module services call
    ``execute_transition`` before any balance mutation, so a record already
    past the requested step is rejected with a StateConflictError rather
    than processed twice.

Architecture position:
    Services layer.  Imports kernel domain value objects and exceptions.

Invariants enforced:
    - A status changes only along a declared Transition.
    - A guarded transition fires only when its guard evaluator returns True.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

from ledger_kernel.domain.workflow import Guard, Transition, Workflow
from ledger_kernel.exceptions import GuardFailedError, InvalidTransitionError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.workflow_executor")

OUTCOME_SUCCESS = "success"
OUTCOME_GUARD_FAILED = "guard_failed"
OUTCOME_NO_TRANSITION = "no_transition"


@dataclass(frozen=True)
class TransitionResult:
    from_state: str
    to_state: str
    action: str
    posts_entry: bool


def _emit_workflow_trace(
    workflow_name: str,
    action: str,
    entity_type: str,
    entity_id: UUID | str,
    from_state: str,
    outcome: str,
    duration_ms: float,
    to_state: str | None = None,
    reason: str | None = None,
) -> None:
    record: dict[str, Any] = {
        "workflow": workflow_name,
        "action": action,
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "from_state": from_state,
        "outcome": outcome,
        "duration_ms": round(duration_ms, 3),
    }
    if to_state is not None:
        record["to_state"] = to_state
    if reason is not None:
        record["reason"] = reason
    logger.info("workflow_transition", extra=record)


# ---------------------------------------------------------------------------
# Guard evaluation
# ---------------------------------------------------------------------------


def _get(context: Any, key: str, default: Any = None) -> Any:
    if context is None:
        return default
    if isinstance(context, dict):
        return context.get(key, default)
    return getattr(context, key, default)


def _within_remaining(context: Any) -> bool:
    """amount <= remaining, both Decimals in the context."""
    amount = _get(context, "amount")
    remaining = _get(context, "remaining")
    if amount is None or remaining is None:
        return False
    return Decimal(amount) <= Decimal(remaining)


class GuardExecutor:
    """Registry of guard name -> evaluator(context) -> bool."""

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[Any], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[Any], bool]) -> None:
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: Any = None) -> bool:
        evaluator = self._evaluators.get(guard.name)
        if evaluator is None:
            logger.warning("guard_not_registered", extra={"guard": guard.name})
            return False
        return evaluator(context)


def default_guard_executor() -> GuardExecutor:
    executor = GuardExecutor()
    executor.register("within_bill_balance", _within_remaining)
    executor.register("within_refundable_amount", _within_remaining)
    return executor


class WorkflowExecutor:
    """Validates and records status transitions for module workflows."""

    def __init__(self, guard_executor: GuardExecutor | None = None) -> None:
        self._guards = guard_executor or default_guard_executor()

    def execute_transition(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: UUID | str,
        current_state: str,
        action: str,
        context: Any = None,
    ) -> TransitionResult:
        """
        Return the transition for ``action`` from ``current_state``.

        Raises:
            InvalidTransitionError: no such transition (includes repeats of
                an already-completed step).
            GuardFailedError: the transition's guard does not hold.
        """
        t0 = time.monotonic()
        transition: Transition | None = workflow.find_transition(current_state, action)
        if transition is None:
            _emit_workflow_trace(
                workflow.name, action, entity_type, entity_id, current_state,
                OUTCOME_NO_TRANSITION, (time.monotonic() - t0) * 1000,
            )
            raise InvalidTransitionError(entity_type, str(entity_id), current_state, action)

        if transition.guard is not None and not self._guards.evaluate(transition.guard, context):
            _emit_workflow_trace(
                workflow.name, action, entity_type, entity_id, current_state,
                OUTCOME_GUARD_FAILED, (time.monotonic() - t0) * 1000,
                reason=transition.guard.name,
            )
            raise GuardFailedError(
                entity_type, str(entity_id), transition.guard.name, transition.guard.description
            )

        _emit_workflow_trace(
            workflow.name, action, entity_type, entity_id, current_state,
            OUTCOME_SUCCESS, (time.monotonic() - t0) * 1000,
            to_state=transition.to_state,
        )
        return TransitionResult(
            from_state=current_state,
            to_state=transition.to_state,
            action=action,
            posts_entry=transition.posts_entry,
        )
