"""
ledger_services -- Orchestration over the ledger kernel.

Responsibility:
    Money movement shared by the module handlers (``settlement``), status
    transitions (``workflow_executor``), handler results and best-effort
    steps (``outcomes``), retry of lost balance races (``retry``), and the
    collaborator-facing command facade (``commands``).

Architecture position:
    Services -- stateful orchestration over ``ledger_kernel``.
    ``ledger_modules`` handlers import the shared helpers from here; only
    ``commands`` imports ``ledger_modules``, so it is not re-exported.

    Dependency direction:
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_kernel/   -> ledger_services/ (FORBIDDEN)
"""

from ledger_services.outcomes import ProcessOutcome, run_best_effort
from ledger_services.retry import run_with_retry
from ledger_services.settlement import PaymentMethod, SettlementResult, SettlementService
from ledger_services.workflow_executor import GuardExecutor, TransitionResult, WorkflowExecutor

__all__ = [
    "GuardExecutor",
    "PaymentMethod",
    "ProcessOutcome",
    "SettlementResult",
    "SettlementService",
    "TransitionResult",
    "WorkflowExecutor",
    "run_best_effort",
    "run_with_retry",
]
