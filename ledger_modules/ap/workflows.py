"""
Accounts Payable Workflows (``ledger_modules.ap.workflows``).

Responsibility
--------------
State machine for the vendor payment lifecycle.  ``posts_entry=True``
marks transitions that move money and post a journal entry.

Architecture position
---------------------
**Modules layer** -- declarative workflow definitions, executed by
``ledger_services.workflow_executor.WorkflowExecutor``.
"""

from ledger_kernel.domain.workflow import Guard, Transition, Workflow
from ledger_modules.ap.models import VendorPaymentStatus

_PENDING = VendorPaymentStatus.PENDING.value
_APPROVED = VendorPaymentStatus.APPROVED.value
_PROCESSED = VendorPaymentStatus.PROCESSED.value
_REVERSED = VendorPaymentStatus.REVERSED.value
_CANCELLED = VendorPaymentStatus.CANCELLED.value


WITHIN_BILL_BALANCE = Guard(
    name="within_bill_balance",
    description="Payment amount does not exceed the bill's unpaid balance",
)


VENDOR_PAYMENT_WORKFLOW = Workflow(
    name="ap_vendor_payment",
    description="Vendor payment from request to settlement",
    initial_state=_PENDING,
    states=(_PENDING, _APPROVED, _PROCESSED, _REVERSED, _CANCELLED),
    terminal_states=(_REVERSED, _CANCELLED),
    transitions=(
        Transition(_PENDING, _APPROVED, action="approve"),
        Transition(_PENDING, _PROCESSED, action="process", guard=WITHIN_BILL_BALANCE, posts_entry=True),
        Transition(_APPROVED, _PROCESSED, action="process", guard=WITHIN_BILL_BALANCE, posts_entry=True),
        Transition(_PROCESSED, _REVERSED, action="reverse", posts_entry=True),
        Transition(_PENDING, _CANCELLED, action="cancel"),
        Transition(_APPROVED, _CANCELLED, action="cancel"),
    ),
)
