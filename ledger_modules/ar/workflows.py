"""
Accounts Receivable Workflows (``ledger_modules.ar.workflows``).

State machines for invoices and invoice refunds.  A refund can only be
processed once approved; ``processed -> reversed`` is its only backward
step.
"""

from ledger_kernel.domain.workflow import Guard, Transition, Workflow
from ledger_modules.ar.models import InvoiceStatus, RefundStatus

_ISSUED = InvoiceStatus.ISSUED.value
_PAID = InvoiceStatus.PAID.value
_INVOICE_CANCELLED = InvoiceStatus.CANCELLED.value

_PENDING = RefundStatus.PENDING.value
_APPROVED = RefundStatus.APPROVED.value
_PROCESSED = RefundStatus.PROCESSED.value
_REVERSED = RefundStatus.REVERSED.value
_CANCELLED = RefundStatus.CANCELLED.value


WITHIN_REFUNDABLE_AMOUNT = Guard(
    name="within_refundable_amount",
    description="Refund does not exceed invoice total less other refunds",
)


INVOICE_WORKFLOW = Workflow(
    name="ar_invoice",
    description="Invoice from issue to payment or cancellation",
    initial_state=_ISSUED,
    states=(_ISSUED, _PAID, _INVOICE_CANCELLED),
    terminal_states=(_INVOICE_CANCELLED,),
    transitions=(
        Transition(_ISSUED, _PAID, action="pay"),
        Transition(_ISSUED, _INVOICE_CANCELLED, action="cancel"),
        Transition(_PAID, _INVOICE_CANCELLED, action="cancel"),
    ),
)


REFUND_WORKFLOW = Workflow(
    name="ar_invoice_refund",
    description="Invoice refund from request to settlement",
    initial_state=_PENDING,
    states=(_PENDING, _APPROVED, _PROCESSED, _REVERSED, _CANCELLED),
    terminal_states=(_REVERSED, _CANCELLED),
    transitions=(
        Transition(_PENDING, _APPROVED, action="approve", guard=WITHIN_REFUNDABLE_AMOUNT),
        Transition(_APPROVED, _PROCESSED, action="process", guard=WITHIN_REFUNDABLE_AMOUNT, posts_entry=True),
        Transition(_PROCESSED, _REVERSED, action="reverse", posts_entry=True),
        Transition(_PENDING, _CANCELLED, action="cancel"),
        Transition(_APPROVED, _CANCELLED, action="cancel"),
    ),
)
