"""
Accounts Receivable Module (``ledger_modules.ar``).

Invoices and invoice refunds.  A refund moves from pending through
approved to processed (money paid out, Dr Sales Returns / Cr cash GL) and
may later be reversed, which returns the money and posts the mirror
entry.
"""

from ledger_modules.ar.models import (
    Invoice,
    InvoiceRefund,
    InvoiceStatus,
    RefundStatus,
    RefundType,
)
from ledger_modules.ar.service import RefundService
from ledger_modules.ar.workflows import INVOICE_WORKFLOW, REFUND_WORKFLOW

__all__ = [
    "INVOICE_WORKFLOW",
    "REFUND_WORKFLOW",
    "Invoice",
    "InvoiceRefund",
    "InvoiceStatus",
    "RefundService",
    "RefundStatus",
    "RefundType",
]
