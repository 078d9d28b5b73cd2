"""
Accounts Receivable Domain Models (``ledger_modules.ar.models``).

Frozen snapshots and status enums for invoices and invoice refunds.
Monetary fields are ``Decimal``.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class InvoiceStatus(str, Enum):
    ISSUED = "issued"
    PAID = "paid"
    CANCELLED = "cancelled"


class RefundStatus(str, Enum):
    """Refund lifecycle.  Must align with ``workflows.REFUND_WORKFLOW.states``."""
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSED = "processed"
    REVERSED = "reversed"
    CANCELLED = "cancelled"


class RefundType(str, Enum):
    FULL = "full"
    PARTIAL = "partial"


@dataclass(frozen=True)
class Invoice:
    id: UUID
    invoice_number: str
    invoice_date: date
    total_amount: Decimal
    total_refunded: Decimal
    status: str
    sales_order_id: UUID | None = None
    customer_name: str | None = None


@dataclass(frozen=True)
class InvoiceRefund:
    id: UUID
    invoice_id: UUID
    amount: Decimal
    refund_type: str
    method: str
    status: str
    refund_date: date
    reason: str | None = None
    liquid_account_id: UUID | None = None
    journal_entry_id: UUID | None = None
    transaction_id: UUID | None = None
    reversal_journal_entry_id: UUID | None = None
    reversal_transaction_id: UUID | None = None
    processed_at: datetime | None = None
    reversed_at: datetime | None = None
