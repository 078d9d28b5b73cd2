"""
Accounts Payable Domain Models (``ledger_modules.ap.models``).

Responsibility
--------------
Frozen value objects and status enums for vendor bills and vendor
payments.  These objects flow *out of* ``VendorPaymentService`` as
immutable snapshots.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O, no database.

Invariants enforced
-------------------
* All monetary fields use ``Decimal``.
* A bill's status is derived from its paid amount, never set directly
  (``bill_status_for``).
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

_ZERO = Decimal("0")


class VendorBillStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class VendorPaymentStatus(str, Enum):
    """Payment lifecycle.  Must align with ``workflows.VENDOR_PAYMENT_WORKFLOW.states``."""
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSED = "processed"
    REVERSED = "reversed"
    CANCELLED = "cancelled"


def bill_status_for(total_amount: Decimal, paid_amount: Decimal) -> VendorBillStatus:
    if paid_amount <= _ZERO:
        return VendorBillStatus.UNPAID
    if paid_amount >= total_amount:
        return VendorBillStatus.PAID
    return VendorBillStatus.PARTIALLY_PAID


@dataclass(frozen=True)
class VendorBill:
    id: UUID
    bill_number: str
    vendor_name: str
    bill_date: date
    total_amount: Decimal
    paid_amount: Decimal
    status: str

    @property
    def remaining(self) -> Decimal:
        return self.total_amount - self.paid_amount


@dataclass(frozen=True)
class VendorPayment:
    """Snapshot of a vendor payment and the ledger records it produced."""
    id: UUID
    bill_id: UUID
    amount: Decimal
    payment_date: date
    method: str
    status: str
    liquid_account_id: UUID | None = None
    journal_entry_id: UUID | None = None
    transaction_id: UUID | None = None
    reversal_journal_entry_id: UUID | None = None
    reversal_transaction_id: UUID | None = None
    reference: str | None = None
    notes: str | None = None
    processed_at: datetime | None = None
    reversed_at: datetime | None = None
