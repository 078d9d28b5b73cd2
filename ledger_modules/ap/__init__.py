"""
Accounts Payable Module (``ledger_modules.ap``).

Vendor bills and the vendor payment lifecycle
(pending / approved -> processed -> reversed, or cancelled).

Processing a payment takes the money out of a cash, bank, or UPI account
and posts Dr Accounts Payable / Cr that account's GL code in the same
transaction.  The bill's paid amount follows as a best-effort refresh.
"""

from ledger_modules.ap.models import (
    VendorBill,
    VendorBillStatus,
    VendorPayment,
    VendorPaymentStatus,
)
from ledger_modules.ap.service import VendorPaymentService
from ledger_modules.ap.workflows import VENDOR_PAYMENT_WORKFLOW

__all__ = [
    "VENDOR_PAYMENT_WORKFLOW",
    "VendorBill",
    "VendorBillStatus",
    "VendorPayment",
    "VendorPaymentService",
    "VendorPaymentStatus",
]
