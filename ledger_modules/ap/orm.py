"""
Accounts Payable ORM Models (``ledger_modules.ap.orm``).

Responsibility
--------------
SQLAlchemy persistence for vendor bills and vendor payments.  Vendor
payment history lives in one authoritative table (``ap_vendor_payments``).

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``ledger_kernel``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase
from ledger_modules.ap.models import VendorBill, VendorPayment


class VendorBillModel(TrackedBase):
    """
    ORM model for vendor bills.

    Guarantees:
        - bill_number is unique.
        - paid_amount / status are an aggregate of PROCESSED payments,
          refreshed after each payment is processed or reversed.
    """

    __tablename__ = "ap_vendor_bills"

    __table_args__ = (
        UniqueConstraint("bill_number", name="uq_ap_vendor_bills_number"),
        Index("idx_ap_vendor_bills_status", "status"),
    )

    bill_number: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    bill_date: Mapped[date] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="unpaid")

    payments: Mapped[list["VendorPaymentModel"]] = relationship(
        back_populates="bill",
        order_by="VendorPaymentModel.created_at",
    )

    def to_dto(self) -> VendorBill:
        return VendorBill(
            id=self.id,
            bill_number=self.bill_number,
            vendor_name=self.vendor_name,
            bill_date=self.bill_date,
            total_amount=self.total_amount,
            paid_amount=self.paid_amount,
            status=self.status,
        )


class VendorPaymentModel(TrackedBase):
    """
    ORM model for vendor payments.

    Guarantees:
        - status changes only through VENDOR_PAYMENT_WORKFLOW.
        - journal_entry_id / transaction_id are set exactly when status
          first becomes ``processed``; the reversal_* pair when it becomes
          ``reversed``.
    """

    __tablename__ = "ap_vendor_payments"

    __table_args__ = (
        Index("idx_ap_vendor_payments_bill", "bill_id"),
        Index("idx_ap_vendor_payments_status", "status"),
        Index("idx_ap_vendor_payments_date", "payment_date"),
    )

    bill_id: Mapped[UUID] = mapped_column(ForeignKey("ap_vendor_bills.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String(30), nullable=False)
    liquid_account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("liquid_accounts.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )
    transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("liquid_transactions.id"), nullable=True
    )
    reversal_journal_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )
    reversal_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("liquid_transactions.id"), nullable=True
    )
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reversed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    bill: Mapped[VendorBillModel] = relationship(back_populates="payments")

    def to_dto(self) -> VendorPayment:
        return VendorPayment(
            id=self.id,
            bill_id=self.bill_id,
            amount=self.amount,
            payment_date=self.payment_date,
            method=self.method,
            status=self.status,
            liquid_account_id=self.liquid_account_id,
            journal_entry_id=self.journal_entry_id,
            transaction_id=self.transaction_id,
            reversal_journal_entry_id=self.reversal_journal_entry_id,
            reversal_transaction_id=self.reversal_transaction_id,
            reference=self.reference,
            notes=self.notes,
            processed_at=self.processed_at,
            reversed_at=self.reversed_at,
        )
