"""
Accounts Receivable ORM Models (``ledger_modules.ar.orm``).

Responsibility
--------------
SQLAlchemy persistence for invoices and invoice refunds.

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
from ledger_modules.ar.models import Invoice, InvoiceRefund


class InvoiceModel(TrackedBase):
    """
    ORM model for customer invoices.

    Guarantees:
        - invoice_number is unique.
        - total_refunded is the sum of PROCESSED refunds, refreshed after
          each refund is processed or reversed.
    """

    __tablename__ = "ar_invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_ar_invoices_number"),
        Index("idx_ar_invoices_order", "sales_order_id"),
        Index("idx_ar_invoices_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    sales_order_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("sales_orders.id"), nullable=True
    )
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    invoice_date: Mapped[date] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_refunded: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="issued")

    refunds: Mapped[list["InvoiceRefundModel"]] = relationship(
        back_populates="invoice",
        order_by="InvoiceRefundModel.created_at",
    )

    def to_dto(self) -> Invoice:
        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            invoice_date=self.invoice_date,
            total_amount=self.total_amount,
            total_refunded=self.total_refunded,
            status=self.status,
            sales_order_id=self.sales_order_id,
            customer_name=self.customer_name,
        )


class InvoiceRefundModel(TrackedBase):
    """
    ORM model for invoice refunds.

    Guarantees:
        - status changes only through REFUND_WORKFLOW.
        - linkage ids are written in the same transaction as the status
          change that produced them.
    """

    __tablename__ = "ar_invoice_refunds"

    __table_args__ = (
        Index("idx_ar_refunds_invoice", "invoice_id"),
        Index("idx_ar_refunds_status", "status"),
        Index("idx_ar_refunds_date", "refund_date"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("ar_invoices.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    refund_type: Mapped[str] = mapped_column(String(10), nullable=False)
    method: Mapped[str] = mapped_column(String(30), nullable=False)
    liquid_account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("liquid_accounts.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    refund_date: Mapped[date] = mapped_column(nullable=False)
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
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reversed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    invoice: Mapped[InvoiceModel] = relationship(back_populates="refunds")

    def to_dto(self) -> InvoiceRefund:
        return InvoiceRefund(
            id=self.id,
            invoice_id=self.invoice_id,
            amount=self.amount,
            refund_type=self.refund_type,
            method=self.method,
            status=self.status,
            refund_date=self.refund_date,
            reason=self.reason,
            liquid_account_id=self.liquid_account_id,
            journal_entry_id=self.journal_entry_id,
            transaction_id=self.transaction_id,
            reversal_journal_entry_id=self.reversal_journal_entry_id,
            reversal_transaction_id=self.reversal_transaction_id,
            processed_at=self.processed_at,
            reversed_at=self.reversed_at,
        )
