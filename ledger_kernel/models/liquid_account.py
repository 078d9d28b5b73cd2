"""
Module: ledger_kernel.models.liquid_account
Responsibility: ORM persistence for liquid accounts (cash drawers, bank
    accounts, UPI accounts) and their append-only transaction history.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - current_balance == sum(LiquidTransaction.amount) for the account, at
      all times.  The opening balance is itself a transaction row.
      Maintained by LiquidAccountService.apply_mutation, the only writer.
    - LiquidAccount.version is the optimistic lock column
      (``version_id_col``): an UPDATE that lost a race matches zero rows and
      raises StaleDataError.
    - LiquidTransaction rows are append-only.  A reversal is a new row with
      the opposite sign and reversal_of_id set.

Failure modes:
    - StaleDataError on a concurrent balance write (translated to
      OptimisticLockError by the service).
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, TrackedBase, UUIDString


class LiquidAccountType(str, Enum):
    """Kinds of liquid account."""

    CASH = "cash"
    BANK = "bank"
    UPI = "upi"


class TransactionDirection(str, Enum):
    INFLOW = "inflow"
    OUTFLOW = "outflow"


class LiquidTransactionType(str, Enum):
    """Business cause of a balance mutation."""

    OPENING_BALANCE = "opening_balance"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    VENDOR_PAYMENT = "vendor_payment"
    VENDOR_PAYMENT_REVERSAL = "vendor_payment_reversal"
    REFUND = "refund"
    REFUND_REVERSAL = "refund_reversal"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"


class LiquidAccount(TrackedBase):
    """
    A cash drawer, bank account, or UPI account with a running balance.

    Contract:
        current_balance is a materialized total and is never assigned
        directly outside LiquidAccountService.  gl_account_id names the
        chart account (CASH_AND_BANK subtype) that journal entries for this
        account's movements post to.

    Guarantees:
        - version increments on every UPDATE.
        - allow_overdraft is only honoured for BANK accounts.
    """

    __tablename__ = "liquid_accounts"
    __table_args__ = (
        Index("idx_liquid_account_type", "account_type"),
        Index("idx_liquid_account_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[str] = mapped_column(String(10), nullable=False)

    gl_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    current_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    allow_overdraft: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    account_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<LiquidAccount {self.name} ({self.account_type}) balance={self.current_balance}>"

    @property
    def overdraft_permitted(self) -> bool:
        return self.account_type == LiquidAccountType.BANK and self.allow_overdraft


class LiquidTransaction(Base):
    """
    Immutable record of a single balance mutation.

    Contract:
        amount is signed (positive = inflow, negative = outflow) and
        direction mirrors the sign.  balance_after is the account balance
        immediately after this mutation.
    """

    __tablename__ = "liquid_transactions"
    __table_args__ = (
        Index("idx_liquid_txn_account", "liquid_account_id"),
        Index("idx_liquid_txn_source", "source_type", "source_id"),
        Index("idx_liquid_txn_date", "transaction_date"),
    )

    liquid_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("liquid_accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    direction: Mapped[str] = mapped_column(String(10), nullable=False)

    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)

    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    source_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Pre-allocated id of the journal entry posted in the same transaction.
    # No FK: the mutation row is flushed before the entry is inserted.
    journal_entry_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("liquid_transactions.id"),
        nullable=True,
    )

    balance_after: Mapped[Decimal] = mapped_column(nullable=False)

    transaction_date: Mapped[date] = mapped_column(nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return f"<LiquidTransaction {self.transaction_type} {self.amount}>"
