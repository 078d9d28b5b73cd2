"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    single source of financial truth in this system.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - entry_number is unique (allocated from a locked sequence counter).
    - A POSTED entry balances: sum(debit_amount) == sum(credit_amount).
      Checked by JournalService before the status flip; is_balanced is the
      read-side convenience.
    - A line carries exactly one non-zero, non-negative side (JournalService
      via domain/entry_rules.py).
    - A POSTED entry is never updated or deleted; reversal_of_id links the
      compensating sibling entry.

Failure modes:
    - IntegrityError on duplicate entry_number.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    DRAFT entries are editable and never counted by the projector.  POSTED
    entries are permanent; a reversal is a new POSTED sibling entry.
    """

    DRAFT = "draft"
    POSTED = "posted"


class JournalEntry(TrackedBase):
    """
    A double-entry journal entry.

    Contract:
        Owns an ordered list of JournalLines (line_number ascending).
        total_amount is the sum of debit legs, refreshed whenever lines change.

    Guarantees:
        - A reversal has reversal_of_id set and is POSTED at creation.
        - System entries (from payments, refunds, transfers) carry
          source_type / source_id of the business record.
    """

    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("entry_number", name="uq_journal_entry_number"),
        Index("idx_journal_entry_date", "entry_date"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_source", "source_type", "source_id"),
    )

    entry_number: Mapped[str] = mapped_column(String(30), nullable=False)

    entry_date: Mapped[date] = mapped_column(nullable=False)

    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JournalEntryStatus.DRAFT.value,
    )

    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    source_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    posted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_number",
    )

    reversal_of: Mapped["JournalEntry | None"] = relationship(
        remote_side="JournalEntry.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} status={self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit_amount for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit_amount for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        """Exact equality of debit and credit totals."""
        return self.total_debits == self.total_credits


class JournalLine(Base):
    """
    One leg of a journal entry.

    Contract:
        Exactly one of debit_amount / credit_amount is non-zero; both are
        non-negative.
    """

    __tablename__ = "journal_lines"
    __table_args__ = (
        Index("idx_line_entry", "entry_id"),
        Index("idx_line_account", "account_id"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    debit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    credit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<JournalLine {self.line_number} Dr {self.debit_amount} "
            f"Cr {self.credit_amount}>"
        )

    @property
    def is_debit(self) -> bool:
        return self.debit_amount > 0
