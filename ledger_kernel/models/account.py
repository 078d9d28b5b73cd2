"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts -- the target of
    every journal line.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain classification in domain/chart.py.

Invariants enforced:
    - code is unique.
    - subtype belongs to account_type; normal_balance follows account_type
      (both enforced by ChartOfAccountsService on create).
    - code, account_type and subtype are frozen once a POSTED line references
      the account (ChartOfAccountsService.update_account).

Failure modes:
    - AccountNotFoundError when a journal line references an unknown code.
    - AccountReferencedError on reclassifying a referenced account.
"""

from uuid import UUID

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.chart import AccountType, NormalBalance

__all__ = ["Account", "AccountType", "NormalBalance"]


class Account(TrackedBase):
    """
    Chart of Accounts entry.

    Contract:
        Account.code is globally unique.  account_type is one of ASSET,
        LIABILITY, EQUITY, REVENUE, EXPENSE; subtype groups the account
        inside its statement section.

    Non-goals:
        - Does NOT hold a balance.  Balances are always projected from
          posted journal lines by LedgerSelector.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_active", "is_active"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[str] = mapped_column(String(20), nullable=False)

    subtype: Mapped[str] = mapped_column(String(40), nullable=False)

    normal_balance: Mapped[str] = mapped_column(String(10), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def is_balance_sheet(self) -> bool:
        return self.account_type in (
            AccountType.ASSET,
            AccountType.LIABILITY,
            AccountType.EQUITY,
        )
