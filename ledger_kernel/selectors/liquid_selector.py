"""
Module: ledger_kernel.selectors.liquid_selector
Responsibility: Read-only queries over liquid accounts and their
    transaction history (bank / cash / UPI statements).
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.models.liquid_account import LiquidAccount, LiquidTransaction
from ledger_kernel.selectors.base import BaseSelector, Page


@dataclass(frozen=True)
class LiquidAccountView:
    id: UUID
    name: str
    account_type: str
    current_balance: Decimal
    is_active: bool
    allow_overdraft: bool


@dataclass(frozen=True)
class LiquidTransactionView:
    id: UUID
    liquid_account_id: UUID
    amount: Decimal
    direction: str
    transaction_type: str
    description: str
    reference: str | None
    source_type: str | None
    source_id: UUID | None
    journal_entry_id: UUID | None
    reversal_of_id: UUID | None
    balance_after: Decimal
    transaction_date: date


def _txn_view(txn: LiquidTransaction) -> LiquidTransactionView:
    return LiquidTransactionView(
        id=txn.id,
        liquid_account_id=txn.liquid_account_id,
        amount=txn.amount,
        direction=txn.direction,
        transaction_type=txn.transaction_type,
        description=txn.description,
        reference=txn.reference,
        source_type=txn.source_type,
        source_id=txn.source_id,
        journal_entry_id=txn.journal_entry_id,
        reversal_of_id=txn.reversal_of_id,
        balance_after=txn.balance_after,
        transaction_date=txn.transaction_date,
    )


class LiquidSelector(BaseSelector):
    """Liquid account listings and transaction history."""

    def __init__(self, session: Session):
        super().__init__(session)

    def list_accounts(self, include_inactive: bool = False) -> list[LiquidAccountView]:
        query = select(LiquidAccount).order_by(LiquidAccount.account_type, LiquidAccount.name)
        if not include_inactive:
            query = query.where(LiquidAccount.is_active.is_(True))
        return [
            LiquidAccountView(
                id=a.id,
                name=a.name,
                account_type=a.account_type,
                current_balance=a.current_balance,
                is_active=a.is_active,
                allow_overdraft=a.allow_overdraft,
            )
            for a in self.session.execute(query).scalars().all()
        ]

    def transactions_for_source(self, source_type: str, source_id: UUID) -> list[LiquidTransactionView]:
        rows = self.session.execute(
            select(LiquidTransaction)
            .where(LiquidTransaction.source_type == source_type)
            .where(LiquidTransaction.source_id == source_id)
            .order_by(LiquidTransaction.created_at)
        ).scalars().all()
        return [_txn_view(t) for t in rows]

    def list_transactions(
        self,
        account_id: UUID | None = None,
        start: date | None = None,
        end: date | None = None,
        transaction_type: str | None = None,
        source_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Page[LiquidTransactionView]:
        limit, offset = self._clamp(limit, offset)
        query = select(LiquidTransaction)
        if account_id is not None:
            query = query.where(LiquidTransaction.liquid_account_id == account_id)
        if start is not None:
            query = query.where(LiquidTransaction.transaction_date >= start)
        if end is not None:
            query = query.where(LiquidTransaction.transaction_date <= end)
        if transaction_type is not None:
            query = query.where(LiquidTransaction.transaction_type == transaction_type)
        if source_type is not None:
            query = query.where(LiquidTransaction.source_type == source_type)

        total = self._count(query)
        rows = self.session.execute(
            query.order_by(
                LiquidTransaction.transaction_date.desc(),
                LiquidTransaction.created_at.desc(),
            )
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return Page(items=tuple(_txn_view(t) for t in rows), total=total, limit=limit, offset=offset)
