"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: The Account Balance Projector.  Point-in-time and period
    balances, trial balance, and subtype section totals, all derived from
    POSTED journal lines at query time.
Architecture position: Kernel > Selectors.  Feeds the reporting module.

Invariants enforced:
    - Only POSTED entries contribute.  DRAFT entries never do.
    - No stored balances: every figure is recomputed per call, so identical
      inputs over identical ledger state return identical results.
    - Natural balance sign follows the account type (debit - credit for
      ASSET/EXPENSE, credit - debit otherwise).

Failure modes:
    - AccountNotFoundError from balance_as_of for an unknown account.
    - Zero balances when nothing is posted.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.chart import AccountType, natural_balance
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.selectors.base import BaseSelector, to_decimal

_ZERO = Decimal("0")


@dataclass(frozen=True)
class AccountBalance:
    """Posted debit/credit totals for one account."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    subtype: str
    debit_total: Decimal
    credit_total: Decimal
    line_count: int = 0

    @property
    def balance(self) -> Decimal:
        """Natural balance (positive on the account's normal side)."""
        return natural_balance(self.account_type, self.debit_total, self.credit_total)


@dataclass(frozen=True)
class TrialBalanceRow:
    """A single row in a trial balance."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def net_debit(self) -> Decimal:
        """Debits - credits (positive = debit balance)."""
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class SectionTotal:
    """Accounts of one subtype with their combined natural balance."""

    subtype: str
    total: Decimal
    accounts: tuple[AccountBalance, ...]


class LedgerSelector(BaseSelector):
    """
    Read-only balance projection over posted journal lines.

    Contract:
        Every method filters JournalEntry.status == POSTED and, where a
        date is given, JournalEntry.entry_date within the requested range.

    Non-goals:
        - No caching.  Reports are generated on demand.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _totals_by_account(
        self,
        as_of: date | None = None,
        start: date | None = None,
        account_id: UUID | None = None,
    ) -> dict[UUID, tuple[Decimal, Decimal, int]]:
        query = (
            select(
                JournalLine.account_id,
                func.sum(JournalLine.debit_amount),
                func.sum(JournalLine.credit_amount),
                func.count(JournalLine.id),
            )
            .join(JournalEntry, JournalLine.entry_id == JournalEntry.id)
            .where(JournalEntry.status == JournalEntryStatus.POSTED.value)
            .group_by(JournalLine.account_id)
        )
        if as_of is not None:
            query = query.where(JournalEntry.entry_date <= as_of)
        if start is not None:
            query = query.where(JournalEntry.entry_date >= start)
        if account_id is not None:
            query = query.where(JournalLine.account_id == account_id)

        return {
            acct_id: (to_decimal(debits), to_decimal(credits), count)
            for acct_id, debits, credits, count in self.session.execute(query).all()
        }

    def _accounts(self, account_type: AccountType | str | None = None) -> list[Account]:
        query = select(Account).order_by(Account.code)
        if account_type is not None:
            query = query.where(Account.account_type == AccountType(account_type).value)
        return list(self.session.execute(query).scalars().all())

    def _balances(
        self,
        accounts: list[Account],
        totals: dict[UUID, tuple[Decimal, Decimal, int]],
    ) -> list[AccountBalance]:
        result = []
        for account in accounts:
            debits, credits, count = totals.get(account.id, (_ZERO, _ZERO, 0))
            result.append(
                AccountBalance(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=account.account_type,
                    subtype=account.subtype,
                    debit_total=debits,
                    credit_total=credits,
                    line_count=count,
                )
            )
        return result

    def balance_as_of(self, account_id: UUID, as_of: date) -> Decimal:
        """Natural balance of one account over posted lines dated <= as_of."""
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        debits, credits, _ = self._totals_by_account(as_of=as_of, account_id=account_id).get(
            account_id, (_ZERO, _ZERO, 0)
        )
        return natural_balance(account.account_type, debits, credits)

    def balance_by_code(self, code: str, as_of: date) -> Decimal:
        account = self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(code)
        return self.balance_as_of(account.id, as_of)

    def account_balances(
        self,
        as_of: date | None = None,
        account_type: AccountType | str | None = None,
    ) -> list[AccountBalance]:
        """Cumulative balances for every account (zero rows included)."""
        return self._balances(self._accounts(account_type), self._totals_by_account(as_of=as_of))

    def period_activity(
        self,
        start: date,
        end: date,
        account_type: AccountType | str | None = None,
    ) -> list[AccountBalance]:
        """Net posted movement per account for entries dated start..end."""
        return self._balances(
            self._accounts(account_type),
            self._totals_by_account(as_of=end, start=start),
        )

    def section_totals(
        self,
        account_type: AccountType | str,
        as_of: date,
    ) -> dict[str, SectionTotal]:
        """Balances of one account type grouped by subtype."""
        grouped: dict[str, list[AccountBalance]] = {}
        for balance in self.account_balances(as_of=as_of, account_type=account_type):
            grouped.setdefault(balance.subtype, []).append(balance)
        return {
            subtype: SectionTotal(
                subtype=subtype,
                total=sum((b.balance for b in items), _ZERO),
                accounts=tuple(items),
            )
            for subtype, items in grouped.items()
        }

    def trial_balance(self, as_of: date | None = None) -> list[TrialBalanceRow]:
        """Accounts with posted activity, ordered by code."""
        totals = self._totals_by_account(as_of=as_of)
        return [
            TrialBalanceRow(
                account_id=account.id,
                account_code=account.code,
                account_name=account.name,
                account_type=account.account_type,
                debit_total=totals[account.id][0],
                credit_total=totals[account.id][1],
            )
            for account in self._accounts()
            if account.id in totals
        ]

    def total_debits_credits(self, as_of: date | None = None) -> tuple[Decimal, Decimal]:
        """Ledger-wide posted debit and credit totals."""
        query = (
            select(func.sum(JournalLine.debit_amount), func.sum(JournalLine.credit_amount))
            .join(JournalEntry, JournalLine.entry_id == JournalEntry.id)
            .where(JournalEntry.status == JournalEntryStatus.POSTED.value)
        )
        if as_of is not None:
            query = query.where(JournalEntry.entry_date <= as_of)
        debits, credits = self.session.execute(query).one()
        return to_decimal(debits), to_decimal(credits)
