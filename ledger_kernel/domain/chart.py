"""
Chart of accounts classification (``ledger_kernel.domain.chart``).

Responsibility
--------------
Static classification of chart accounts into types and subtypes, the
normal-balance side each type implies, and the sign used to turn raw
debit/credit totals into a natural balance.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Every subtype belongs to exactly one account type.
* normal_balance is derived from account type, never chosen freely:
  ASSET and EXPENSE are debit-normal; LIABILITY, EQUITY and REVENUE are
  credit-normal.  SALES_RETURNS is a contra-revenue subtype and carries a
  debit balance in practice, which shows up as a negative natural balance.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountSubtype(str, Enum):
    """Report grouping under an account type."""

    CASH_AND_BANK = "cash_and_bank"
    CURRENT_ASSET = "current_asset"
    FIXED_ASSET = "fixed_asset"
    INTANGIBLE_ASSET = "intangible_asset"

    CURRENT_LIABILITY = "current_liability"
    LONG_TERM_LIABILITY = "long_term_liability"

    OWNER_EQUITY = "owner_equity"
    RETAINED_EARNINGS = "retained_earnings"

    OPERATING_REVENUE = "operating_revenue"
    OTHER_INCOME = "other_income"
    SALES_RETURNS = "sales_returns"

    COST_OF_GOODS_SOLD = "cost_of_goods_sold"
    OPERATING_EXPENSE = "operating_expense"
    OTHER_EXPENSE = "other_expense"


SUBTYPES_BY_TYPE: dict[AccountType, tuple[AccountSubtype, ...]] = {
    AccountType.ASSET: (
        AccountSubtype.CASH_AND_BANK,
        AccountSubtype.CURRENT_ASSET,
        AccountSubtype.FIXED_ASSET,
        AccountSubtype.INTANGIBLE_ASSET,
    ),
    AccountType.LIABILITY: (
        AccountSubtype.CURRENT_LIABILITY,
        AccountSubtype.LONG_TERM_LIABILITY,
    ),
    AccountType.EQUITY: (
        AccountSubtype.OWNER_EQUITY,
        AccountSubtype.RETAINED_EARNINGS,
    ),
    AccountType.REVENUE: (
        AccountSubtype.OPERATING_REVENUE,
        AccountSubtype.OTHER_INCOME,
        AccountSubtype.SALES_RETURNS,
    ),
    AccountType.EXPENSE: (
        AccountSubtype.COST_OF_GOODS_SOLD,
        AccountSubtype.OPERATING_EXPENSE,
        AccountSubtype.OTHER_EXPENSE,
    ),
}

_DEBIT_NORMAL = frozenset({AccountType.ASSET, AccountType.EXPENSE})


def normal_balance_for(account_type: AccountType | str) -> NormalBalance:
    """Normal balance side implied by the account type."""
    if AccountType(account_type) in _DEBIT_NORMAL:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


def is_valid_subtype(account_type: AccountType | str, subtype: AccountSubtype | str) -> bool:
    """True when ``subtype`` is one of the groupings of ``account_type``."""
    try:
        return AccountSubtype(subtype) in SUBTYPES_BY_TYPE[AccountType(account_type)]
    except ValueError:
        return False


def natural_balance(
    account_type: AccountType | str,
    debit_total: Decimal,
    credit_total: Decimal,
) -> Decimal:
    """
    Balance expressed on the account's normal side.

    Debit-normal: debits - credits.  Credit-normal: credits - debits.
    """
    if normal_balance_for(account_type) == NormalBalance.DEBIT:
        return debit_total - credit_total
    return credit_total - debit_total
