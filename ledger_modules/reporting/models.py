"""
Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen report DTOs produced by the pure builders in ``statements.py``:
trial balance, balance sheet, profit & loss, cash flow, and the paginated
ledger summary.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  ZERO I/O.

Invariants enforced
-------------------
* All monetary values are ``Decimal``.
* All dataclasses are ``frozen=True``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class ReportType(str, Enum):
    TRIAL_BALANCE = "trial_balance"
    BALANCE_SHEET = "balance_sheet"
    PROFIT_AND_LOSS = "profit_and_loss"
    CASH_FLOW = "cash_flow"


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every financial report."""

    report_type: ReportType
    as_of_date: date
    generated_at: str  # ISO timestamp from the injected clock
    period_start: date | None = None
    period_end: date | None = None


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class ReportLine:
    """One account on a report, with its natural balance."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    subtype: str
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    metadata: ReportMetadata
    lines: tuple[ReportLine, ...]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool  # total_debits == total_credits


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class ReportSection:
    """Accounts of one subtype and their combined natural balance."""

    label: str
    lines: tuple[ReportLine, ...]
    total: Decimal


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Balance sheet as of a date.

    ``current_earnings`` is cumulative revenue less expenses, shown in
    equity.  Assets = Liabilities + Equity within ``tolerance``.
    """

    metadata: ReportMetadata
    assets: tuple[ReportSection, ...]
    total_assets: Decimal
    liabilities: tuple[ReportSection, ...]
    total_liabilities: Decimal
    equity: tuple[ReportSection, ...]
    current_earnings: Decimal
    total_equity: Decimal
    total_liabilities_and_equity: Decimal
    difference: Decimal
    tolerance: Decimal
    is_balanced: bool

    @property
    def out_of_balance(self) -> bool:
        return not self.is_balanced


# =========================================================================
# Profit & Loss
# =========================================================================


@dataclass(frozen=True)
class ProfitAndLossReport:
    metadata: ReportMetadata
    revenue: ReportSection
    sales_returns: Decimal  # positive amount deducted from revenue
    net_revenue: Decimal
    cost_of_goods_sold: ReportSection
    gross_profit: Decimal
    operating_expenses: ReportSection
    operating_income: Decimal
    other_income: ReportSection
    other_expenses: ReportSection
    net_income: Decimal


# =========================================================================
# Cash Flow (indirect method)
# =========================================================================


@dataclass(frozen=True)
class CashFlowLineItem:
    description: str
    amount: Decimal


@dataclass(frozen=True)
class CashFlowSection:
    label: str
    lines: tuple[CashFlowLineItem, ...]
    total: Decimal


@dataclass(frozen=True)
class CashFlowStatementReport:
    """
    Indirect-method cash flow for a period.

    ``closing_cash`` is opening + net change.  ``reconciles`` compares it
    with the cash-and-bank balance actually on the books at period end.
    """

    metadata: ReportMetadata
    net_income: Decimal
    working_capital_changes: CashFlowSection
    net_cash_from_operations: Decimal
    investing_activities: CashFlowSection
    net_cash_from_investing: Decimal
    financing_activities: CashFlowSection
    net_cash_from_financing: Decimal
    net_change_in_cash: Decimal
    opening_cash: Decimal
    closing_cash: Decimal
    actual_closing_cash: Decimal
    reconciles: bool


# =========================================================================
# Ledger summary
# =========================================================================


@dataclass(frozen=True)
class LedgerSummary:
    """One page of ledger records of a single entity type."""

    entity_type: str
    items: tuple[Any, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total
