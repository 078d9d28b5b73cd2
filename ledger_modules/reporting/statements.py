"""
Pure financial statement transformation functions.

These functions turn account balances from the balance projector into
structured statements.  ZERO I/O.  ZERO side effects.

All monetary values are Decimal.  All inputs/outputs are frozen
dataclasses.  Same inputs always produce the same report.
"""

from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable
from uuid import UUID

from ledger_kernel.domain.chart import SUBTYPES_BY_TYPE, AccountSubtype, AccountType
from ledger_kernel.selectors.ledger_selector import AccountBalance, TrialBalanceRow
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    CashFlowLineItem,
    CashFlowSection,
    CashFlowStatementReport,
    ProfitAndLossReport,
    ReportLine,
    ReportMetadata,
    ReportSection,
    TrialBalanceReport,
)

_ZERO = Decimal("0")

SUBTYPE_LABELS: dict[str, str] = {
    AccountSubtype.CASH_AND_BANK.value: "Cash and Bank",
    AccountSubtype.CURRENT_ASSET.value: "Current Assets",
    AccountSubtype.FIXED_ASSET.value: "Fixed Assets",
    AccountSubtype.INTANGIBLE_ASSET.value: "Intangible Assets",
    AccountSubtype.CURRENT_LIABILITY.value: "Current Liabilities",
    AccountSubtype.LONG_TERM_LIABILITY.value: "Long-term Liabilities",
    AccountSubtype.OWNER_EQUITY.value: "Owner's Equity",
    AccountSubtype.RETAINED_EARNINGS.value: "Retained Earnings",
    AccountSubtype.OPERATING_REVENUE.value: "Revenue",
    AccountSubtype.OTHER_INCOME.value: "Other Income",
    AccountSubtype.SALES_RETURNS.value: "Sales Returns",
    AccountSubtype.COST_OF_GOODS_SOLD.value: "Cost of Goods Sold",
    AccountSubtype.OPERATING_EXPENSE.value: "Operating Expenses",
    AccountSubtype.OTHER_EXPENSE.value: "Other Expenses",
}

CURRENT_EARNINGS_LABEL = "Current Earnings"


# =========================================================================
# Helpers
# =========================================================================


def _line(balance: AccountBalance) -> ReportLine:
    return ReportLine(
        account_id=balance.account_id,
        account_code=balance.account_code,
        account_name=balance.account_name,
        account_type=balance.account_type,
        subtype=balance.subtype,
        debit_total=balance.debit_total,
        credit_total=balance.credit_total,
        balance=balance.balance,
    )


def _section(label: str, balances: Iterable[AccountBalance]) -> ReportSection:
    lines = tuple(sorted((_line(b) for b in balances), key=lambda x: x.account_code))
    return ReportSection(label=label, lines=lines, total=sum((x.balance for x in lines), _ZERO))


def _of_subtype(balances: Iterable[AccountBalance], *subtypes: AccountSubtype) -> list[AccountBalance]:
    wanted = {s.value for s in subtypes}
    return [b for b in balances if b.subtype in wanted]


def _sections_for(account_type: AccountType, balances: list[AccountBalance]) -> tuple[ReportSection, ...]:
    """One section per subtype of ``account_type``, in chart order."""
    return tuple(
        _section(SUBTYPE_LABELS[subtype.value], _of_subtype(balances, subtype))
        for subtype in SUBTYPES_BY_TYPE[account_type]
    )


def _total(balances: Iterable[AccountBalance], predicate: Callable[[AccountBalance], bool]) -> Decimal:
    return sum((b.balance for b in balances if predicate(b)), _ZERO)


def compute_net_income(balances: Iterable[AccountBalance]) -> Decimal:
    """Revenue natural balances minus expense natural balances."""
    balances = list(balances)
    revenue = _total(balances, lambda b: b.account_type == AccountType.REVENUE.value)
    expense = _total(balances, lambda b: b.account_type == AccountType.EXPENSE.value)
    return revenue - expense


# =========================================================================
# 1. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    rows: list[TrialBalanceRow],
    metadata: ReportMetadata,
) -> TrialBalanceReport:
    lines = tuple(
        ReportLine(
            account_id=row.account_id,
            account_code=row.account_code,
            account_name=row.account_name,
            account_type=row.account_type,
            subtype="",
            debit_total=row.debit_total,
            credit_total=row.credit_total,
            balance=row.net_debit,
        )
        for row in sorted(rows, key=lambda r: r.account_code)
    )
    total_debits = sum((x.debit_total for x in lines), _ZERO)
    total_credits = sum((x.credit_total for x in lines), _ZERO)
    return TrialBalanceReport(
        metadata=metadata,
        lines=lines,
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=(total_debits == total_credits),
    )


# =========================================================================
# 2. BALANCE SHEET
# =========================================================================


def build_balance_sheet(
    balances: list[AccountBalance],
    metadata: ReportMetadata,
    tolerance: Decimal = Decimal("0.01"),
) -> BalanceSheetReport:
    """
    Assets / liabilities / equity grouped by subtype.

    Revenue and expense accounts are not closed into retained earnings by
    any posting, so their cumulative net is carried into equity as
    "Current Earnings".
    """
    by_type = {
        t: [b for b in balances if b.account_type == t.value]
        for t in (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)
    }
    assets = _sections_for(AccountType.ASSET, by_type[AccountType.ASSET])
    liabilities = _sections_for(AccountType.LIABILITY, by_type[AccountType.LIABILITY])
    equity = _sections_for(AccountType.EQUITY, by_type[AccountType.EQUITY])

    total_assets = sum((s.total for s in assets), _ZERO)
    total_liabilities = sum((s.total for s in liabilities), _ZERO)
    current_earnings = compute_net_income(balances)
    total_equity = sum((s.total for s in equity), _ZERO) + current_earnings
    total_le = total_liabilities + total_equity
    difference = total_assets - total_le

    return BalanceSheetReport(
        metadata=metadata,
        assets=assets,
        total_assets=total_assets,
        liabilities=liabilities,
        total_liabilities=total_liabilities,
        equity=equity,
        current_earnings=current_earnings,
        total_equity=total_equity,
        total_liabilities_and_equity=total_le,
        difference=difference,
        tolerance=tolerance,
        is_balanced=abs(difference) < tolerance,
    )


# =========================================================================
# 3. PROFIT & LOSS
# =========================================================================


def build_profit_and_loss(
    activity: list[AccountBalance],
    metadata: ReportMetadata,
) -> ProfitAndLossReport:
    """
    Income statement over period activity.

    Sales returns are contra revenue: debits to them reduce revenue.
    """
    revenue = _section("Revenue", _of_subtype(activity, AccountSubtype.OPERATING_REVENUE))
    # Credit-normal contra account: a debit balance is a negative natural balance
    returns = -_total(activity, lambda b: b.subtype == AccountSubtype.SALES_RETURNS.value)
    net_revenue = revenue.total - returns

    cogs = _section("Cost of Goods Sold", _of_subtype(activity, AccountSubtype.COST_OF_GOODS_SOLD))
    gross_profit = net_revenue - cogs.total

    opex = _section("Operating Expenses", _of_subtype(activity, AccountSubtype.OPERATING_EXPENSE))
    operating_income = gross_profit - opex.total

    other_income = _section("Other Income", _of_subtype(activity, AccountSubtype.OTHER_INCOME))
    other_expenses = _section("Other Expenses", _of_subtype(activity, AccountSubtype.OTHER_EXPENSE))
    net_income = operating_income + other_income.total - other_expenses.total

    return ProfitAndLossReport(
        metadata=metadata,
        revenue=revenue,
        sales_returns=returns,
        net_revenue=net_revenue,
        cost_of_goods_sold=cogs,
        gross_profit=gross_profit,
        operating_expenses=opex,
        operating_income=operating_income,
        other_income=other_income,
        other_expenses=other_expenses,
        net_income=net_income,
    )


# =========================================================================
# 4. CASH FLOW STATEMENT
# =========================================================================


def _changes(
    opening: list[AccountBalance],
    closing: list[AccountBalance],
) -> dict[UUID, tuple[AccountBalance, Decimal]]:
    """closing - opening per account (positive means the balance grew)."""
    before = {b.account_id: b.balance for b in opening}
    return {b.account_id: (b, b.balance - before.get(b.account_id, _ZERO)) for b in closing}


def _flow_section(
    label: str,
    changes: dict[UUID, tuple[AccountBalance, Decimal]],
    subtypes: tuple[AccountSubtype, ...],
    sign: int,
) -> CashFlowSection:
    wanted = {s.value for s in subtypes}
    lines = tuple(
        CashFlowLineItem(description=f"Change in {b.account_name}", amount=sign * change)
        for b, change in sorted(changes.values(), key=lambda x: x[0].account_code)
        if b.subtype in wanted and change != _ZERO
    )
    return CashFlowSection(label=label, lines=lines, total=sum((x.amount for x in lines), _ZERO))


def build_cash_flow_statement(
    opening: list[AccountBalance],
    closing: list[AccountBalance],
    period_activity: list[AccountBalance],
    metadata: ReportMetadata,
    tolerance: Decimal = Decimal("0.01"),
) -> CashFlowStatementReport:
    """
    Indirect method.

    Args:
        opening: balances as of the day before the period starts.
        closing: balances as of the period end.
        period_activity: posted movement inside the period (net income).

    Operating = net income - increase in non-cash current assets
    + increase in current liabilities.  Investing = - increase in fixed and
    intangible assets.  Financing = increase in long-term liabilities and
    equity.  Closing cash = opening cash + net change.
    """
    net_income = compute_net_income(period_activity)
    changes = _changes(opening, closing)

    assets_wc = _flow_section("Current Assets", changes, (AccountSubtype.CURRENT_ASSET,), -1)
    liabilities_wc = _flow_section("Current Liabilities", changes, (AccountSubtype.CURRENT_LIABILITY,), 1)
    working_capital = CashFlowSection(
        label="Changes in Working Capital",
        lines=assets_wc.lines + liabilities_wc.lines,
        total=assets_wc.total + liabilities_wc.total,
    )
    operations = net_income + working_capital.total

    investing = _flow_section(
        "Investing Activities",
        changes,
        (AccountSubtype.FIXED_ASSET, AccountSubtype.INTANGIBLE_ASSET),
        -1,
    )
    financing = _flow_section(
        "Financing Activities",
        changes,
        (
            AccountSubtype.LONG_TERM_LIABILITY,
            AccountSubtype.OWNER_EQUITY,
            AccountSubtype.RETAINED_EARNINGS,
        ),
        1,
    )

    net_change = operations + investing.total + financing.total
    cash = lambda balances: _total(  # noqa: E731
        balances, lambda b: b.subtype == AccountSubtype.CASH_AND_BANK.value
    )
    opening_cash = cash(opening)
    closing_cash = opening_cash + net_change
    actual_closing_cash = cash(closing)

    return CashFlowStatementReport(
        metadata=metadata,
        net_income=net_income,
        working_capital_changes=working_capital,
        net_cash_from_operations=operations,
        investing_activities=investing,
        net_cash_from_investing=investing.total,
        financing_activities=financing,
        net_cash_from_financing=financing.total,
        net_change_in_cash=net_change,
        opening_cash=opening_cash,
        closing_cash=closing_cash,
        actual_closing_cash=actual_closing_cash,
        reconciles=abs(closing_cash - actual_closing_cash) < tolerance,
    )


# =========================================================================
# 5. RENDERER (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to plain data for JSON serialization.

    Decimal -> str, UUID -> str, date -> ISO string, Enum -> value,
    dataclasses -> dicts (including ``out_of_balance`` / ``has_more``
    properties where defined), tuples -> lists.
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        result = {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
        for prop in ("out_of_balance", "has_more"):
            if isinstance(getattr(type(obj), prop, None), property):
                result[prop] = getattr(obj, prop)
        return result
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
