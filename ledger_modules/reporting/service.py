"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Bridges the read selectors (``LedgerSelector``, ``JournalSelector``,
``LiquidSelector``) and the payable / receivable tables to the pure
builders in ``statements.py``.  Produces the trial balance, balance sheet,
profit & loss, cash flow statement and the paginated ledger summary.

Architecture position
---------------------
**Modules layer**.  Read-only: nothing here posts, mutates or commits.

Invariants enforced
-------------------
* Only POSTED journal lines feed a report.
* All monetary amounts are ``Decimal``.
* Metadata carries the generation timestamp from the injected clock.

Failure modes
-------------
* ``end < start`` or an unknown summary entity type -> ValidationError.
* Selector query failure propagates unchanged.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.liquid_selector import LiquidSelector
from ledger_modules.ap.orm import VendorPaymentModel
from ledger_modules.ar.orm import InvoiceRefundModel
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    CashFlowStatementReport,
    LedgerSummary,
    ProfitAndLossReport,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    build_balance_sheet,
    build_cash_flow_statement,
    build_profit_and_loss,
    build_trial_balance,
)

logger = get_logger("modules.reporting.service")

SUMMARY_ENTITY_TYPES = ("journal_entries", "transactions", "vendor_payments", "refunds")


class ReportingService:
    """
    Financial statement generation.

    Contract:
        Every public method takes plain dates and returns a frozen report
        DTO.  Pass the DTO to ``render_to_dict`` for plain data.

    Non-goals:
        - No caching; reports are computed on each call.
        - No period closing; revenue and expense balances roll into
          "Current Earnings" on the balance sheet.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        tolerance: Decimal = Decimal("0.01"),
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._tolerance = tolerance
        self._ledger = LedgerSelector(session)
        self._journal = JournalSelector(session)
        self._liquid = LiquidSelector(session)

    def _metadata(
        self,
        report_type: ReportType,
        as_of: date,
        start: date | None = None,
        end: date | None = None,
    ) -> ReportMetadata:
        return ReportMetadata(
            report_type=report_type,
            as_of_date=as_of,
            generated_at=self._clock.now().isoformat(),
            period_start=start,
            period_end=end,
        )

    @staticmethod
    def _check_period(start: date, end: date) -> None:
        if end < start:
            raise ValidationError(
                f"Period end {end.isoformat()} is before start {start.isoformat()}",
                field="end",
            )

    # =========================================================================
    # Statements
    # =========================================================================

    def trial_balance(self, as_of: date | None = None) -> TrialBalanceReport:
        as_of = as_of or self._clock.today()
        report = build_trial_balance(
            self._ledger.trial_balance(as_of),
            self._metadata(ReportType.TRIAL_BALANCE, as_of),
        )
        logger.info(
            "report_generated",
            extra={
                "report_type": ReportType.TRIAL_BALANCE.value,
                "as_of": as_of.isoformat(),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def balance_sheet(self, as_of: date | None = None) -> BalanceSheetReport:
        as_of = as_of or self._clock.today()
        report = build_balance_sheet(
            self._ledger.account_balances(as_of=as_of),
            self._metadata(ReportType.BALANCE_SHEET, as_of),
            tolerance=self._tolerance,
        )
        if report.out_of_balance:
            logger.warning(
                "balance_sheet_out_of_balance",
                extra={"as_of": as_of.isoformat(), "difference": str(report.difference)},
            )
        logger.info(
            "report_generated",
            extra={
                "report_type": ReportType.BALANCE_SHEET.value,
                "as_of": as_of.isoformat(),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def profit_and_loss(self, start: date, end: date) -> ProfitAndLossReport:
        self._check_period(start, end)
        report = build_profit_and_loss(
            self._ledger.period_activity(start, end),
            self._metadata(ReportType.PROFIT_AND_LOSS, end, start, end),
        )
        logger.info(
            "report_generated",
            extra={
                "report_type": ReportType.PROFIT_AND_LOSS.value,
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
                "net_income": str(report.net_income),
            },
        )
        return report

    def cash_flow(self, start: date, end: date) -> CashFlowStatementReport:
        self._check_period(start, end)
        report = build_cash_flow_statement(
            opening=self._ledger.account_balances(as_of=start - timedelta(days=1)),
            closing=self._ledger.account_balances(as_of=end),
            period_activity=self._ledger.period_activity(start, end),
            metadata=self._metadata(ReportType.CASH_FLOW, end, start, end),
            tolerance=self._tolerance,
        )
        if not report.reconciles:
            logger.warning(
                "cash_flow_not_reconciled",
                extra={
                    "period_start": start.isoformat(),
                    "period_end": end.isoformat(),
                    "closing_cash": str(report.closing_cash),
                    "actual_closing_cash": str(report.actual_closing_cash),
                },
            )
        logger.info(
            "report_generated",
            extra={
                "report_type": ReportType.CASH_FLOW.value,
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
                "net_change_in_cash": str(report.net_change_in_cash),
            },
        )
        return report

    # =========================================================================
    # Ledger summary
    # =========================================================================

    def ledger_summary(
        self,
        entity_type: str,
        filters: dict[str, Any] | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> LedgerSummary:
        """
        One page of journal entries, liquid transactions, vendor payments
        or refunds.

        Supported filters: ``status``, ``start``, ``end``, ``account_id``
        (GL account for entries, liquid account otherwise), ``source_type``
        and ``transaction_type``.
        """
        filters = dict(filters or {})
        if entity_type == "journal_entries":
            page = self._journal.list_entries(
                status=filters.get("status"),
                start=filters.get("start"),
                end=filters.get("end"),
                source_type=filters.get("source_type"),
                account_id=filters.get("account_id"),
                limit=limit,
                offset=offset,
            )
        elif entity_type == "transactions":
            page = self._liquid.list_transactions(
                account_id=filters.get("account_id"),
                start=filters.get("start"),
                end=filters.get("end"),
                transaction_type=filters.get("transaction_type"),
                source_type=filters.get("source_type"),
                limit=limit,
                offset=offset,
            )
        elif entity_type == "vendor_payments":
            return self._record_page(
                entity_type, VendorPaymentModel, VendorPaymentModel.payment_date, filters, limit, offset
            )
        elif entity_type == "refunds":
            return self._record_page(
                entity_type, InvoiceRefundModel, InvoiceRefundModel.refund_date, filters, limit, offset
            )
        else:
            raise ValidationError(
                f"Unknown ledger summary entity type '{entity_type}'; "
                f"expected one of {', '.join(SUMMARY_ENTITY_TYPES)}",
                field="entity_type",
            )
        return LedgerSummary(
            entity_type=entity_type,
            items=page.items,
            total=page.total,
            limit=page.limit,
            offset=page.offset,
        )

    def _record_page(
        self,
        entity_type: str,
        model: type,
        date_column,
        filters: dict[str, Any],
        limit: int,
        offset: int,
    ) -> LedgerSummary:
        limit = max(1, min(limit, BaseSelector.MAX_PAGE_SIZE))
        offset = max(0, offset)
        query = select(model)
        if filters.get("status") is not None:
            query = query.where(model.status == filters["status"])
        if filters.get("start") is not None:
            query = query.where(date_column >= filters["start"])
        if filters.get("end") is not None:
            query = query.where(date_column <= filters["end"])
        if filters.get("account_id") is not None:
            query = query.where(model.liquid_account_id == UUID(str(filters["account_id"])))

        total = self._session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()
        rows = self._session.execute(
            query.order_by(date_column.desc(), model.created_at.desc()).limit(limit).offset(offset)
        ).scalars().all()
        return LedgerSummary(
            entity_type=entity_type,
            items=tuple(row.to_dto() for row in rows),
            total=total,
            limit=limit,
            offset=offset,
        )
