"""
Integration tests for ReportingService over a posted ledger.

The scenario runs through the real services: opening balances, a cash
sale, a vendor bill paid in cash, and a bank refund.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.exceptions import ValidationError
from ledger_kernel.models.liquid_account import LiquidTransactionType
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.liquid_account_service import MutationRecord
from ledger_modules.reporting.statements import render_to_dict

PERIOD_START = date(2024, 1, 1)
PERIOD_END = date(2024, 1, 31)


@pytest.fixture
def trading_month(
    chart, cash_account, bank_account, journal, liquid, payments, refunds, session, test_actor_id
):
    """
    Opening: cash 10,000 and bank 50,000 against owner's equity.
    Jan 5: buy 4,000 stock on credit.  Jan 8: sell for 6,000 cash
    (cost 3,000).  Jan 10: pay the 4,000 bill in cash.  Jan 20: refund
    500 through the bank.
    """
    journal.post_system_entry(
        JournalService.two_leg("1330", "2100", Decimal("4000")),
        date(2024, 1, 5), "Stock purchase", test_actor_id, "test", test_actor_id,
    )
    journal.post_system_entry(
        JournalService.two_leg("1010", "4000", Decimal("6000")),
        date(2024, 1, 8), "Cash sale", test_actor_id, "test", test_actor_id,
    )
    journal.post_system_entry(
        JournalService.two_leg("5000", "1330", Decimal("3000")),
        date(2024, 1, 8), "Cost of sale", test_actor_id, "test", test_actor_id,
    )
    # Keep the cash drawer in step with the GL cash sale
    liquid.apply_mutation(
        cash_account.id,
        Decimal("6000"),
        MutationRecord(LiquidTransactionType.DEPOSIT, "Cash sale", date(2024, 1, 8)),
        test_actor_id,
    )
    session.commit()

    bill = payments.create_bill("BILL-9", "Stock Co", Decimal("4000"), test_actor_id)
    payment = payments.create_payment(
        bill.id, Decimal("4000"), "cash", test_actor_id, payment_date=date(2024, 1, 10)
    )
    payments.process_payment(payment.id, test_actor_id)

    invoice = refunds.create_invoice("INV-9", Decimal("6000"), test_actor_id)
    refund = refunds.request_refund(
        invoice.id, Decimal("500"), test_actor_id, method="bank_transfer",
        liquid_account_id=bank_account.id,
    )
    refunds.approve_refund(refund.id, test_actor_id)
    refunds.process_refund(refund.id, test_actor_id, refund_date=date(2024, 1, 20))
    return {"bill": bill, "payment": payment, "invoice": invoice, "refund": refund}


class TestStatements:

    def test_trial_balance(self, reports, trading_month):
        report = reports.trial_balance(PERIOD_END)
        assert report.is_balanced
        assert report.total_debits == report.total_credits

    def test_balance_sheet_balances(self, reports, trading_month):
        report = reports.balance_sheet(PERIOD_END)

        # cash 10000 + 6000 - 4000; bank 50000 - 500; inventory 4000 - 3000
        assert report.assets[0].total == Decimal("61500")
        assert report.total_assets == Decimal("62500")
        assert report.total_liabilities == Decimal("0")
        assert report.current_earnings == Decimal("2500")
        assert report.total_equity == Decimal("62500")
        assert report.is_balanced

    def test_profit_and_loss(self, reports, trading_month):
        report = reports.profit_and_loss(PERIOD_START, PERIOD_END)
        assert report.revenue.total == Decimal("6000")
        assert report.sales_returns == Decimal("500")
        assert report.net_revenue == Decimal("5500")
        assert report.gross_profit == Decimal("2500")
        assert report.net_income == Decimal("2500")
        assert report.metadata.period_start == PERIOD_START

    def test_cash_flow_reconciles(self, reports, trading_month):
        report = reports.cash_flow(date(2024, 1, 2), PERIOD_END)
        assert report.opening_cash == Decimal("60000")
        assert report.net_income == Decimal("2500")
        assert report.net_change_in_cash == Decimal("1500")
        assert report.closing_cash == report.actual_closing_cash == Decimal("61500")
        assert report.reconciles

    def test_cash_flow_including_opening_day(self, reports, trading_month):
        report = reports.cash_flow(PERIOD_START, PERIOD_END)
        assert report.opening_cash == Decimal("0")
        assert report.net_cash_from_financing == Decimal("60000")
        assert report.reconciles

    def test_inverted_period_rejected(self, reports, chart):
        with pytest.raises(ValidationError, match="before start"):
            reports.profit_and_loss(PERIOD_END, PERIOD_START)

    def test_generated_at_from_clock(self, reports, chart, deterministic_clock):
        report = reports.trial_balance()
        assert report.metadata.generated_at == deterministic_clock.now().isoformat()
        assert report.metadata.as_of_date == date(2024, 1, 1)

    def test_report_logged(self, reports, chart, captured_logs):
        reports.balance_sheet(PERIOD_END)
        generated = [r for r in captured_logs() if r["message"] == "report_generated"]
        assert generated[-1]["report_type"] == "balance_sheet"


class TestLedgerSummary:

    def test_journal_entries_paginated(self, reports, trading_month):
        first = reports.ledger_summary("journal_entries", limit=3)
        # 2 openings, 3 manual, 1 payment, 1 refund
        assert first.total == 7
        assert len(first.items) == 3
        assert first.has_more

        last = reports.ledger_summary("journal_entries", limit=3, offset=6)
        assert len(last.items) == 1
        assert not last.has_more

    def test_journal_entries_filtered_by_date(self, reports, trading_month):
        page = reports.ledger_summary(
            "journal_entries", {"start": date(2024, 1, 8), "end": date(2024, 1, 8)}
        )
        assert page.total == 2

    def test_transactions_for_account(self, reports, trading_month, bank_account):
        page = reports.ledger_summary("transactions", {"account_id": bank_account.id})
        assert page.total == 2
        assert page.items[0].transaction_type == "refund"

    def test_vendor_payments(self, reports, trading_month):
        page = reports.ledger_summary("vendor_payments", {"status": "processed"})
        assert page.total == 1
        assert page.items[0].amount == Decimal("4000")

    def test_refunds_by_liquid_account(self, reports, trading_month, bank_account, cash_account):
        assert reports.ledger_summary("refunds", {"account_id": bank_account.id}).total == 1
        assert reports.ledger_summary("refunds", {"account_id": cash_account.id}).total == 0

    def test_limit_clamped(self, reports, trading_month):
        page = reports.ledger_summary("journal_entries", limit=10_000)
        assert page.limit == 500

    def test_unknown_entity_type(self, reports, chart):
        with pytest.raises(ValidationError, match="Unknown ledger summary entity type"):
            reports.ledger_summary("invoices")

    def test_rendered_summary(self, reports, trading_month):
        data = render_to_dict(reports.ledger_summary("refunds"))
        assert data["entity_type"] == "refunds"
        assert data["items"][0]["amount"] in ("500", "500.000000000")
        assert data["has_more"] is False
