"""
Tests for the command facade (``ledger_services.commands``).

Each command opens its own session from the factory, so the fixture
session is closed after seeding and state is read back through fresh
sessions.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import ValidationError
from ledger_kernel.models.liquid_account import LiquidAccount
from ledger_modules.sales.models import OrderItemSpec
from ledger_services.commands import INTERNAL_ERROR_MESSAGE, LedgerCommands


def _balance(session_factory, account_id) -> Decimal:
    s = session_factory()
    try:
        return s.get(LiquidAccount, account_id).current_balance
    finally:
        s.close()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def commands(session_factory, deterministic_clock, ledger_config, sleeps):
    return LedgerCommands(session_factory, deterministic_clock, ledger_config, sleep=sleeps.append)


@pytest.fixture
def seeded(session, cash_account, bank_account):
    """Chart plus cash and bank accounts, with the fixture session released."""
    session.close()
    return cash_account, bank_account


def _entry_payload(actor_id, debit="250.00", credit="250.00"):
    return {
        "actor_id": str(actor_id),
        "entry_date": "2024-01-15",
        "description": "Office supplies",
        "lines": [
            {"account_code": "6000", "debit": debit},
            {"account_code": "1010", "credit": credit},
        ],
    }


class TestJournalCommands:

    def test_create_post_reverse(self, commands, seeded, test_actor_id):
        created = commands.create_journal_entry(_entry_payload(test_actor_id))
        assert created.success
        assert created.data["status"] == "draft"
        entry_id = created.data["id"]

        posted = commands.post_journal_entry({"actor_id": str(test_actor_id), "entry_id": entry_id})
        assert posted.success
        assert posted.data["status"] == "posted"
        assert {line["account_code"] for line in posted.data["lines"]} == {"6000", "1010"}

        reversed_ = commands.reverse_journal_entry(
            {"actor_id": str(test_actor_id), "entry_id": entry_id, "reversal_date": "2024-01-20"}
        )
        assert reversed_.success
        assert reversed_.data["reversal_of_id"] == entry_id
        assert reversed_.data["entry_date"] == "2024-01-20"

    def test_unbalanced_entry(self, commands, seeded, test_actor_id):
        result = commands.create_journal_entry(_entry_payload(test_actor_id, credit="249.99"))
        assert not result.success
        assert result.error.kind == "validation_error"

    def test_float_amount_rejected(self, commands, seeded, test_actor_id):
        payload = _entry_payload(test_actor_id)
        payload["lines"][0]["debit"] = 250.0
        result = commands.create_journal_entry(payload)
        assert result.error.kind == "validation_error"
        assert "decimal string" in result.error.message

    def test_missing_actor(self, commands, seeded, test_actor_id):
        payload = _entry_payload(test_actor_id)
        del payload["actor_id"]
        result = commands.create_journal_entry(payload)
        assert result.error.kind == "validation_error"
        assert "actor_id" in result.error.message

    def test_unknown_entry(self, commands, seeded, test_actor_id):
        missing = str(uuid4())
        result = commands.post_journal_entry({"actor_id": str(test_actor_id), "entry_id": missing})
        assert result.error.kind == "not_found"
        assert result.error.record_id == missing


class TestVendorPaymentCommands:

    @pytest.fixture
    def bill(self, payments, seeded, test_actor_id, session):
        bill = payments.create_bill("BILL-77", "Acme Supplies", Decimal("5000.00"), test_actor_id)
        session.close()
        return bill

    def test_create_and_process_from_bill(self, commands, bill, seeded, session_factory, test_actor_id):
        cash, _ = seeded
        result = commands.process_vendor_payment(
            {
                "actor_id": str(test_actor_id),
                "bill_id": str(bill.id),
                "amount": "5000.00",
                "method": "cash",
                "payment_date": "2024-01-10",
            }
        )

        assert result.success, result.error
        assert result.data["status"] == "processed"
        assert result.warnings == ()
        assert result.data["settlement"]["liquid_account_id"] == str(cash.id)
        assert Decimal(result.data["settlement"]["balance_after"]) == Decimal("5000")
        assert _balance(session_factory, cash.id) == Decimal("5000")

    def test_reprocess_is_state_conflict(self, commands, bill, seeded, test_actor_id):
        first = commands.process_vendor_payment(
            {"actor_id": str(test_actor_id), "bill_id": str(bill.id), "amount": "100", "method": "cash"}
        )
        payment_id = first.data["record_id"]

        again = commands.process_vendor_payment({"actor_id": str(test_actor_id), "payment_id": payment_id})
        assert not again.success
        assert again.error.kind == "state_conflict"
        assert again.error.record_id == payment_id

    def test_failed_payment_leaves_nothing_behind(
        self, commands, payments, seeded, session, session_factory, test_actor_id
    ):
        cash, _ = seeded
        bill = payments.create_bill("BILL-78", "Big Vendor", Decimal("20000"), test_actor_id)
        session.close()
        payload = {"actor_id": str(test_actor_id), "bill_id": str(bill.id), "amount": "20000", "method": "cash"}

        for _ in range(2):
            result = commands.process_vendor_payment(payload)
            assert result.error.kind == "insufficient_balance"
        assert _balance(session_factory, cash.id) == Decimal("10000")

        payments_page = commands.get_ledger_summary("vendor_payments", {})
        assert payments_page["total"] == 0

    def test_payment_entry_not_reversible_as_journal_entry(
        self, commands, bill, seeded, session_factory, test_actor_id
    ):
        cash, _ = seeded
        processed = commands.process_vendor_payment(
            {"actor_id": str(test_actor_id), "bill_id": str(bill.id), "amount": "1000", "method": "cash"}
        )
        entry_id = processed.data["settlement"]["journal_entry_id"]

        direct = commands.reverse_journal_entry({"actor_id": str(test_actor_id), "entry_id": entry_id})
        assert direct.error.kind == "state_conflict"
        assert direct.error.record_id == entry_id
        assert "vendor_payment" in direct.error.message

        undone = commands.reverse_vendor_payment(
            {"actor_id": str(test_actor_id), "payment_id": processed.data["record_id"]}
        )
        assert undone.success, undone.error
        assert undone.data["status"] == "reversed"
        assert _balance(session_factory, cash.id) == Decimal("10000")

    def test_reverse(self, commands, bill, seeded, session_factory, test_actor_id):
        cash, _ = seeded
        processed = commands.process_vendor_payment(
            {"actor_id": str(test_actor_id), "bill_id": str(bill.id), "amount": "1200", "method": "cash"}
        )
        result = commands.reverse_vendor_payment(
            {"actor_id": str(test_actor_id), "payment_id": processed.data["record_id"], "reason": "Duplicate"}
        )
        assert result.success
        assert result.data["status"] == "reversed"
        assert _balance(session_factory, cash.id) == Decimal("10000")


class TestRefundCommands:

    def test_process_and_reverse(self, commands, refunds, seeded, session, session_factory, test_actor_id):
        _, bank = seeded
        invoice = refunds.create_invoice("INV-77", Decimal("5000"), test_actor_id)
        refund = refunds.request_refund(
            invoice.id, Decimal("2000"), test_actor_id, method="bank_transfer", liquid_account_id=bank.id
        )
        refunds.approve_refund(refund.id, test_actor_id)
        session.close()

        processed = commands.process_refund({"actor_id": str(test_actor_id), "refund_id": str(refund.id)})
        assert processed.success
        assert processed.data["status"] == "processed"
        assert _balance(session_factory, bank.id) == Decimal("48000")

        reversed_ = commands.reverse_refund({"actor_id": str(test_actor_id), "refund_id": str(refund.id)})
        assert reversed_.data["status"] == "reversed"
        assert _balance(session_factory, bank.id) == Decimal("50000")

    def test_bad_refund_id(self, commands, seeded, test_actor_id):
        result = commands.process_refund({"actor_id": str(test_actor_id), "refund_id": "not-a-uuid"})
        assert result.error.kind == "validation_error"


class TestSalesCommands:

    def test_cancel_with_warning(self, commands, inventory, sales, seeded, session, test_actor_id):
        product = inventory.create_product("SKU-1", "Lamp", test_actor_id, quantity_on_hand=Decimal("3"))
        order = sales.create_order(
            "SO-77",
            [OrderItemSpec(Decimal("1"), Decimal("80"), Decimal("50"), product_id=product.id)],
            test_actor_id,
        )
        inventory.set_active(product.id, False, test_actor_id)
        session.close()

        result = commands.cancel_sales_order({"actor_id": str(test_actor_id), "order_id": str(order.id)})

        assert result.success
        assert result.data["status"] == "cancelled"
        assert [w["kind"] for w in result.warnings] == ["dependency_failure"]
        assert result.warnings[0]["step"] == "restore_inventory"


class TestTransferCommand:

    def test_transfer(self, commands, seeded, session_factory, test_actor_id):
        cash, bank = seeded
        result = commands.transfer_funds(
            {
                "actor_id": str(test_actor_id),
                "from_account_id": str(cash.id),
                "to_account_id": str(bank.id),
                "amount": "2500",
                "transfer_date": "2024-01-05",
            }
        )
        assert result.success
        assert Decimal(result.data["from_balance_after"]) == Decimal("7500")
        assert Decimal(result.data["to_balance_after"]) == Decimal("52500")
        assert result.data["journal_entry_id"] is not None
        assert _balance(session_factory, bank.id) == Decimal("52500")

    def test_same_account(self, commands, seeded, test_actor_id):
        cash, _ = seeded
        result = commands.transfer_funds(
            {
                "actor_id": str(test_actor_id),
                "from_account_id": str(cash.id),
                "to_account_id": str(cash.id),
                "amount": "10",
            }
        )
        assert result.error.kind == "validation_error"


class TestInternalErrors:

    def test_unexpected_exception_is_generic(
        self, session_factory, deterministic_clock, ledger_config, seeded, test_actor_id, captured_logs
    ):
        def broken_inventory(session, clock):
            raise RuntimeError("inventory backend unavailable")

        commands = LedgerCommands(
            session_factory, deterministic_clock, ledger_config, inventory_factory=broken_inventory
        )
        result = commands.create_journal_entry(_entry_payload(test_actor_id))

        assert not result.success
        assert result.error.kind == "internal_error"
        assert result.error.message == INTERNAL_ERROR_MESSAGE
        assert "inventory backend" not in result.error.message

        logs = captured_logs()
        failure = next(r for r in logs if r["message"] == "command_internal_error")
        assert failure["command_name"] == "create_journal_entry"
        assert failure["exc_type"] == "RuntimeError"


class TestReads:

    def test_statements_as_plain_data(self, commands, seeded):
        sheet = commands.get_balance_sheet("2024-01-31")
        assert sheet["is_balanced"] is True
        assert Decimal(sheet["total_assets"]) == Decimal("60000")
        assert sheet["metadata"]["report_type"] == "balance_sheet"

        trial = commands.get_trial_balance("2024-01-31")
        assert trial["is_balanced"] is True

        pnl = commands.get_profit_and_loss("2024-01-01", "2024-01-31")
        assert Decimal(pnl["net_income"]) == Decimal("0")

        flow = commands.get_cash_flow("2024-01-01", "2024-01-31")
        assert flow["reconciles"] is True

    def test_ledger_summary_with_string_filters(self, commands, seeded):
        cash, _ = seeded
        page = commands.get_ledger_summary(
            "transactions", {"account_id": str(cash.id), "start": "2024-01-01"}, limit=10
        )
        assert page["total"] == 1
        assert page["items"][0]["transaction_type"] == "opening_balance"
        assert page["has_more"] is False

    def test_bad_read_dates_raise(self, commands, seeded):
        with pytest.raises(ValidationError):
            commands.get_cash_flow("2024-02-01", "2024-01-01")
        with pytest.raises(ValidationError, match="ISO date"):
            commands.get_balance_sheet("31/01/2024")

    def test_period_bounds_required(self, commands, seeded):
        with pytest.raises(ValidationError, match="'start' is required"):
            commands.get_cash_flow(None, "2024-01-31")
        with pytest.raises(ValidationError, match="'end' is required"):
            commands.get_profit_and_loss("2024-01-01", None)
