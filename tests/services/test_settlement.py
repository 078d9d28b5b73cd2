"""
Tests for SettlementService: account resolution, paired mutation and
journal entry, and exact reversal.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import (
    BankAccountRequiredError,
    InsufficientBalanceError,
    LiquidAccountNotFoundError,
    ValidationError,
)
from ledger_kernel.models.liquid_account import LiquidTransactionType
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_services.settlement import PaymentMethod


class TestResolveAccount:

    def test_cash_falls_back_to_drawer(self, settlement, cash_account, bank_account):
        assert settlement.resolve_account(PaymentMethod.CASH, None).id == cash_account.id

    def test_original_payment_falls_back_to_drawer(self, settlement, cash_account):
        assert settlement.resolve_account("original_payment", None).id == cash_account.id

    def test_explicit_account_wins(self, settlement, cash_account, bank_account):
        assert settlement.resolve_account("cash", bank_account.id).id == bank_account.id

    @pytest.mark.parametrize("method", ["bank_transfer", "upi", "cheque"])
    def test_non_cash_needs_account(self, settlement, cash_account, method):
        with pytest.raises(BankAccountRequiredError) as exc_info:
            settlement.resolve_account(method, None)
        assert exc_info.value.method == method

    def test_unknown_method(self, settlement, cash_account):
        with pytest.raises(ValidationError, match="Unknown payment method"):
            settlement.resolve_account("barter", None)

    def test_no_drawer(self, settlement, chart):
        with pytest.raises(LiquidAccountNotFoundError):
            settlement.resolve_account("cash", None)

    def test_unknown_account(self, settlement, chart):
        with pytest.raises(LiquidAccountNotFoundError):
            settlement.resolve_account("bank_transfer", uuid4())


class TestSettleOutflow:

    def test_mutation_and_entry_are_linked(self, settlement, cash_account, session, ledger, test_actor_id):
        source_id = uuid4()
        result = settlement.settle_outflow(
            cash_account,
            Decimal("1200.00"),
            "2100",
            LiquidTransactionType.VENDOR_PAYMENT,
            "Pay vendor",
            test_actor_id,
            source_type="vendor_payment",
            source_id=source_id,
            settlement_date=date(2024, 1, 3),
        )
        session.commit()

        assert result.balance_after == Decimal("8800.00")
        txn = settlement.liquid.get_transaction(result.transaction_id)
        assert txn.journal_entry_id == result.journal_entry_id

        entry = JournalSelector(session).get(result.journal_entry_id)
        assert entry.status == "posted"
        assert entry.source_id == source_id
        assert ledger.balance_by_code("1010", date(2024, 1, 3)) == Decimal("8800.00")

    def test_non_positive_amount(self, settlement, cash_account, test_actor_id):
        with pytest.raises(ValidationError, match="positive"):
            settlement.settle_outflow(
                cash_account, Decimal("0"), "2100", LiquidTransactionType.VENDOR_PAYMENT,
                "zero", test_actor_id, "vendor_payment", uuid4(),
            )

    def test_insufficient_funds_posts_nothing(self, settlement, cash_account, session, ledger, test_actor_id):
        with pytest.raises(InsufficientBalanceError):
            settlement.settle_outflow(
                cash_account, Decimal("10000.01"), "2100", LiquidTransactionType.VENDOR_PAYMENT,
                "too much", test_actor_id, "vendor_payment", uuid4(),
            )
        session.rollback()
        assert ledger.balance_by_code("2100", date(2024, 12, 31)) == Decimal("0")


class TestReverse:

    def test_reversal_restores_balance(self, settlement, bank_account, session, ledger, test_actor_id):
        source_id = uuid4()
        paid = settlement.settle_outflow(
            bank_account, Decimal("2000"), "4100", LiquidTransactionType.REFUND,
            "Refund", test_actor_id, "invoice_refund", source_id,
        )
        session.commit()

        undone = settlement.reverse(
            paid.journal_entry_id,
            paid.transaction_id,
            LiquidTransactionType.REFUND_REVERSAL,
            "Reverse refund",
            test_actor_id,
            "invoice_refund",
            source_id,
        )
        session.commit()

        assert undone.amount == Decimal("2000")
        assert undone.balance_after == Decimal("50000.00")
        assert undone.journal_entry_id != paid.journal_entry_id
        assert ledger.balance_by_code("4100", date(2024, 12, 31)) == Decimal("0")
        assert settlement.liquid.verify_balance(bank_account.id).is_consistent
