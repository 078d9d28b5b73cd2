"""Tests for chart-of-accounts seeding and guarded account updates."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.chart import (
    AccountSubtype,
    AccountType,
    NormalBalance,
    is_valid_subtype,
    natural_balance,
    normal_balance_for,
)
from ledger_kernel.exceptions import AccountNotFoundError, AccountReferencedError, ValidationError
from ledger_kernel.services.chart_service import ChartOfAccountsService
from ledger_kernel.services.journal_service import JournalService


@pytest.fixture
def accounts(session):
    return ChartOfAccountsService(session)


class TestChartRules:

    @pytest.mark.parametrize(
        "account_type, expected",
        [
            (AccountType.ASSET, NormalBalance.DEBIT),
            (AccountType.EXPENSE, NormalBalance.DEBIT),
            (AccountType.LIABILITY, NormalBalance.CREDIT),
            (AccountType.EQUITY, NormalBalance.CREDIT),
            (AccountType.REVENUE, NormalBalance.CREDIT),
        ],
    )
    def test_normal_balance_follows_type(self, account_type, expected):
        assert normal_balance_for(account_type) == expected

    def test_subtype_must_belong_to_type(self):
        assert is_valid_subtype("asset", "cash_and_bank")
        assert is_valid_subtype(AccountType.REVENUE, AccountSubtype.SALES_RETURNS)
        assert not is_valid_subtype("liability", "cash_and_bank")
        assert not is_valid_subtype("asset", "no_such_subtype")

    def test_natural_balance_sign(self):
        assert natural_balance("asset", Decimal("100"), Decimal("30")) == Decimal("70")
        assert natural_balance("revenue", Decimal("100"), Decimal("30")) == Decimal("-70")


class TestSeeding:

    def test_seeds_default_chart(self, chart, accounts):
        assert len(chart.created) == 15
        cash = accounts.get_by_code("1010")
        assert cash.account_type == "asset"
        assert cash.subtype == "cash_and_bank"
        assert cash.normal_balance == "debit"

    def test_seeding_is_idempotent(self, chart, accounts, ledger_config, test_actor_id):
        again = accounts.ensure_defaults(ledger_config.chart, test_actor_id)
        assert again.created == ()
        assert len(again.existing) == 15


class TestCreateAndUpdate:

    def test_rejects_subtype_of_another_type(self, accounts, chart, test_actor_id):
        with pytest.raises(ValidationError, match="does not belong"):
            accounts.create_account("2900", "Odd", "liability", "cash_and_bank", test_actor_id)

    def test_rejects_unknown_type(self, accounts, chart, test_actor_id):
        with pytest.raises(ValidationError, match="Unknown account type"):
            accounts.create_account("9000", "Odd", "suspense", "other_expense", test_actor_id)

    def test_accepts_enum_subtype(self, accounts, chart, session, test_actor_id):
        account = accounts.create_account(
            "1600", "Software", AccountType.ASSET, AccountSubtype.INTANGIBLE_ASSET, test_actor_id
        )
        session.commit()
        assert account.subtype == "intangible_asset"

    def test_unknown_code(self, accounts, chart):
        with pytest.raises(AccountNotFoundError):
            accounts.get_by_code("0000")

    def test_rename_always_allowed(self, accounts, chart, session, test_actor_id):
        cash = accounts.get_by_code("1010")
        accounts.update_account(cash.id, test_actor_id, name="Petty Cash")
        session.commit()
        assert accounts.get_by_code("1010").name == "Petty Cash"

    def test_reclassify_unreferenced_account(self, accounts, chart, session, test_actor_id):
        loans = accounts.get_by_code("2500")
        accounts.update_account(loans.id, test_actor_id, subtype="current_liability")
        session.commit()
        assert accounts.get(loans.id).subtype == "current_liability"

    def test_referenced_account_cannot_be_reclassified(
        self, accounts, chart, journal, session, test_actor_id
    ):
        journal.post_system_entry(
            lines=JournalService.two_leg("6000", "1010", Decimal("25")),
            entry_date=date(2024, 1, 2),
            description="stationery",
            actor_id=test_actor_id,
            source_type="test",
            source_id=test_actor_id,
        )
        session.commit()

        opex = accounts.get_by_code("6000")
        assert accounts.is_referenced(opex.id)
        with pytest.raises(AccountReferencedError):
            accounts.update_account(opex.id, test_actor_id, code="6100")
