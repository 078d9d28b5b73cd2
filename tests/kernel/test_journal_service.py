"""
Tests for the Journal Engine (``ledger_kernel.services.journal_service``).

Validates:
- Draft creation with line validation and account resolution
- Posting: exact balance check, status flip, no double posting
- Posted entries are immutable (update/delete rejected)
- Reversal: mirrored posted sibling, at most once, POSTED only
- Balances only ever reflect POSTED lines
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.db.engine import session_scope
from ledger_kernel.domain.entry_rules import LineSpec
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    EntryAlreadyReversedError,
    EntryNotDraftError,
    EntryNotFoundError,
    EntryNotPostedError,
    EntryOwnedBySourceError,
    InvalidLineError,
    StateConflictError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntryStatus
from ledger_kernel.services.chart_service import ChartOfAccountsService

ENTRY_DATE = date(2024, 1, 15)


def _sale(amount: str = "500.00") -> list[LineSpec]:
    return [
        LineSpec.debit_line("1010", Decimal(amount), "cash received"),
        LineSpec.credit_line("4000", Decimal(amount)),
    ]


@pytest.fixture
def draft(journal, chart, session, test_actor_id):
    entry = journal.create_entry(_sale(), ENTRY_DATE, "Counter sale", test_actor_id)
    session.commit()
    return entry


class TestCreateEntry:

    def test_creates_draft_with_number(self, draft):
        assert draft.status == JournalEntryStatus.DRAFT.value
        assert draft.entry_number.startswith("JE-")
        assert len(draft.lines) == 2
        assert draft.total_amount == Decimal("500.00")

    def test_entry_numbers_are_sequential(self, journal, chart, test_actor_id):
        first = journal.create_entry(_sale(), ENTRY_DATE, "one", test_actor_id)
        second = journal.create_entry(_sale(), ENTRY_DATE, "two", test_actor_id)
        assert first.entry_number < second.entry_number

    def test_rejects_single_line(self, journal, chart, test_actor_id):
        with pytest.raises(ValidationError, match="at least 2"):
            journal.create_entry(_sale()[:1], ENTRY_DATE, "short", test_actor_id)

    def test_rejects_two_sided_line(self, journal, chart, test_actor_id):
        lines = [
            LineSpec(debit=Decimal("5"), credit=Decimal("5"), account_code="1010"),
            LineSpec.credit_line("4000", Decimal("5")),
        ]
        with pytest.raises(InvalidLineError):
            journal.create_entry(lines, ENTRY_DATE, "bad", test_actor_id)

    def test_rejects_negative_amount(self, journal, chart, test_actor_id):
        lines = [
            LineSpec.debit_line("1010", Decimal("-5")),
            LineSpec.credit_line("4000", Decimal("-5")),
        ]
        with pytest.raises(InvalidLineError):
            journal.create_entry(lines, ENTRY_DATE, "negative", test_actor_id)

    def test_rejects_unknown_account(self, journal, chart, test_actor_id):
        lines = [
            LineSpec.debit_line("9999", Decimal("5")),
            LineSpec.credit_line("4000", Decimal("5")),
        ]
        with pytest.raises(AccountNotFoundError):
            journal.create_entry(lines, ENTRY_DATE, "unknown", test_actor_id)

    def test_rejects_blank_description(self, journal, chart, test_actor_id):
        with pytest.raises(ValidationError, match="Description"):
            journal.create_entry(_sale(), ENTRY_DATE, "   ", test_actor_id)

    def test_unbalanced_draft_is_allowed(self, journal, chart, test_actor_id):
        lines = [
            LineSpec.debit_line("1010", Decimal("100")),
            LineSpec.credit_line("4000", Decimal("90")),
        ]
        entry = journal.create_entry(lines, ENTRY_DATE, "work in progress", test_actor_id)
        assert entry.is_draft


class TestPostEntry:

    def test_post_flips_status(self, journal, draft, session, test_actor_id, deterministic_clock):
        posted = journal.post_entry(draft.id, test_actor_id)
        session.commit()
        assert posted.status == JournalEntryStatus.POSTED.value
        assert posted.posted_at == deterministic_clock.now()
        assert posted.is_balanced

    def test_post_twice_is_state_conflict(self, journal, draft, session, test_actor_id):
        journal.post_entry(draft.id, test_actor_id)
        session.commit()
        with pytest.raises(EntryNotDraftError) as exc_info:
            journal.post_entry(draft.id, test_actor_id)
        assert isinstance(exc_info.value, StateConflictError)

    def test_unbalanced_entry_cannot_post(self, journal, chart, session, test_actor_id):
        lines = [
            LineSpec.debit_line("1010", Decimal("100")),
            LineSpec.credit_line("4000", Decimal("90")),
        ]
        entry = journal.create_entry(lines, ENTRY_DATE, "unbalanced", test_actor_id)
        with pytest.raises(UnbalancedEntryError) as exc_info:
            journal.post_entry(entry.id, test_actor_id)
        assert Decimal(exc_info.value.debits) == Decimal("100")
        assert isinstance(exc_info.value, ValidationError)
        assert journal.get_entry(entry.id).is_draft

    def test_unknown_entry(self, journal, chart, test_actor_id):
        from uuid import uuid4

        with pytest.raises(EntryNotFoundError):
            journal.post_entry(uuid4(), test_actor_id)

    def test_draft_does_not_move_balances(self, journal, draft, ledger):
        assert ledger.balance_by_code("1010", ENTRY_DATE) == Decimal("0")

    def test_posted_moves_balances(self, journal, draft, ledger, session, test_actor_id):
        journal.post_entry(draft.id, test_actor_id)
        session.commit()
        assert ledger.balance_by_code("1010", ENTRY_DATE) == Decimal("500.00")
        assert ledger.balance_by_code("4000", ENTRY_DATE) == Decimal("500.00")

    def test_post_system_entry_has_no_draft_stage(self, journal, chart, test_actor_id):
        entry = journal.post_system_entry(
            _sale("75"), ENTRY_DATE, "system", test_actor_id, source_type="test", source_id=uuid4()
        )
        assert entry.is_posted


class TestDraftEditing:

    def test_update_replaces_lines(self, journal, draft, session, test_actor_id):
        updated = journal.update_entry(draft.id, test_actor_id, lines=_sale("725.50"), description="Edited")
        session.commit()
        assert updated.total_amount == Decimal("725.50")
        assert updated.description == "Edited"
        assert sorted(line.line_number for line in updated.lines) == [1, 2]

    def test_update_posted_rejected(self, journal, draft, session, test_actor_id):
        journal.post_entry(draft.id, test_actor_id)
        session.commit()
        with pytest.raises(EntryNotDraftError, match="Cannot modify posted entry"):
            journal.update_entry(draft.id, test_actor_id, description="too late")

    def test_delete_draft(self, journal, draft, session):
        journal.delete_entry(draft.id)
        session.commit()
        with pytest.raises(EntryNotFoundError):
            journal.get_entry(draft.id)

    def test_delete_posted_rejected(self, journal, draft, session, test_actor_id):
        journal.post_entry(draft.id, test_actor_id)
        session.commit()
        with pytest.raises(EntryNotDraftError):
            journal.delete_entry(draft.id)


class TestReverseEntry:

    @pytest.fixture
    def posted(self, journal, draft, session, test_actor_id):
        entry = journal.post_entry(draft.id, test_actor_id)
        session.commit()
        return entry

    def test_reversal_mirrors_lines(self, journal, posted, session, test_actor_id):
        reversal = journal.reverse_entry(posted.id, test_actor_id, reversal_date=date(2024, 1, 20))
        session.commit()

        assert reversal.is_posted
        assert reversal.reversal_of_id == posted.id
        assert reversal.reference == posted.entry_number
        by_account = {line.account_id: line for line in reversal.lines}
        for line in posted.lines:
            mirror = by_account[line.account_id]
            assert mirror.debit_amount == line.credit_amount
            assert mirror.credit_amount == line.debit_amount

    def test_reversal_zeroes_balances(self, journal, posted, session, ledger, test_actor_id):
        journal.reverse_entry(posted.id, test_actor_id, reversal_date=date(2024, 1, 20))
        session.commit()
        assert ledger.balance_by_code("1010", date(2024, 1, 20)) == Decimal("0")
        # Original is still visible as of its own date
        assert ledger.balance_by_code("1010", ENTRY_DATE) == Decimal("500.00")

    def test_original_untouched(self, journal, posted, session, test_actor_id):
        journal.reverse_entry(posted.id, test_actor_id)
        session.commit()
        original = journal.get_entry(posted.id)
        assert original.is_posted
        assert original.total_amount == Decimal("500.00")

    def test_second_reversal_rejected(self, journal, posted, session, test_actor_id):
        journal.reverse_entry(posted.id, test_actor_id)
        session.commit()
        with pytest.raises(EntryAlreadyReversedError):
            journal.reverse_entry(posted.id, test_actor_id)

    def test_draft_cannot_be_reversed(self, journal, draft, test_actor_id):
        with pytest.raises(EntryNotPostedError):
            journal.reverse_entry(draft.id, test_actor_id)

    def test_settlement_entry_reversed_only_by_its_owner(self, journal, chart, session, test_actor_id):
        refund_id = uuid4()
        entry = journal.post_system_entry(
            _sale("75"), ENTRY_DATE, "Refund payout", test_actor_id,
            source_type="invoice_refund", source_id=refund_id,
        )
        session.commit()

        with pytest.raises(EntryOwnedBySourceError, match="reverse it through that record") as exc:
            journal.reverse_entry(entry.id, test_actor_id)
        assert exc.value.kind == "state_conflict"
        assert exc.value.source_id == str(refund_id)
        assert journal.find_reversal(entry.id) is None

        reversal = journal.reverse_entry(entry.id, test_actor_id, allow_system=True)
        assert reversal.source_type == "invoice_refund"
        assert reversal.source_id == refund_id

    def test_reversal_after_account_deactivated(self, journal, posted, session, ledger, test_actor_id):
        chart_service = ChartOfAccountsService(session)
        cash = chart_service.get_by_code("1010")
        chart_service.update_account(cash.id, test_actor_id, is_active=False)
        session.commit()

        with pytest.raises(AccountNotFoundError):
            journal.create_entry(_sale(), ENTRY_DATE, "New sale", test_actor_id)

        journal.reverse_entry(posted.id, test_actor_id, reversal_date=date(2024, 1, 20))
        session.commit()
        assert ledger.balance_by_code("1010", date(2024, 1, 20)) == Decimal("0")


class TestEntryLogging:

    def test_posting_logs_event(self, journal, draft, session, test_actor_id, captured_logs):
        journal.post_entry(draft.id, test_actor_id)
        session.commit()
        posted = [r for r in captured_logs() if r["message"] == "journal_entry_posted"]
        assert len(posted) == 1
        assert posted[0]["entry_id"] == str(draft.id)
        assert Decimal(posted[0]["total_amount"]) == Decimal("500.00")


class TestSessionScope:

    def test_commits_on_exit_and_rolls_back_on_error(self, db_engine, test_actor_id):
        with session_scope() as s:
            s.add(Account(code="8000", name="Suspense", account_type="asset",
                          normal_balance="debit", subtype="current_asset", created_by_id=test_actor_id))

        with pytest.raises(RuntimeError):
            with session_scope() as s:
                s.add(Account(code="8001", name="Ghost", account_type="asset",
                              normal_balance="debit", subtype="current_asset", created_by_id=test_actor_id))
                s.flush()
                raise RuntimeError("abort")

        with session_scope() as s:
            codes = {a.code for a in s.query(Account).all()}
        assert "8000" in codes
        assert "8001" not in codes
