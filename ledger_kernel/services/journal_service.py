"""
JournalService -- the Journal Engine: draft, post, delete, and reverse entries.

Responsibility:
    Sole writer of ``journal_entries`` and ``journal_lines``.  Validates line
    shape on every write, allocates entry numbers from a locked sequence,
    re-validates exact balance at post time, and undoes posted entries only
    by creating a posted sibling with every side swapped.

Architecture position:
    Kernel > Services -- imperative shell over domain/entry_rules.py.
    Does NOT commit: the caller (command facade or module service) owns the
    transaction boundary, so a system entry commits or rolls back together
    with its balance mutation.

Invariants enforced:
    - An entry has >= 2 lines; each line is one-sided and non-negative.
    - POSTED requires sum(debit) == sum(credit) exactly, checked under a
      row lock immediately before the status flip.
    - POSTED entries are never updated or deleted.
    - At most one reversal per entry.

Failure modes:
    - ValidationError / InvalidLineError on malformed lines.
    - UnbalancedEntryError at post time.
    - EntryNotFoundError, AccountNotFoundError.
    - EntryNotDraftError on update/delete/post of a posted entry.
    - EntryNotPostedError, EntryAlreadyReversedError on reversal.
    - EntryOwnedBySourceError when a settlement's entry is reversed directly.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.entry_rules import LineSpec, swap_sides, totals, validate_lines
from ledger_kernel.domain.workflow import Transition, Workflow
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    EntryAlreadyReversedError,
    EntryNotDraftError,
    EntryNotFoundError,
    EntryNotPostedError,
    EntryOwnedBySourceError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal")


JOURNAL_ENTRY_WORKFLOW = Workflow(
    name="journal_entry",
    description="Draft to posted; posted entries are undone only by reversal",
    initial_state=JournalEntryStatus.DRAFT.value,
    states=(JournalEntryStatus.DRAFT.value, JournalEntryStatus.POSTED.value),
    terminal_states=(JournalEntryStatus.POSTED.value,),
    transitions=(
        Transition(
            JournalEntryStatus.DRAFT.value,
            JournalEntryStatus.POSTED.value,
            action="post",
            posts_entry=True,
        ),
    ),
)


class JournalService:
    """
    The Journal Engine.

    Contract:
        ``create_entry`` returns a DRAFT entry; ``post_entry`` flips it to
        POSTED once and only once; ``reverse_entry`` and
        ``post_system_entry`` return entries that are already POSTED.

    Guarantees:
        - Entry numbers come from SequenceService, never MAX()+1.
        - Every posted entry satisfies ``entry.is_balanced``.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT compute account balances (LedgerSelector does).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        entry_prefix: str = "JE",
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._entry_prefix = entry_prefix
        self._sequences = SequenceService(session)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_entry(self, entry_id: UUID) -> JournalEntry:
        entry = self._session.get(JournalEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def _lock_entry(self, entry_id: UUID) -> JournalEntry:
        entry = self._session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def find_reversal(self, entry_id: UUID) -> JournalEntry | None:
        return self._session.execute(
            select(JournalEntry).where(JournalEntry.reversal_of_id == entry_id)
        ).scalar_one_or_none()

    # =========================================================================
    # Line helpers
    # =========================================================================

    def _resolve_account(self, line: LineSpec, require_active: bool = True) -> Account:
        if line.account_id is not None:
            account = self._session.get(Account, line.account_id)
            ref = str(line.account_id)
        else:
            account = self._session.execute(
                select(Account).where(Account.code == line.account_code)
            ).scalar_one_or_none()
            ref = str(line.account_code)
        if account is None or (require_active and not account.is_active):
            raise AccountNotFoundError(ref)
        return account

    def _build_lines(
        self, lines: Sequence[LineSpec], require_active: bool = True
    ) -> list[JournalLine]:
        validate_lines(lines)
        built = []
        for number, spec in enumerate(lines, start=1):
            account = self._resolve_account(spec, require_active)
            built.append(
                JournalLine(
                    account_id=account.id,
                    line_number=number,
                    debit_amount=spec.debit,
                    credit_amount=spec.credit,
                    memo=spec.memo,
                )
            )
        return built

    @staticmethod
    def _specs_from_entry(entry: JournalEntry) -> list[LineSpec]:
        return [
            LineSpec(
                debit=line.debit_amount,
                credit=line.credit_amount,
                account_id=line.account_id,
                memo=line.memo,
            )
            for line in entry.lines
        ]

    @staticmethod
    def _require_description(description: str) -> None:
        if not description or not description.strip():
            raise ValidationError("Description is required", field="description")

    # =========================================================================
    # Commands
    # =========================================================================

    def create_entry(
        self,
        lines: Sequence[LineSpec],
        entry_date: date,
        description: str,
        actor_id: UUID,
        reference: str | None = None,
        source_type: str | None = None,
        source_id: UUID | None = None,
        entry_id: UUID | None = None,
    ) -> JournalEntry:
        """
        Create a DRAFT entry.

        Balance is not required for a draft; it is enforced by post_entry.
        """
        self._require_description(description)
        return self._add_entry(
            lines,
            entry_date,
            description,
            actor_id,
            reference=reference,
            source_type=source_type,
            source_id=source_id,
            entry_id=entry_id,
        )

    def _add_entry(
        self,
        lines: Sequence[LineSpec],
        entry_date: date,
        description: str,
        actor_id: UUID,
        reference: str | None = None,
        source_type: str | None = None,
        source_id: UUID | None = None,
        entry_id: UUID | None = None,
        require_active: bool = True,
    ) -> JournalEntry:
        built = self._build_lines(lines, require_active)
        debits, _ = totals(lines)

        entry = JournalEntry(
            id=entry_id or uuid4(),
            entry_number=self._sequences.next_number(
                SequenceService.JOURNAL_ENTRY, self._entry_prefix
            ),
            entry_date=entry_date,
            description=description,
            reference=reference,
            status=JournalEntryStatus.DRAFT.value,
            total_amount=debits,
            source_type=source_type,
            source_id=source_id,
            created_by_id=actor_id,
        )
        entry.lines = built
        self._session.add(entry)
        self._session.flush()

        logger.info(
            "journal_entry_created",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "line_count": len(built),
                "total_amount": str(debits),
            },
        )
        return entry

    def update_entry(
        self,
        entry_id: UUID,
        actor_id: UUID,
        lines: Sequence[LineSpec] | None = None,
        description: str | None = None,
        entry_date: date | None = None,
        reference: str | None = None,
    ) -> JournalEntry:
        """Edit a DRAFT entry.  Lines, when given, replace all existing lines."""
        entry = self._lock_entry(entry_id)
        if not entry.is_draft:
            raise EntryNotDraftError(str(entry_id), entry.status)

        if lines is not None:
            built = self._build_lines(lines)
            entry.lines.clear()
            self._session.flush()
            entry.lines.extend(built)
            entry.total_amount = totals(lines)[0]
        if description is not None:
            self._require_description(description)
            entry.description = description
        if entry_date is not None:
            entry.entry_date = entry_date
        if reference is not None:
            entry.reference = reference
        entry.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "journal_entry_updated",
            extra={"entry_id": str(entry_id), "lines_replaced": lines is not None},
        )
        return entry

    def post_entry(self, entry_id: UUID, actor_id: UUID) -> JournalEntry:
        """
        DRAFT -> POSTED.

        Balance is re-checked here from the persisted lines because a draft
        may have been edited since it was created.
        """
        entry = self._lock_entry(entry_id)
        transition = JOURNAL_ENTRY_WORKFLOW.find_transition(entry.status, "post")
        if transition is None:
            raise EntryNotDraftError(str(entry_id), entry.status)

        specs = self._specs_from_entry(entry)
        validate_lines(specs)
        debits, credits = totals(specs)
        if debits != credits:
            logger.warning(
                "journal_entry_unbalanced",
                extra={
                    "entry_id": str(entry_id),
                    "debits": str(debits),
                    "credits": str(credits),
                },
            )
            raise UnbalancedEntryError(str(debits), str(credits), record_id=str(entry_id))

        entry.status = transition.to_state
        entry.total_amount = debits
        entry.posted_at = self._clock.now()
        entry.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "journal_entry_posted",
            extra={
                "entry_id": str(entry_id),
                "entry_number": entry.entry_number,
                "total_amount": str(debits),
            },
        )
        return entry

    def delete_entry(self, entry_id: UUID) -> None:
        """Hard-delete a DRAFT entry and its lines."""
        entry = self._lock_entry(entry_id)
        if not entry.is_draft:
            raise EntryNotDraftError(str(entry_id), entry.status)
        self._session.delete(entry)
        self._session.flush()
        logger.info("journal_entry_deleted", extra={"entry_id": str(entry_id)})

    def post_system_entry(
        self,
        lines: Sequence[LineSpec],
        entry_date: date,
        description: str,
        actor_id: UUID,
        source_type: str,
        source_id: UUID,
        reference: str | None = None,
        entry_id: UUID | None = None,
    ) -> JournalEntry:
        """Create and post in one step.  System entries have no draft stage."""
        entry = self.create_entry(
            lines=lines,
            entry_date=entry_date,
            description=description,
            actor_id=actor_id,
            reference=reference,
            source_type=source_type,
            source_id=source_id,
            entry_id=entry_id,
        )
        return self.post_entry(entry.id, actor_id)

    def reverse_entry(
        self,
        entry_id: UUID,
        actor_id: UUID,
        reversal_date: date | None = None,
        description: str | None = None,
        reversal_entry_id: UUID | None = None,
        allow_system: bool = False,
    ) -> JournalEntry:
        """
        Create and post the mirror of a POSTED entry.

        The original is untouched; the reversal references it through
        reversal_of_id and carries the original's source linkage.  An entry
        with a ``source_type`` belongs to the record that posted it (a
        payment, refund, transfer or opening balance) and is reversed only
        by that record's owner, which passes ``allow_system=True``.
        Mirrored lines may reference accounts deactivated since posting.
        """
        logger.info("reversal_started", extra={"original_entry_id": str(entry_id)})

        original = self._lock_entry(entry_id)
        if not original.is_posted:
            raise EntryNotPostedError(str(entry_id), original.status)
        existing = self.find_reversal(entry_id)
        if existing is not None:
            raise EntryAlreadyReversedError(str(entry_id), str(existing.id))
        if original.source_type is not None and not allow_system:
            raise EntryOwnedBySourceError(
                str(entry_id), original.source_type, str(original.source_id)
            )

        mirrored = swap_sides(self._specs_from_entry(original))
        reversal = self._add_entry(
            lines=mirrored,
            entry_date=reversal_date or self._clock.today(),
            description=description or f"Reversal of {original.entry_number}",
            actor_id=actor_id,
            reference=original.entry_number,
            source_type=original.source_type,
            source_id=original.source_id,
            entry_id=reversal_entry_id,
            require_active=False,
        )
        reversal.reversal_of_id = original.id
        self._session.flush()
        self.post_entry(reversal.id, actor_id)

        logger.info(
            "reversal_completed",
            extra={
                "original_entry_id": str(entry_id),
                "reversal_entry_id": str(reversal.id),
                "reversal_entry_number": reversal.entry_number,
            },
        )
        return reversal

    @staticmethod
    def two_leg(
        debit_code: str,
        credit_code: str,
        amount: Decimal,
        memo: str | None = None,
    ) -> tuple[LineSpec, LineSpec]:
        """Dr ``debit_code`` / Cr ``credit_code`` for ``amount``."""
        return (
            LineSpec.debit_line(debit_code, amount, memo),
            LineSpec.credit_line(credit_code, amount, memo),
        )
