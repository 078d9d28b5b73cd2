"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only queries over journal entries for ledger listings
    and detail views.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import EntryNotFoundError
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector, Page


@dataclass(frozen=True)
class JournalLineView:
    line_number: int
    account_id: UUID
    account_code: str
    debit_amount: Decimal
    credit_amount: Decimal
    memo: str | None


@dataclass(frozen=True)
class JournalEntryView:
    id: UUID
    entry_number: str
    entry_date: date
    description: str
    reference: str | None
    status: str
    total_amount: Decimal
    reversal_of_id: UUID | None
    source_type: str | None
    source_id: UUID | None
    lines: tuple[JournalLineView, ...]


def _to_view(entry: JournalEntry) -> JournalEntryView:
    return JournalEntryView(
        id=entry.id,
        entry_number=entry.entry_number,
        entry_date=entry.entry_date,
        description=entry.description,
        reference=entry.reference,
        status=entry.status,
        total_amount=entry.total_amount,
        reversal_of_id=entry.reversal_of_id,
        source_type=entry.source_type,
        source_id=entry.source_id,
        lines=tuple(
            JournalLineView(
                line_number=line.line_number,
                account_id=line.account_id,
                account_code=line.account.code,
                debit_amount=line.debit_amount,
                credit_amount=line.credit_amount,
                memo=line.memo,
            )
            for line in entry.lines
        ),
    )


class JournalSelector(BaseSelector):
    """Journal entry listings with filters and limit/offset pagination."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, entry_id: UUID) -> JournalEntryView:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return _to_view(entry)

    def by_source(self, source_type: str, source_id: UUID) -> list[JournalEntryView]:
        entries = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.source_type == source_type)
            .where(JournalEntry.source_id == source_id)
            .order_by(JournalEntry.entry_number)
        ).scalars().all()
        return [_to_view(e) for e in entries]

    def list_entries(
        self,
        status: str | None = None,
        start: date | None = None,
        end: date | None = None,
        source_type: str | None = None,
        account_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Page[JournalEntryView]:
        limit, offset = self._clamp(limit, offset)
        query = select(JournalEntry)
        if status is not None:
            query = query.where(JournalEntry.status == status)
        if start is not None:
            query = query.where(JournalEntry.entry_date >= start)
        if end is not None:
            query = query.where(JournalEntry.entry_date <= end)
        if source_type is not None:
            query = query.where(JournalEntry.source_type == source_type)
        if account_id is not None:
            query = query.where(
                JournalEntry.id.in_(
                    select(JournalLine.entry_id).where(JournalLine.account_id == account_id)
                )
            )

        total = self._count(query)
        entries = self.session.execute(
            query.order_by(JournalEntry.entry_date.desc(), JournalEntry.entry_number.desc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return Page(
            items=tuple(_to_view(e) for e in entries),
            total=total,
            limit=limit,
            offset=offset,
        )
