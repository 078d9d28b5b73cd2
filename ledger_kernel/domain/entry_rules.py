"""
Journal entry rules (``ledger_kernel.domain.entry_rules``).

Responsibility
--------------
Pure validation and arithmetic for journal lines: the one-sided line rule,
the minimum line count, exact debit/credit balance, and the debit/credit
swap used by reversals.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over frozen value objects.
ZERO I/O.  JournalService calls these at create, update, and post time.

Invariants enforced
-------------------
* An entry has at least two lines.
* Each line has a non-negative debit and a non-negative credit, and exactly
  one of the two is non-zero.
* Balance is exact Decimal equality.  There is no tolerance.

Failure modes
-------------
* ValidationError for a short entry.
* InvalidLineError (a ValidationError) naming the offending line number.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from ledger_kernel.exceptions import InvalidLineError, ValidationError

MIN_LINES = 2

_ZERO = Decimal("0")


@dataclass(frozen=True)
class LineSpec:
    """One requested journal line.

    Exactly one of ``account_code`` / ``account_id`` identifies the account.
    """

    debit: Decimal = _ZERO
    credit: Decimal = _ZERO
    account_code: str | None = None
    account_id: UUID | None = None
    memo: str | None = None

    @property
    def is_debit(self) -> bool:
        return self.debit > _ZERO

    @property
    def amount(self) -> Decimal:
        return self.debit if self.is_debit else self.credit

    @classmethod
    def debit_line(cls, account_code: str, amount: Decimal, memo: str | None = None) -> LineSpec:
        return cls(debit=amount, account_code=account_code, memo=memo)

    @classmethod
    def credit_line(cls, account_code: str, amount: Decimal, memo: str | None = None) -> LineSpec:
        return cls(credit=amount, account_code=account_code, memo=memo)


def validate_line(line_number: int, line: LineSpec) -> None:
    """Raise InvalidLineError if the line breaks the one-sided amount rule."""
    if line.account_code is None and line.account_id is None:
        raise InvalidLineError(line_number, "account is required")
    if line.debit < _ZERO or line.credit < _ZERO:
        raise InvalidLineError(line_number, "amounts must be non-negative")
    if line.debit > _ZERO and line.credit > _ZERO:
        raise InvalidLineError(line_number, "line cannot have both debit and credit")
    if line.debit == _ZERO and line.credit == _ZERO:
        raise InvalidLineError(line_number, "line must have either a debit or a credit")


def validate_lines(lines: Sequence[LineSpec]) -> None:
    """Validate line count and every line's shape.  Does not check balance."""
    if len(lines) < MIN_LINES:
        raise ValidationError(
            f"A journal entry requires at least {MIN_LINES} lines, got {len(lines)}",
            field="lines",
        )
    for number, line in enumerate(lines, start=1):
        validate_line(number, line)


def totals(lines: Sequence[LineSpec]) -> tuple[Decimal, Decimal]:
    """Return (total_debits, total_credits)."""
    debits = sum((line.debit for line in lines), _ZERO)
    credits = sum((line.credit for line in lines), _ZERO)
    return debits, credits


def is_balanced(lines: Sequence[LineSpec]) -> bool:
    debits, credits = totals(lines)
    return debits == credits


def swap_sides(lines: Sequence[LineSpec]) -> tuple[LineSpec, ...]:
    """Mirror every line: debits become credits and vice versa."""
    return tuple(replace(line, debit=line.credit, credit=line.debit) for line in lines)
