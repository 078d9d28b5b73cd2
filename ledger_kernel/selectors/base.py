"""
Module: ledger_kernel.selectors.base
Responsibility: Base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    the pure domain layer.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush, or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Session ownership: the caller owns the session and its transaction.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results plus the unpaginated total."""
    items: tuple[T, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


def to_decimal(value: Any) -> Decimal:
    """Normalize an aggregate result (Decimal, int, None) to Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class BaseSelector:
    """
    Base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.
    """

    MAX_PAGE_SIZE = 500

    def __init__(self, session: Session):
        self.session = session

    def _count(self, query: Select) -> int:
        return self.session.execute(
            select(func.count()).select_from(query.order_by(None).subquery())
        ).scalar_one()

    def _clamp(self, limit: int, offset: int) -> tuple[int, int]:
        return max(1, min(limit, self.MAX_PAGE_SIZE)), max(0, offset)
