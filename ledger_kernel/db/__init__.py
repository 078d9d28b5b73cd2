"""Database layer - engine, base classes, types."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from ledger_kernel.db.types import LongText, Money, ShortCode

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "ShortCode",
    "LongText",
]
