"""
Structured JSON logging for the ledger.

Every logger lives under the ``ledger_kernel`` prefix and writes one JSON
object per line.  A line carries the record envelope (ts, level, logger,
message), whatever the current command bound through ``LogContext``, the
``extra`` fields of the call, and for a failure the exception flattened
into ``exc_*`` keys (``LedgerError`` attributes included, so a record id
or a requested amount is searchable without parsing the message).

Money, ids and dates are written as strings; enum members as their value.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Mapping
from uuid import UUID

# Fields a command may bind for the duration of its unit of work
CONTEXT_FIELDS = ("correlation_id", "command", "actor_id", "record_id", "entry_id")

_context: ContextVar[Mapping[str, str]] = ContextVar("ledger_log_context", default={})


class LogContext:
    """
    Command-scoped log fields, safe across threads and tasks.

    Backed by a single ContextVar holding an immutable snapshot, so a
    worker thread starts empty and ``bind`` restores the previous snapshot
    on exit even when the block raises.
    """

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Add fields for the block.  None values are skipped; unknown names rejected."""
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _context.set(merged)
        try:
            yield
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "taskName"}


def _plain(value: Any) -> Any:
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    for attr in ("code", "kind"):
        if hasattr(exc, attr):
            fields[f"exc_{attr}"] = getattr(exc, attr)
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields.setdefault(f"exc_{name}", value)
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RESERVED:
                line.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            line.update(_exception_fields(record.exc_info[1]))
            line["traceback"] = self.formatException(record.exc_info)
        return json.dumps(line, default=_plain)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_ROOT = "ledger_kernel"
_setup_lock = threading.Lock()
_handler: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_ROOT}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach the JSON handler to the ``ledger_kernel`` hierarchy.

    The first call wins; later calls (every engine init makes one) are
    no-ops until ``reset_logging``.
    """
    global _handler
    with _setup_lock:
        if _handler is not None:
            return
        _handler = handler or logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(StructuredFormatter())
        root = logging.getLogger(_ROOT)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_handler)


def reset_logging() -> None:
    """Detach the handler so the next ``configure_logging`` applies.  Tests only."""
    global _handler
    with _setup_lock:
        root = logging.getLogger(_ROOT)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
        _handler = None
