"""Tests for the structured JSON log formatter and LogContext."""

import json
import logging
import sys
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import InsufficientBalanceError
from ledger_kernel.logging_config import LogContext, StructuredFormatter, get_logger
from ledger_kernel.models.liquid_account import LiquidAccountType


def _format(record: logging.LogRecord) -> dict:
    return json.loads(StructuredFormatter().format(record))


def _record(msg: str = "event", **extra) -> logging.LogRecord:
    record = logging.LogRecord("ledger_kernel.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:

    def test_base_fields(self):
        payload = _format(_record("refund_processed"))
        assert payload["message"] == "refund_processed"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "ledger_kernel.test"
        assert "ts" in payload

    def test_extra_fields_serialized(self):
        record_id = uuid4()
        payload = _format(_record(amount=Decimal("12.50"), refund_id=record_id))
        assert payload["amount"] == "12.50"
        assert payload["refund_id"] == str(record_id)

    def test_enum_written_as_value(self):
        assert _format(_record(account_type=LiquidAccountType.BANK))["account_type"] == "bank"

    def test_context_fields_included(self):
        with LogContext.bind(correlation_id="abc", command="process_refund"):
            payload = _format(_record())
        assert payload["correlation_id"] == "abc"
        assert payload["command"] == "process_refund"
        assert "correlation_id" not in _format(_record())

    def test_ledger_error_fields_flattened(self):
        try:
            raise InsufficientBalanceError("acct-1", "10.00", "25.00")
        except InsufficientBalanceError:
            record = logging.LogRecord(
                "ledger_kernel.test", logging.ERROR, __file__, 1, "failed", (), None,
            )
            record.exc_info = sys.exc_info()
        payload = _format(record)
        assert payload["exc_type"] == "InsufficientBalanceError"
        assert payload["exc_code"] == InsufficientBalanceError.code
        assert payload["exc_requested"] == "25.00"
        assert "traceback" in payload
        assert payload["exc_kind"] == "insufficient_balance"


class TestLogContext:

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="Unknown log context field"):
            with LogContext.bind(tenant="x"):
                pass

    def test_restored_after_exception(self):
        with LogContext.bind(command="outer"):
            with pytest.raises(RuntimeError):
                with LogContext.bind(command="inner", record_id="r-1"):
                    raise RuntimeError("boom")
            assert LogContext.get_all() == {"command": "outer"}
        assert LogContext.get_all() == {}

    def test_none_values_skipped(self):
        with LogContext.bind(actor_id=None, entry_id=uuid4()):
            assert set(LogContext.get_all()) == {"entry_id"}


class TestLoggerFactory:

    def test_loggers_share_prefix(self):
        assert get_logger("services.journal").name == "ledger_kernel.services.journal"

    def test_captured_through_fixture(self, captured_logs):
        get_logger("tests").info("hello", extra={"value": 1})
        assert captured_logs()[-1]["value"] == 1
