"""Tests for the YAML configuration loader."""

from decimal import Decimal

import pytest
import yaml

from ledger_config import get_active_config, load_config
from ledger_config.loader import DATABASE_URL_ENV, merge_sections
from ledger_kernel.exceptions import ConfigError


@pytest.fixture
def write_config(tmp_path):
    def _write(data: dict):
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump(data))
        return path
    return _write


@pytest.fixture(autouse=True)
def _no_env_url(monkeypatch):
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


class TestDefaults:

    def test_defaults_load(self):
        config = load_config()
        assert config.account_codes.cash == "1010"
        assert config.account_codes.accounts_payable == "2100"
        assert config.account_codes.sales_returns == "4100"
        assert config.retry.max_attempts == 3
        assert config.balance_tolerance == Decimal("0.01")
        assert config.journal_prefix == "JE"

    def test_default_chart_is_classified(self):
        chart = {d.code: d for d in load_config().chart}
        assert chart["1010"].subtype == "cash_and_bank"
        assert chart["4100"].account_type == "revenue"
        assert chart["4100"].subtype == "sales_returns"

    def test_gl_code_for_method(self):
        config = load_config()
        assert config.gl_code_for_method("bank") == "1020"
        assert config.gl_code_for_method("upi") == "1030"

    def test_get_active_config_logs(self, captured_logs):
        get_active_config()
        loaded = [r for r in captured_logs() if r["message"] == "ledger_config_loaded"]
        assert loaded[0]["source"] == "defaults"


class TestOverrides:

    def test_file_overrides_section_keys(self, write_config):
        config = load_config(write_config({"retry": {"max_attempts": 5}, "journal_prefix": "GJ"}))
        assert config.retry.max_attempts == 5
        assert config.retry.backoff_seconds == 0.05
        assert config.journal_prefix == "GJ"

    def test_env_overrides_database_url(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://ledger@db/ledger")
        assert load_config().database.url == "postgresql://ledger@db/ledger"

    def test_chart_list_is_replaced(self, write_config):
        path = write_config({
            "chart": [{"code": "1010", "name": "Cash", "account_type": "asset", "subtype": "cash_and_bank"}],
        })
        assert len(load_config(path).chart) == 1

    def test_merge_sections(self):
        merged = merge_sections({"a": {"x": 1, "y": 2}, "b": [1]}, {"a": {"y": 3}, "b": [2]})
        assert merged == {"a": {"x": 1, "y": 3}, "b": [2]}


class TestRejections:

    def test_unknown_top_level_key(self, write_config):
        with pytest.raises(ConfigError, match="Unknown configuration keys"):
            load_config(write_config({"jounral_prefix": "X"}))

    def test_unknown_section_key(self, write_config):
        with pytest.raises(ConfigError, match="retry"):
            load_config(write_config({"retry": {"attempts": 2}}))

    def test_invalid_retry_policy(self, write_config):
        with pytest.raises(ConfigError, match="max_attempts"):
            load_config(write_config({"retry": {"max_attempts": 0}}))

    def test_subtype_outside_type(self, write_config):
        path = write_config({
            "chart": [{"code": "2100", "name": "AP", "account_type": "liability", "subtype": "cash_and_bank"}],
        })
        with pytest.raises(ConfigError, match="does not belong"):
            load_config(path)

    def test_bad_tolerance(self, write_config):
        with pytest.raises(ConfigError, match="balance_tolerance"):
            load_config(write_config({"balance_tolerance": "abc"}))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_config_error_kind(self):
        assert ConfigError.kind == "configuration_error"
