"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen ``ledger_config.schema``
dataclasses.  The packaged ``defaults.yaml`` is always loaded first; a
deployment file overrides it section by section.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends only on the kernel
exception types.

Invariants enforced
-------------------
* Unknown keys are rejected with ``ConfigError``; a typo never silently
  falls back to a default.
* Money-like values (``balance_tolerance``) are parsed as ``Decimal``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown or invalid keys  -> ``ConfigError``.
"""

from __future__ import annotations

import os
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AccountCodes,
    AccountDefinition,
    DatabaseSettings,
    LedgerConfig,
    RetryPolicy,
)
from ledger_kernel.domain.chart import is_valid_subtype
from ledger_kernel.exceptions import ConfigError

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

DATABASE_URL_ENV = "LEDGER_DATABASE_URL"

_TOP_LEVEL_KEYS = frozenset({
    "journal_prefix",
    "return_prefix",
    "balance_tolerance",
    "database",
    "retry",
    "account_codes",
    "chart",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _build(cls: type, section: str, data: dict[str, Any] | None) -> Any:
    """Instantiate a flat dataclass from a mapping, rejecting unknown keys."""
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{section}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown keys in '{section}': {sorted(unknown)}")
    try:
        return cls(**data)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid '{section}' section: {exc}") from exc


def parse_chart(items: list[dict[str, Any]]) -> tuple[AccountDefinition, ...]:
    """Parse and classify-check the seed chart."""
    chart = []
    for item in items or []:
        definition = _build(AccountDefinition, "chart", {k: str(v) for k, v in item.items()})
        if not is_valid_subtype(definition.account_type, definition.subtype):
            raise ConfigError(
                f"Account {definition.code}: subtype '{definition.subtype}' "
                f"does not belong to type '{definition.account_type}'"
            )
        chart.append(definition)
    return tuple(chart)


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a ``LedgerConfig`` from a merged dict.

    Raises:
        ConfigError: on unknown keys, bad classifications, or bad values.
    """
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {sorted(unknown)}")

    try:
        tolerance = Decimal(str(data.get("balance_tolerance", "0.01")))
    except InvalidOperation as exc:
        raise ConfigError("balance_tolerance must be a decimal number") from exc

    codes = {k: str(v) for k, v in (data.get("account_codes") or {}).items()}

    return LedgerConfig(
        account_codes=_build(AccountCodes, "account_codes", codes),
        chart=parse_chart(data.get("chart", [])),
        retry=_build(RetryPolicy, "retry", data.get("retry")),
        database=_build(DatabaseSettings, "database", data.get("database")),
        journal_prefix=str(data.get("journal_prefix", "JE")),
        return_prefix=str(data.get("return_prefix", "RET")),
        balance_tolerance=tolerance,
    )


def merge_sections(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Shallow-merge mapping sections; lists and scalars are replaced."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def load_config(path: Path | str | None = None) -> LedgerConfig:
    """
    Load defaults, overlay ``path`` if given, then the environment.

    ``LEDGER_DATABASE_URL`` overrides ``database.url``.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data = merge_sections(data, load_yaml_file(Path(path)))

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        data = merge_sections(data, {"database": {"url": env_url}})

    return parse_config(data)
