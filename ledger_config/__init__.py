"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the one way runtime code obtains a
    ``LedgerConfig``.  No service reads YAML files or environment variables
    directly.

Architecture position:
    Configuration.  Sits above ``ledger_kernel`` and below
    ``ledger_services`` / ``ledger_modules``.  The kernel never imports
    from this package.
"""

from __future__ import annotations

from pathlib import Path

from ledger_config.loader import load_config
from ledger_config.schema import (
    AccountCodes,
    AccountDefinition,
    DatabaseSettings,
    LedgerConfig,
    RetryPolicy,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("config")

__all__ = [
    "AccountCodes",
    "AccountDefinition",
    "DatabaseSettings",
    "LedgerConfig",
    "RetryPolicy",
    "get_active_config",
    "load_config",
]


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """Load and return the active configuration, logging what was loaded."""
    config = load_config(path)
    logger.info(
        "ledger_config_loaded",
        extra={
            "source": str(path) if path else "defaults",
            "chart_accounts": len(config.chart),
            "retry_attempts": config.retry.max_attempts,
        },
    )
    return config
