"""
Configuration schema (``ledger_config.schema``).

Frozen dataclasses produced by ``ledger_config.loader``.  Services receive a
``LedgerConfig`` and never read YAML or environment variables themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class AccountDefinition:
    """One chart account to seed."""
    code: str
    name: str
    account_type: str
    subtype: str


@dataclass(frozen=True)
class AccountCodes:
    """Chart codes the orchestrator and reports post to or read from."""
    cash: str = "1010"
    bank: str = "1020"
    upi: str = "1030"
    accounts_receivable: str = "1200"
    inventory: str = "1330"
    accounts_payable: str = "2100"
    owner_equity: str = "3000"
    retained_earnings: str = "3100"
    sales_revenue: str = "4000"
    sales_returns: str = "4100"
    cost_of_goods_sold: str = "5000"


@dataclass(frozen=True)
class RetryPolicy:
    """Whole-unit-of-work retry on optimistic lock conflicts."""
    max_attempts: int = 3
    backoff_seconds: float = 0.05

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("retry.max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("retry.backoff_seconds cannot be negative")


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///ledger.db"
    echo: bool = False
    statement_timeout_ms: int = 15000
    lock_timeout_ms: int = 5000
    connect_timeout_s: int = 10


@dataclass(frozen=True)
class LedgerConfig:
    """Complete runtime configuration."""
    account_codes: AccountCodes = field(default_factory=AccountCodes)
    chart: tuple[AccountDefinition, ...] = ()
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    journal_prefix: str = "JE"
    return_prefix: str = "RET"
    balance_tolerance: Decimal = Decimal("0.01")

    def gl_code_for_method(self, liquid_account_type: str) -> str:
        """Default chart code for a liquid account type (cash / bank / upi)."""
        return {
            "cash": self.account_codes.cash,
            "bank": self.account_codes.bank,
            "upi": self.account_codes.upi,
        }[liquid_account_type]
