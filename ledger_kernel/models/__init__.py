"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.models.liquid_account import (
    LiquidAccount,
    LiquidAccountType,
    LiquidTransaction,
    LiquidTransactionType,
    TransactionDirection,
)

__all__ = [
    "Account",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "LiquidAccount",
    "LiquidAccountType",
    "LiquidTransaction",
    "LiquidTransactionType",
    "TransactionDirection",
]
