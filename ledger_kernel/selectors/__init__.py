"""Read-only query selectors over kernel tables."""

from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.liquid_selector import LiquidSelector

__all__ = ["JournalSelector", "LedgerSelector", "LiquidSelector"]
