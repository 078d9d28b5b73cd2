"""Kernel services: the only writers of kernel tables.  None of them commit."""

from ledger_kernel.services.chart_service import ChartOfAccountsService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.liquid_account_service import LiquidAccountService, MutationRecord
from ledger_kernel.services.sequence_service import SequenceService

__all__ = [
    "ChartOfAccountsService",
    "JournalService",
    "LiquidAccountService",
    "MutationRecord",
    "SequenceService",
]
