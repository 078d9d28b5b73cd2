"""Financial statements and ledger summary over posted journal state."""

from ledger_modules.reporting.models import (
    BalanceSheetReport,
    CashFlowStatementReport,
    LedgerSummary,
    ProfitAndLossReport,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from ledger_modules.reporting.service import SUMMARY_ENTITY_TYPES, ReportingService
from ledger_modules.reporting.statements import render_to_dict

__all__ = [
    "BalanceSheetReport",
    "CashFlowStatementReport",
    "LedgerSummary",
    "ProfitAndLossReport",
    "ReportMetadata",
    "ReportType",
    "ReportingService",
    "SUMMARY_ENTITY_TYPES",
    "TrialBalanceReport",
    "render_to_dict",
]
