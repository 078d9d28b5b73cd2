"""
Ledger Kernel

The double-entry core of the ERP ledger:
- Balanced journal posting with draft/posted lifecycle and reversal
- Liquid (cash / bank / UPI) running balances backed by an append-only
  transaction history
- Read-only balance projection for reports
"""

__version__ = "0.1.0"
