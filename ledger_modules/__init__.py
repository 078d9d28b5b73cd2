"""
Ledger Modules.

Thin ERP glue over the ledger kernel.  Each module contains:
- Domain models (frozen value objects and status enums)
- ORM models (the module's own tables)
- Workflows (state machines for its records)
- A service that owns the transaction boundary for its operations

Modules:
- AP: Vendor bills and vendor payments
- AR: Invoices and invoice refunds
- Sales: Orders, returns, cancellation
- Inventory: Product quantities
- Reporting: Balance sheet, cash flow, profit & loss, trial balance

Money movement and journal posting live in the kernel and in
``ledger_services.settlement``.
"""
