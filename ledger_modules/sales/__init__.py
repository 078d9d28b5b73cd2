"""
Sales Module (``ledger_modules.sales``).

Sales orders and their cancellation (return record, invoice cancellation,
pending refunds, best-effort stock restoration).
"""

from ledger_modules.sales.models import (
    OrderItemSpec,
    SalesOrder,
    SalesOrderStatus,
    SalesReturn,
)
from ledger_modules.sales.service import SalesOrderService
from ledger_modules.sales.workflows import SALES_ORDER_WORKFLOW

__all__ = [
    "SALES_ORDER_WORKFLOW",
    "OrderItemSpec",
    "SalesOrder",
    "SalesOrderService",
    "SalesOrderStatus",
    "SalesReturn",
]
