"""
Sales Domain Models (``ledger_modules.sales.models``).

Responsibility
--------------
Status enums, order line input specs, and frozen snapshots for sales
orders and the return records produced by cancelling them.

Invariants enforced
-------------------
* A custom line has no product; a stocked line must name one
  (``OrderItemSpec.__post_init__``).
* Quantities and prices are ``Decimal``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class SalesOrderStatus(str, Enum):
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class OrderItemSpec:
    """One order line as supplied by the caller."""
    quantity: Decimal
    unit_price: Decimal
    unit_cost: Decimal = Decimal("0")
    product_id: UUID | None = None
    description: str | None = None
    is_custom: bool = False

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError("Order line quantity must be positive")
        if self.unit_price < 0 or self.unit_cost < 0:
            raise ValueError("Order line prices cannot be negative")
        if not self.is_custom and self.product_id is None:
            raise ValueError("A stocked order line needs a product_id")


@dataclass(frozen=True)
class SalesOrderItem:
    id: UUID
    product_id: UUID | None
    is_custom: bool
    quantity: Decimal
    unit_price: Decimal
    unit_cost: Decimal
    description: str | None = None

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class SalesOrder:
    id: UUID
    order_number: str
    order_date: date
    status: str
    total_amount: Decimal
    items: tuple[SalesOrderItem, ...] = ()
    customer_name: str | None = None


@dataclass(frozen=True)
class SalesReturnItem:
    id: UUID
    order_item_id: UUID
    product_id: UUID | None
    quantity: Decimal
    return_value: Decimal
    cost_value: Decimal
    restored: bool


@dataclass(frozen=True)
class SalesReturn:
    id: UUID
    return_number: str
    order_id: UUID
    return_date: date
    return_value: Decimal
    cost_value: Decimal
    items: tuple[SalesReturnItem, ...] = ()
    reason: str | None = None
