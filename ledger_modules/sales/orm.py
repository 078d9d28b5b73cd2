"""
Sales ORM Models (``ledger_modules.sales.orm``).

Responsibility
--------------
SQLAlchemy persistence for sales orders, their lines, and the return
records written when an order is cancelled.

Architecture position
---------------------
**Modules layer** -- persistence.  MUST NOT be imported by ``ledger_kernel``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase
from ledger_modules.sales.models import (
    SalesOrder,
    SalesOrderItem,
    SalesReturn,
    SalesReturnItem,
)


class SalesOrderModel(TrackedBase):
    """ORM model for sales orders.  status changes only through SALES_ORDER_WORKFLOW."""

    __tablename__ = "sales_orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_sales_orders_number"),
        Index("idx_sales_orders_status", "status"),
    )

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    order_date: Mapped[date] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="confirmed")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    items: Mapped[list["SalesOrderItemModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="SalesOrderItemModel.line_number",
        lazy="selectin",
    )

    def to_dto(self) -> SalesOrder:
        return SalesOrder(
            id=self.id,
            order_number=self.order_number,
            order_date=self.order_date,
            status=self.status,
            total_amount=self.total_amount,
            items=tuple(item.to_dto() for item in self.items),
            customer_name=self.customer_name,
        )


class SalesOrderItemModel(TrackedBase):
    """One order line.  product_id is NULL for custom (non-stocked) lines."""

    __tablename__ = "sales_order_items"

    __table_args__ = (
        Index("idx_sales_order_items_order", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("sales_orders.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    product_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inventory_products.id"), nullable=True
    )
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    order: Mapped[SalesOrderModel] = relationship(back_populates="items")

    def to_dto(self) -> SalesOrderItem:
        return SalesOrderItem(
            id=self.id,
            product_id=self.product_id,
            is_custom=self.is_custom,
            quantity=self.quantity,
            unit_price=self.unit_price,
            unit_cost=self.unit_cost,
            description=self.description,
        )


class SalesReturnModel(TrackedBase):
    """
    Return record written by an order cancellation.

    Guarantees:
        - return_value / cost_value are the sums over its items.
        - written in the same transaction as the order's cancellation.
    """

    __tablename__ = "sales_returns"

    __table_args__ = (
        UniqueConstraint("return_number", name="uq_sales_returns_number"),
        Index("idx_sales_returns_order", "order_id"),
    )

    return_number: Mapped[str] = mapped_column(String(50), nullable=False)
    order_id: Mapped[UUID] = mapped_column(ForeignKey("sales_orders.id"), nullable=False)
    return_date: Mapped[date] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    return_value: Mapped[Decimal] = mapped_column(nullable=False)
    cost_value: Mapped[Decimal] = mapped_column(nullable=False)

    items: Mapped[list["SalesReturnItemModel"]] = relationship(
        back_populates="sales_return",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self) -> SalesReturn:
        return SalesReturn(
            id=self.id,
            return_number=self.return_number,
            order_id=self.order_id,
            return_date=self.return_date,
            return_value=self.return_value,
            cost_value=self.cost_value,
            items=tuple(item.to_dto() for item in self.items),
            reason=self.reason,
        )


class SalesReturnItemModel(TrackedBase):
    """One returned line.  ``restored`` flips once its stock is back on hand."""

    __tablename__ = "sales_return_items"

    __table_args__ = (
        Index("idx_sales_return_items_return", "return_id"),
    )

    return_id: Mapped[UUID] = mapped_column(ForeignKey("sales_returns.id"), nullable=False)
    order_item_id: Mapped[UUID] = mapped_column(ForeignKey("sales_order_items.id"), nullable=False)
    product_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inventory_products.id"), nullable=True
    )
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    return_value: Mapped[Decimal] = mapped_column(nullable=False)
    cost_value: Mapped[Decimal] = mapped_column(nullable=False)
    restored: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    sales_return: Mapped[SalesReturnModel] = relationship(back_populates="items")

    def to_dto(self) -> SalesReturnItem:
        return SalesReturnItem(
            id=self.id,
            order_item_id=self.order_item_id,
            product_id=self.product_id,
            quantity=self.quantity,
            return_value=self.return_value,
            cost_value=self.cost_value,
            restored=self.restored,
        )
