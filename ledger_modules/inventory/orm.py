"""
Inventory ORM Models (``ledger_modules.inventory.orm``).

SQLAlchemy persistence for products and their on-hand quantity.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase
from ledger_modules.inventory.models import Product


class ProductModel(TrackedBase):
    """
    ORM model for stocked products.

    Guarantees:
        - sku is unique.
        - quantity_on_hand changes only through InventoryService.
    """

    __tablename__ = "inventory_products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_inventory_products_sku"),
        Index("idx_inventory_products_active", "is_active"),
    )

    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity_on_hand: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self) -> Product:
        return Product(
            id=self.id,
            sku=self.sku,
            name=self.name,
            quantity_on_hand=self.quantity_on_hand,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<ProductModel {self.sku} qty={self.quantity_on_hand}>"
