"""
Inventory Module Service (``ledger_modules.inventory.service``).

Responsibility
--------------
Product records and on-hand quantity changes.  Order cancellation calls
``restore_quantity`` once per returned line, each in its own transaction.

Invariants
----------
- ``create_product`` and ``set_active`` own their transaction boundary.
- ``restore_quantity`` does NOT commit: the caller runs it as a
  best-effort step and commits or rolls back per item.
- Discontinued (inactive) products do not accept stock movements.

Failure Modes
-------------
- RecordNotFoundError for an unknown product.
- ValidationError for a non-positive quantity or an inactive product.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import RecordNotFoundError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_modules.inventory.models import Product
from ledger_modules.inventory.orm import ProductModel

logger = get_logger("modules.inventory.service")

_ZERO = Decimal("0")


class InventoryService:
    """Product quantities.  Replaceable in SalesOrderService for testing."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def get_product(self, product_id: UUID) -> Product:
        product = self._session.get(ProductModel, product_id)
        if product is None:
            raise RecordNotFoundError("product", str(product_id))
        return product.to_dto()

    def create_product(
        self,
        sku: str,
        name: str,
        actor_id: UUID,
        quantity_on_hand: Decimal = _ZERO,
    ) -> Product:
        if quantity_on_hand < _ZERO:
            raise ValidationError("Quantity cannot be negative", field="quantity_on_hand")
        try:
            product = ProductModel(
                sku=sku,
                name=name,
                quantity_on_hand=quantity_on_hand,
                is_active=True,
                created_by_id=actor_id,
            )
            self._session.add(product)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("product_created", extra={"product_id": str(product.id), "sku": sku})
        return product.to_dto()

    def set_active(self, product_id: UUID, is_active: bool, actor_id: UUID) -> Product:
        try:
            product = self._session.get(ProductModel, product_id)
            if product is None:
                raise RecordNotFoundError("product", str(product_id))
            product.is_active = is_active
            product.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return product.to_dto()

    def restore_quantity(
        self,
        product_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        reference: str | None = None,
    ) -> Product:
        """Put ``quantity`` back on hand.  Does not commit."""
        if quantity <= _ZERO:
            raise ValidationError("Restore quantity must be positive", field="quantity")
        product = self._session.execute(
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if product is None:
            raise RecordNotFoundError("product", str(product_id))
        if not product.is_active:
            raise ValidationError(
                f"Product {product.sku} is discontinued", field="product_id", record_id=str(product_id)
            )

        before = product.quantity_on_hand
        product.quantity_on_hand = before + quantity
        product.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "inventory_restored",
            extra={
                "product_id": str(product_id),
                "quantity": str(quantity),
                "quantity_before": str(before),
                "quantity_after": str(product.quantity_on_hand),
                "reference": reference,
            },
        )
        return product.to_dto()
