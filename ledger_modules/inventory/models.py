"""
Inventory Domain Models (``ledger_modules.inventory.models``).

Frozen product snapshot.  Quantities are ``Decimal``.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class Product:
    id: UUID
    sku: str
    name: str
    quantity_on_hand: Decimal
    is_active: bool
