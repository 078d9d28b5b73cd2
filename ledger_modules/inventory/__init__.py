"""Inventory Module (``ledger_modules.inventory``): products and on-hand quantities."""

from ledger_modules.inventory.models import Product
from ledger_modules.inventory.service import InventoryService

__all__ = ["InventoryService", "Product"]
