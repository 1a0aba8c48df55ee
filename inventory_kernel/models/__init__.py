"""Domain models for the inventory kernel."""

from inventory_kernel.models.inventory_movement import InventoryMovement
from inventory_kernel.models.product import Product
from inventory_kernel.models.sequence_counter import SequenceCounter

__all__ = [
    "Product",
    "InventoryMovement",
    "SequenceCounter",
]
