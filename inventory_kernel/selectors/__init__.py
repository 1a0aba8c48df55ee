"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.movement_selector import (
    MovementListingRow,
    MovementPage,
    MovementSelector,
)

__all__ = [
    "MovementListingRow",
    "MovementPage",
    "MovementSelector",
]
