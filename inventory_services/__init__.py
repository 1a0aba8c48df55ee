"""
inventory_services -- Package init and public API.

Responsibility:
    The outer surface of the inventory system: ``InventoryApi``, one
    method per endpoint, returning ``ApiResponse`` values.

Architecture position:
    Services -- outermost layer.

    Dependency direction (enforced by tests/architecture/test_kernel_boundaries.py):
        inventory_services/ -> inventory_modules/  (allowed)
        inventory_services/ -> inventory_kernel/   (allowed)
        inventory_kernel/   -> inventory_services/ (FORBIDDEN)
"""

from inventory_services.inventory_api import ApiResponse, InventoryApi

__all__ = ["ApiResponse", "InventoryApi"]
