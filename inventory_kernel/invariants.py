"""
Kernel Invariants Contract.

These invariants are structural law. They are hardcoded in the stock ledger,
the restock workflow guard and the immutability listeners/triggers. No
configuration value may switch them off.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across StockLedger, the restock workflow,
db/immutability.py and db/triggers.py.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    LEDGER_CHAIN = "ledger_chain"
    """Per product, each movement's previous_stock equals the new_stock of
    the movement before it, and new_stock = previous_stock + quantity.
    Enforced by StockLedger and a DB check constraint."""

    PROJECTION_CONSISTENCY = "projection_consistency"
    """Product.stock equals the new_stock of the product's latest movement.
    Enforced by StockLedger writing both in one transaction; verified and
    repaired by StockReconciliationService."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """Stock never goes below zero unless the caller passes allow_negative.
    Enforced by StockLedger before any write."""

    APPEND_ONLY_LEDGER = "append_only_ledger"
    """Inventory movements are never updated or deleted. Enforced by ORM
    listeners (db.immutability) and PostgreSQL triggers (db.triggers)."""

    STATUS_FROM_ITEMS = "status_from_items"
    """Receiving-driven order status is a pure function of the line items.
    Enforced by derive_status in the restock workflow."""

    FROZEN_ORDER_LINES = "frozen_order_lines"
    """Once a restock order leaves DRAFT, item product/quantity/cost are
    immutable and items cannot be removed."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_services",
    "inventory_config",
    "inventory_modules",
)
