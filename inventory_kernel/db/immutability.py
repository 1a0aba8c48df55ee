"""
ORM-Level Immutability Enforcement for the stock ledger (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

Stock history must be tamper-proof.  A wrong movement is corrected by a new
compensating movement, never by editing or deleting the old one.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/sql/*.sql (PostgreSQL triggers)
    - Catches raw SQL, bulk UPDATE statements, direct psql access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | Rule
--------------------|---------------------------------------------------------
InventoryMovement   | ALWAYS immutable: no UPDATE, no DELETE
Product.stock       | Changes only alongside a new InventoryMovement for the
                    | same product whose new_stock equals the written value
                    | (the stock projection is never edited on its own)

The single sanctioned exception to the Product.stock rule is the
reconciliation repair, which sets ``session.info[STOCK_REPAIR_FLAG]`` for the
duration of its flush.

Restock order rules live in inventory_modules.restock.immutability.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# session.info key that authorizes a projection-only stock write
STOCK_REPAIR_FLAG = "inventory_stock_repair"


def _check_movement_update(mapper, connection, target):
    """Prevent any update to InventoryMovement rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "InventoryMovement",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryMovement",
        entity_id=str(target.id),
        reason="Inventory movements are append-only and cannot be modified",
    )


def _check_movement_delete(mapper, connection, target):
    """Prevent deletion of InventoryMovement rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "InventoryMovement",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryMovement",
        entity_id=str(target.id),
        reason="Inventory movements cannot be deleted",
    )


def _check_stock_written_with_movement(session, flush_context, instances):
    """
    Reject Product.stock changes that have no matching movement in the flush.

    Runs in SessionEvents.before_flush so both the dirty product and the
    pending movement are visible together.
    """
    from inventory_kernel.models.inventory_movement import InventoryMovement
    from inventory_kernel.models.product import Product

    if session.info.get(STOCK_REPAIR_FLAG):
        return

    pending = {}
    for obj in session.new:
        if isinstance(obj, InventoryMovement):
            pending[obj.product_id] = obj

    for obj in list(session.dirty):
        if not isinstance(obj, Product):
            continue
        history = get_history(obj, "stock")
        if not history.has_changes():
            continue
        movement = pending.get(obj.id)
        if movement is None or movement.new_stock != obj.stock:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Product",
                    "entity_id": str(obj.id),
                    "operation": "UPDATE",
                    "field": "stock",
                },
            )
            raise ImmutabilityViolationError(
                entity_type="Product",
                entity_id=str(obj.id),
                reason="Product stock changes only through a recorded movement",
            )


def register_immutability_listeners():
    """
    Register all kernel immutability listeners.

    Call this after all models are imported but before any database
    operations begin.  Registering twice is harmless.
    """
    from inventory_kernel.models.inventory_movement import InventoryMovement

    if not event.contains(Session, "before_flush", _check_stock_written_with_movement):
        event.listen(Session, "before_flush", _check_stock_written_with_movement)
    if not event.contains(InventoryMovement, "before_update", _check_movement_update):
        event.listen(InventoryMovement, "before_update", _check_movement_update)
    if not event.contains(InventoryMovement, "before_delete", _check_movement_delete):
        event.listen(InventoryMovement, "before_delete", _check_movement_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Safely remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove kernel immutability listeners.

    WARNING: Only use this in tests that deliberately corrupt the ledger to
    verify detection.
    """
    from inventory_kernel.models.inventory_movement import InventoryMovement

    _safe_remove_listener(Session, "before_flush", _check_stock_written_with_movement)
    _safe_remove_listener(InventoryMovement, "before_update", _check_movement_update)
    _safe_remove_listener(InventoryMovement, "before_delete", _check_movement_delete)
