"""
ORM-level guards for restock orders.

Rule table
----------
Entity               | Rule
---------------------|--------------------------------------------------------
RestockOrderModel    | status changes must be in RESTOCK_ORDER_WORKFLOW;
                     | store, number, supplier and money fields are frozen
                     | once the order leaves DRAFT; delete only while DRAFT
RestockOrderItemModel| only quantity_received may change once the order
                     | leaves DRAFT; quantity_received never decreases;
                     | delete only while DRAFT

The services check the same rules first and raise the friendlier
``InvalidOrderStateError``.  These listeners catch anything that slips past
them.  On PostgreSQL the item rules are also enforced by triggers
(``inventory_kernel/db/sql/02_restock_order_item.sql``).
"""

from sqlalchemy import event, inspect, select

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger
from inventory_modules.restock.models import RestockStatus
from inventory_modules.restock.orm import RestockOrderItemModel, RestockOrderModel
from inventory_modules.restock.workflows import RESTOCK_ORDER_WORKFLOW

logger = get_logger("modules.restock.immutability")

_FROZEN_ORDER_FIELDS = ("store_id", "order_number", "supplier_id", "shipping_cost", "total_amount")
_FROZEN_ITEM_FIELDS = ("restock_order_id", "product_id", "quantity", "cost", "subtotal", "index")

_DRAFT = RestockStatus.DRAFT.value


def _violation(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _persisted_order_status(connection, restock_order_id) -> str | None:
    return connection.execute(
        select(RestockOrderModel.status).where(RestockOrderModel.id == restock_order_id)
    ).scalar_one_or_none()


def _check_order_update(mapper, connection, target):
    state = inspect(target)
    status_history = state.attrs.status.history
    original = status_history.deleted[0] if status_history.deleted else target.status

    if status_history.has_changes() and original != target.status:
        if RESTOCK_ORDER_WORKFLOW.find(original, target.status) is None:
            raise _violation(
                "RestockOrder",
                target.id,
                "UPDATE",
                f"Status change {original} -> {target.status} is not a permitted transition",
            )

    if original != _DRAFT:
        changed = [f for f in _FROZEN_ORDER_FIELDS if state.attrs[f].history.has_changes()]
        if changed:
            raise _violation(
                "RestockOrder",
                target.id,
                "UPDATE",
                f"Fields {', '.join(changed)} are frozen once the order is {original}",
            )


def _check_order_delete(mapper, connection, target):
    status = _persisted_order_status(connection, target.id)
    if status is not None and status != _DRAFT:
        raise _violation(
            "RestockOrder",
            target.id,
            "DELETE",
            f"Restock orders can only be deleted while DRAFT (status {status})",
        )


def _check_item_update(mapper, connection, target):
    state = inspect(target)
    received = state.attrs.quantity_received.history
    if received.deleted and received.added and received.added[0] < received.deleted[0]:
        raise _violation(
            "RestockOrderItem",
            target.id,
            "UPDATE",
            "quantity_received cannot decrease",
        )

    status = _persisted_order_status(connection, target.restock_order_id)
    if status is None or status == _DRAFT:
        return
    changed = [f for f in _FROZEN_ITEM_FIELDS if state.attrs[f].history.has_changes()]
    if changed:
        raise _violation(
            "RestockOrderItem",
            target.id,
            "UPDATE",
            f"Fields {', '.join(changed)} are frozen once the order is {status}",
        )


def _check_item_delete(mapper, connection, target):
    status = _persisted_order_status(connection, target.restock_order_id)
    if status is not None and status != _DRAFT:
        raise _violation(
            "RestockOrderItem",
            target.id,
            "DELETE",
            f"Line items cannot be removed once the order is {status}",
        )


_LISTENERS = (
    (RestockOrderModel, "before_update", _check_order_update),
    (RestockOrderModel, "before_delete", _check_order_delete),
    (RestockOrderItemModel, "before_update", _check_item_update),
    (RestockOrderItemModel, "before_delete", _check_item_delete),
)


def register_restock_listeners():
    """Register restock order guards.  Registering twice is harmless."""
    for target, event_name, fn in _LISTENERS:
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_restock_listeners():
    """Remove restock order guards (tests only)."""
    for target, event_name, fn in _LISTENERS:
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
