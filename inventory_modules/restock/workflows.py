"""
Restock Workflows.

State machine for restock orders, plus the pure status derivation used by
receiving and every read path.

    DRAFT --place--> ORDERED --receive--> PARTIALLY_RECEIVED --receive--> COMPLETED
      |                 |  \\------------------receive------------------/
      +--cancel--> CANCELLED <--cancel-- (ORDERED, PARTIALLY_RECEIVED)

COMPLETED and CANCELLED are terminal.  Receiving transitions are computed,
never requested: the target is whatever ``derive_status`` says.
"""

from collections.abc import Iterable

from inventory_kernel.domain.workflow import Guard, Transition, Workflow
from inventory_kernel.exceptions import IllegalTransitionError
from inventory_kernel.logging_config import get_logger
from inventory_modules.restock.models import LineProgress, RestockStatus

logger = get_logger("modules.restock.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_ITEMS = Guard(
    name="has_items",
    description="Order has at least one line item",
)

SUPPLIER_SET = Guard(
    name="supplier_set",
    description="Order names a supplier",
)

PLACE_GUARDS: tuple[Guard, ...] = (HAS_ITEMS, SUPPLIER_SET)


# -----------------------------------------------------------------------------
# Restock Order Workflow
# -----------------------------------------------------------------------------

_D = RestockStatus.DRAFT.value
_O = RestockStatus.ORDERED.value
_P = RestockStatus.PARTIALLY_RECEIVED.value
_C = RestockStatus.COMPLETED.value
_X = RestockStatus.CANCELLED.value

RESTOCK_ORDER_WORKFLOW = Workflow(
    name="restock_order",
    description="Restock (purchase) order lifecycle",
    initial_state=_D,
    states=(_D, _O, _P, _C, _X),
    transitions=(
        Transition(_D, _O, action="place", guards=PLACE_GUARDS),
        Transition(_O, _P, action="receive", computed=True),
        Transition(_O, _C, action="receive", computed=True),
        Transition(_P, _C, action="receive", computed=True),
        Transition(_D, _X, action="cancel"),
        Transition(_O, _X, action="cancel"),
        Transition(_P, _X, action="cancel"),
    ),
    terminal_states=(_C, _X),
)

logger.info(
    "restock_order_workflow_registered",
    extra={
        "workflow_name": RESTOCK_ORDER_WORKFLOW.name,
        "state_count": len(RESTOCK_ORDER_WORKFLOW.states),
        "transition_count": len(RESTOCK_ORDER_WORKFLOW.transitions),
        "initial_state": RESTOCK_ORDER_WORKFLOW.initial_state,
    },
)


def _status_value(status: RestockStatus | str) -> str:
    return status.value if isinstance(status, RestockStatus) else str(status)


def is_terminal(status: RestockStatus | str) -> bool:
    return _status_value(status) in RESTOCK_ORDER_WORKFLOW.terminal_states


def assert_transition(
    from_status: RestockStatus | str,
    to_status: RestockStatus | str,
    entity_id: str | None = None,
) -> Transition | None:
    """
    Validate a status change against the transition table.

    Returns the Transition, or None when from == to (not a transition).

    Raises:
        IllegalTransitionError: The change is not in the table.
    """
    src, dst = _status_value(from_status), _status_value(to_status)
    if src == dst:
        return None
    transition = RESTOCK_ORDER_WORKFLOW.find(src, dst)
    if transition is None:
        logger.warning(
            "illegal_transition_rejected",
            extra={"from_status": src, "to_status": dst, "entity_id": entity_id},
        )
        raise IllegalTransitionError(src, dst, entity_id)
    return transition


def line_progress(quantity: int, quantity_received: int) -> LineProgress:
    """Received percentage, remaining units and over-receipt flag of a line."""
    remaining = max(quantity - quantity_received, 0)
    if quantity > 0:
        percent = min(100, (quantity_received * 100) // quantity)
    else:
        percent = 100
    return LineProgress(
        ordered=quantity,
        received=quantity_received,
        remaining=remaining,
        percent_received=percent,
        satisfied=quantity_received >= quantity,
        over_received=quantity_received > quantity,
    )


def derive_status(items: Iterable[tuple[int, int]]) -> RestockStatus:
    """
    Receiving status implied by (quantity, quantity_received) pairs.

    - every line satisfied (over-receipt counts)  -> COMPLETED
    - otherwise any unit received                 -> PARTIALLY_RECEIVED
    - otherwise                                   -> ORDERED

    Only meaningful for placed orders; DRAFT and CANCELLED are never
    derived.  An order with no lines is ORDERED (nothing can be received).
    """
    pairs = list(items)
    if not pairs:
        return RestockStatus.ORDERED
    if all(received >= ordered for ordered, received in pairs):
        return RestockStatus.COMPLETED
    if any(received > 0 for _, received in pairs):
        return RestockStatus.PARTIALLY_RECEIVED
    return RestockStatus.ORDERED
