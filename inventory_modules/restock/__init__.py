"""
Restock Module (``inventory_modules.restock``).

Responsibility
--------------
Replenishment from suppliers: restock orders with line items, their
lifecycle (DRAFT -> ORDERED -> PARTIALLY_RECEIVED -> COMPLETED, or
CANCELLED), and receiving deliveries into stock.

Architecture position
---------------------
**Modules layer** -- ORM models, a workflow, policy config, a lifecycle
service and the receiving processor.  Stock is written only through the
kernel ``StockLedger``.

Invariants enforced
-------------------
* Line items are frozen once the order leaves DRAFT (service check, ORM
  listener, PostgreSQL trigger).
* Status after receiving is a pure function of the lines.
* Receiving is all-or-nothing.

Failure modes
-------------
* ``InvalidOrderStateError`` -- edit, delete or receive in the wrong status.
* ``IllegalTransitionError`` -- a status change outside the workflow.
* ``NoQuantitiesProvidedError`` -- receiving with every quantity zero.

Audit relevance
---------------
Every received unit is a ``RESTOCK_RECEIVED`` movement referencing the
order; cancelling never removes them.
"""

from inventory_modules.restock.config import RestockPolicy
from inventory_modules.restock.models import (
    LineProgress,
    NewRestockItem,
    ReceivedLine,
    ReceiveLine,
    ReceivingResult,
    RestockOrder,
    RestockOrderItem,
    RestockStatus,
)
from inventory_modules.restock.workflows import (
    RESTOCK_ORDER_WORKFLOW,
    assert_transition,
    derive_status,
    line_progress,
)

__all__ = [
    "LineProgress",
    "NewRestockItem",
    "RESTOCK_ORDER_WORKFLOW",
    "ReceiveLine",
    "ReceivedLine",
    "ReceivingResult",
    "RestockOrder",
    "RestockOrderItem",
    "RestockPolicy",
    "RestockStatus",
    "assert_transition",
    "derive_status",
    "line_progress",
]
