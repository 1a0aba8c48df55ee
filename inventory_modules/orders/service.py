"""
Order Stock Hooks (``inventory_modules.orders.service``).

Responsibility
--------------
The two stock effects of the storefront order flow: take stock when an
order is placed (``ORDER_PLACED``) and give it back when the order is
cancelled (``ORDER_CANCELLED``).  Checkout, payment and order records live
outside this package; only their ids reach here.

Architecture position
---------------------
**Modules layer** -- owns the transaction; writes through ``StockLedger``.
Movements reference the storefront order id, which is how a cancellation
finds what to restore.

Invariants enforced
-------------------
* Placing is all-or-nothing and validated up front for every product.
* Restoring returns exactly the net quantity still held by the order, so
  a second restore writes nothing.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import Movement, MovementEntry
from inventory_kernel.domain.movement_types import MovementType
from inventory_kernel.exceptions import InvalidInputError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.services.stock_ledger import StockLedger
from inventory_modules._transaction import owned_transaction
from inventory_modules.orders.models import OrderLine

logger = get_logger("modules.orders.service")


def _net_held(movements: Sequence[Movement]) -> dict[UUID, int]:
    """Units each product still owes back to stock for one order."""
    held: dict[UUID, int] = {}
    for m in movements:
        if m.type in (MovementType.ORDER_PLACED, MovementType.ORDER_CANCELLED):
            held[m.product_id] = held.get(m.product_id, 0) - m.quantity
    return {pid: units for pid, units in held.items() if units > 0}


class OrderStockService:
    """Stock side of storefront order placement and cancellation."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._ledger = StockLedger(session, clock or SystemClock())
        self._selector = MovementSelector(session)

    def commit_order(
        self,
        order_id: UUID | str,
        lines: Sequence[OrderLine],
        actor: Actor,
        store_id: UUID | None = None,
        reason: str | None = None,
    ) -> list[Movement]:
        """
        Take stock for a placed order.

        Raises:
            InvalidInputError: Empty order or non-positive quantity.
            InsufficientStockError / MultipleInsufficientStockError: any
                product short; nothing is written.
        """
        lines = list(lines)
        if not lines:
            raise InvalidInputError("An order needs at least one line", field="lines")
        for line in lines:
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
                raise InvalidInputError(
                    f"quantity must be a positive integer, got {line.quantity!r}",
                    field="quantity",
                )

        reference = str(order_id)
        entries = [
            MovementEntry(
                product_id=line.product_id,
                delta=-line.quantity,
                type=MovementType.ORDER_PLACED,
                reason=reason or f"Order {reference}",
                reference_id=reference,
                price=line.price,
            )
            for line in lines
        ]
        with owned_transaction(self._session, "order.commit_stock"):
            movements = self._ledger.record_batch(entries, actor, store_id=store_id)

        logger.info(
            "order_stock_committed",
            extra={
                "order_id": reference,
                "movement_count": len(movements),
                "units": -sum(m.quantity for m in movements),
                "actor": actor.tag,
            },
        )
        return movements

    def restore_cancelled_order(
        self,
        order_id: UUID | str,
        actor: Actor,
        store_id: UUID | None = None,
    ) -> list[Movement]:
        """Give back what a cancelled order still holds.  Repeat calls are no-ops."""
        reference = str(order_id)
        with owned_transaction(self._session, "order.restore_stock"):
            placed = self._selector.by_reference(reference, MovementType.ORDER_PLACED)
            if not placed:
                logger.info("order_stock_restore_nothing_held", extra={"order_id": reference})
                return []
            # Lock first, then read the net under the lock.
            self._ledger.lock_products({m.product_id for m in placed}, store_id)
            held = _net_held(self._selector.by_reference(reference))
            entries = [
                MovementEntry(
                    product_id=pid,
                    delta=units,
                    type=MovementType.ORDER_CANCELLED,
                    reason=f"Order {reference} cancelled",
                    reference_id=reference,
                )
                for pid, units in sorted(held.items(), key=lambda kv: str(kv[0]))
            ]
            movements = self._ledger.record_batch(
                entries, actor, validate=False, store_id=store_id
            )

        logger.info(
            "order_stock_restored",
            extra={
                "order_id": reference,
                "movement_count": len(movements),
                "units": sum(m.quantity for m in movements),
                "actor": actor.tag,
            },
        )
        return movements
