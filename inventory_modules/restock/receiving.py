"""
Receiving Processor (``inventory_modules.restock.receiving``).

Responsibility
--------------
Apply a physical delivery to a restock order: for each line, add the units
to stock through the kernel ``StockLedger`` (``RESTOCK_RECEIVED``), bump the
line's ``quantity_received``, then recompute the order status.

Architecture position
---------------------
**Modules layer** -- ``ReceivingProcessor`` owns the transaction.  The
ledger flushes; this class commits or rolls back.

Invariants enforced
-------------------
* All-or-nothing: movements, line counters, status and the receipt row
  commit together.
* Lock order: restock order row, then products in ascending id order,
  then the movement sequence counter.  Two receives on one order
  serialize on the order row.
* Status after receiving is ``derive_status(items)``, persisted through
  the transition table.
* One idempotency key applies at most once per order.

Failure modes
-------------
* ``InvalidInputError`` -- negative or non-integer quantity, bad cost.
* ``RestockOrderNotFoundError`` / ``RestockOrderItemNotFoundError`` /
  ``ProductNotFoundError``.
* ``InvalidOrderStateError`` -- order not ORDERED or PARTIALLY_RECEIVED.
* ``NoQuantitiesProvidedError`` -- every quantity was zero.
* ``OverReceiptNotAllowedError`` -- over-receipt while the policy is off.
* ``ConcurrentModificationError`` -- database conflict; rolled back.

Audit relevance
---------------
Movements carry the order number as reason and the order id as
reference_id, so a product's history shows which delivery moved it.  Each
applied call leaves a ``RestockReceiptModel`` row.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.movement_types import MovementType
from inventory_kernel.exceptions import (
    InvalidInputError,
    InvalidOrderStateError,
    NoQuantitiesProvidedError,
    OverReceiptNotAllowedError,
    RestockOrderItemNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.stock_ledger import StockLedger
from inventory_modules._transaction import owned_transaction
from inventory_modules.restock.config import RestockPolicy
from inventory_modules.restock.models import (
    RECEIVABLE_STATUSES,
    ReceivedLine,
    ReceiveLine,
    ReceivingResult,
    RestockStatus,
)
from inventory_modules.restock.orm import RestockReceiptModel
from inventory_modules.restock.service import lock_restock_order
from inventory_modules.restock.workflows import assert_transition, derive_status

logger = get_logger("modules.restock.receiving")

_COST_PLACES = Decimal("0.0001")


def normalize_lines(lines: Iterable[ReceiveLine]) -> list[ReceiveLine]:
    """
    Validate receiving lines, drop zeros and merge repeated item ids.

    Merged lines keep the first cost override given for the item.  Order of
    first appearance is preserved.

    Raises:
        InvalidInputError: Negative or non-integer quantity, negative cost.
    """
    merged: dict[UUID, ReceiveLine] = {}
    for line in lines:
        qty = line.quantity
        if isinstance(qty, bool) or not isinstance(qty, int):
            raise InvalidInputError(
                f"quantity must be an integer, got {qty!r}", field="quantity"
            )
        if qty < 0:
            raise InvalidInputError("quantity cannot be negative", field="quantity")
        if line.cost is not None and (not isinstance(line.cost, Decimal) or line.cost < 0):
            raise InvalidInputError("cost must be a non-negative decimal", field="cost")
        if qty == 0:
            continue
        prior = merged.get(line.item_id)
        if prior is None:
            merged[line.item_id] = line
        else:
            merged[line.item_id] = ReceiveLine(
                item_id=line.item_id,
                quantity=prior.quantity + qty,
                cost=prior.cost if prior.cost is not None else line.cost,
            )
    return list(merged.values())


def landed_unit_cost(
    unit_cost: Decimal, shipping_cost: Decimal, total_amount: Decimal
) -> Decimal:
    """Unit cost with shipping spread in proportion to order value."""
    base = total_amount or Decimal("1")
    factor = Decimal("1") + (shipping_cost or Decimal("0")) / base
    return (unit_cost * factor).quantize(_COST_PLACES)


class ReceivingProcessor:
    """
    Receive goods against a restock order.

    Contract
    --------
    ``receive`` returns a ``ReceivingResult``.  On any exception the session
    has been rolled back: no movement, no counter change, no status change.
    """

    def __init__(
        self,
        session: Session,
        policy: RestockPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._policy = policy or RestockPolicy()
        self._clock = clock or SystemClock()
        self._ledger = StockLedger(session, self._clock)

    def _find_receipt(self, restock_order_id: UUID, key: str) -> RestockReceiptModel | None:
        return self._session.execute(
            select(RestockReceiptModel).where(
                RestockReceiptModel.restock_order_id == restock_order_id,
                RestockReceiptModel.idempotency_key == key,
            )
        ).scalar_one_or_none()

    def receive(
        self,
        restock_order_id: UUID,
        lines: Iterable[ReceiveLine],
        actor: Actor,
        store_id: UUID | None = None,
        idempotency_key: str | None = None,
    ) -> ReceivingResult:
        """
        Apply received quantities to an ORDERED or PARTIALLY_RECEIVED order.

        Preconditions:
            - Every quantity is a non-negative integer; zeros are ignored.
        Postconditions:
            - One RESTOCK_RECEIVED movement per distinct line received.
            - Each line's quantity_received grew by exactly its quantity.
            - Order status == derive_status(items).
        """
        normalized = normalize_lines(lines)
        logger.info(
            "receive_started",
            extra={
                "order_id": str(restock_order_id),
                "line_count": len(normalized),
                "idempotency_key": idempotency_key,
                "actor": actor.tag,
            },
        )

        with owned_transaction(self._session, "restock_order.receive"):
            order = lock_restock_order(self._session, restock_order_id, store_id)

            if idempotency_key is not None:
                receipt = self._find_receipt(order.id, idempotency_key)
                if receipt is not None:
                    logger.info(
                        "receive_replayed",
                        extra={
                            "order_id": str(order.id),
                            "idempotency_key": idempotency_key,
                            "receipt_id": str(receipt.id),
                        },
                    )
                    return ReceivingResult(
                        order=order.to_dto(), lines=(), movements=(), replayed=True
                    )

            if RestockStatus(order.status) not in RECEIVABLE_STATUSES:
                logger.warning(
                    "receive_rejected_invalid_state",
                    extra={"order_id": str(order.id), "status": order.status},
                )
                raise InvalidOrderStateError(str(order.id), order.status, "receive")

            if not normalized:
                raise NoQuantitiesProvidedError(str(order.id))

            items_by_id = {item.id: item for item in order.items}
            targets = []
            for line in normalized:
                item = items_by_id.get(line.item_id)
                if item is None:
                    raise RestockOrderItemNotFoundError(str(line.item_id), str(order.id))
                after = item.quantity_received + line.quantity
                if after > item.quantity and not self._policy.allow_over_receipt:
                    raise OverReceiptNotAllowedError(str(item.id), item.quantity, after)
                targets.append((line, item))

            # Products after the order row, in id order.
            self._ledger.lock_products(
                (item.product_id for _, item in targets), order.store_id
            )

            received_lines: list[ReceivedLine] = []
            movements = []
            for line, item in targets:
                unit_cost = line.cost if line.cost is not None else item.cost
                if self._policy.apply_landed_cost:
                    unit_cost = landed_unit_cost(
                        unit_cost, order.shipping_cost, order.total_amount
                    )
                movement = self._ledger.record(
                    product_id=item.product_id,
                    delta=line.quantity,
                    type=MovementType.RESTOCK_RECEIVED,
                    reason=order.order_number,
                    actor=actor,
                    reference_id=str(order.id),
                    cost=unit_cost,
                    store_id=order.store_id,
                )
                item.quantity_received += line.quantity
                over = item.quantity_received > item.quantity
                if over:
                    logger.warning(
                        "over_receipt_accepted",
                        extra={
                            "order_id": str(order.id),
                            "item_id": str(item.id),
                            "ordered": item.quantity,
                            "received": item.quantity_received,
                        },
                    )
                movements.append(movement)
                received_lines.append(
                    ReceivedLine(
                        item_id=item.id,
                        product_id=item.product_id,
                        quantity=line.quantity,
                        quantity_ordered=item.quantity,
                        quantity_received=item.quantity_received,
                        unit_cost=unit_cost,
                        over_received=over,
                        movement_id=movement.id,
                    )
                )

            previous_status = order.status
            new_status = derive_status((i.quantity, i.quantity_received) for i in order.items)
            assert_transition(previous_status, new_status, str(order.id))
            order.status = new_status.value

            self._session.add(
                RestockReceiptModel(
                    restock_order_id=order.id,
                    idempotency_key=idempotency_key,
                    line_count=len(received_lines),
                    units_received=sum(line.quantity for line in received_lines),
                    created_by=actor.tag,
                    created_at=self._clock.now(),
                )
            )
            self._session.flush()
            result = ReceivingResult(
                order=order.to_dto(),
                lines=tuple(received_lines),
                movements=tuple(movements),
            )

        logger.info(
            "receive_completed",
            extra={
                "order_id": str(result.order.id),
                "order_number": result.order.order_number,
                "previous_status": previous_status,
                "status": result.order.status.value,
                "movement_count": len(result.movements),
                "units_received": sum(line.quantity for line in result.lines),
                "over_received_count": len(result.over_received_lines),
                "actor": actor.tag,
            },
        )
        return result
