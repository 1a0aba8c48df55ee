"""
Restock Order Service (``inventory_modules.restock.service``).

Responsibility
--------------
Lifecycle of restock orders outside of receiving: create (DRAFT, numbered
``PO-0001`` per store), read, list, edit while DRAFT, place, cancel, and
hard-delete while DRAFT.

Architecture position
---------------------
**Modules layer** -- ``RestockOrderService`` is the public entry point for
order lifecycle operations.  Number allocation uses the kernel
``SequenceService``; stock is never touched here (see ``receiving``).

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (commit on
  success, rollback on failure).
* Items, supplier and shipping cost are editable only while DRAFT.
* A product appears at most once per order.
* Status changes follow RESTOCK_ORDER_WORKFLOW; receiving transitions can
  never be requested directly.
* Cancelling never reverses recorded movements.

Failure modes
-------------
* ``InvalidInputError`` / ``DuplicateProductLineError`` -- bad lines.
* ``ProductNotFoundError`` -- a line names a product outside the store.
* ``RestockOrderNotFoundError`` -- missing order, or another store's.
* ``InvalidOrderStateError`` -- edit/delete/place in the wrong status.
* ``IllegalTransitionError`` -- requested status change not in the table.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import (
    DuplicateProductLineError,
    IllegalTransitionError,
    InvalidInputError,
    InvalidOrderStateError,
    ProductNotFoundError,
    RestockOrderNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.product import Product
from inventory_kernel.services.sequence_service import SequenceService
from inventory_modules._transaction import owned_transaction
from inventory_modules.restock.config import RestockPolicy
from inventory_modules.restock.models import NewRestockItem, RestockOrder, RestockStatus
from inventory_modules.restock.orm import RestockOrderItemModel, RestockOrderModel
from inventory_modules.restock.workflows import (
    HAS_ITEMS,
    RESTOCK_ORDER_WORKFLOW,
    SUPPLIER_SET,
    assert_transition,
)

logger = get_logger("modules.restock.service")

_CENTS = Decimal("0.01")

# Marks "argument not given" where None is a meaningful value.
UNSET = object()

# guard name -> (predicate, offending field, message)
_PLACE_GUARD_CHECKS = {
    HAS_ITEMS.name: (
        lambda order: bool(order.items),
        "items",
        "A restock order needs at least one item",
    ),
    SUPPLIER_SET.name: (
        lambda order: bool(order.supplier_id),
        "supplier_id",
        "A restock order needs a supplier",
    ),
}


def lock_restock_order(
    session: Session, restock_order_id: UUID, store_id: UUID | None = None
) -> RestockOrderModel:
    """Lock a restock order row and return it with fresh state.

    Raises:
        RestockOrderNotFoundError: Missing, or not in ``store_id`` when given.
    """
    order = session.execute(
        select(RestockOrderModel)
        .where(RestockOrderModel.id == restock_order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if order is None or (store_id is not None and order.store_id != store_id):
        raise RestockOrderNotFoundError(str(restock_order_id))
    return order


def _validate_items(items: Sequence[NewRestockItem]) -> None:
    seen: set[UUID] = set()
    for item in items:
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int):
            raise InvalidInputError(
                f"quantity must be an integer, got {item.quantity!r}", field="quantity"
            )
        if item.quantity <= 0:
            raise InvalidInputError("quantity must be positive", field="quantity")
        if not isinstance(item.cost, Decimal) or item.cost < 0:
            raise InvalidInputError("cost must be a non-negative decimal", field="cost")
        if item.product_id in seen:
            raise DuplicateProductLineError(str(item.product_id))
        seen.add(item.product_id)


class RestockOrderService:
    """
    Restock order lifecycle (everything but receiving).

    Contract
    --------
    Write methods return the order DTO as committed.  On any exception the
    session has been rolled back and nothing was written.
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
        self._sequences = SequenceService(session)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_products(self, store_id: UUID, items: Sequence[NewRestockItem]) -> None:
        wanted = {i.product_id for i in items}
        if not wanted:
            return
        found = set(
            self._session.execute(
                select(Product.id).where(
                    Product.id.in_(wanted), Product.store_id == store_id
                )
            ).scalars()
        )
        missing = sorted(wanted - found, key=str)
        if missing:
            raise ProductNotFoundError(str(missing[0]))

    def _build_items(
        self, order: RestockOrderModel, items: Sequence[NewRestockItem], actor: Actor
    ) -> None:
        now = self._clock.now()
        for index, item in enumerate(items):
            order.items.append(
                RestockOrderItemModel(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    cost=item.cost,
                    quantity_received=0,
                    subtotal=(item.cost * item.quantity).quantize(_CENTS),
                    index=index,
                    created_by=actor.tag,
                    created_at=now,
                )
            )
        order.total_amount = sum((i.subtotal for i in order.items), Decimal("0"))

    def _place(self, order: RestockOrderModel) -> None:
        if order.status != RestockStatus.DRAFT.value:
            raise InvalidOrderStateError(str(order.id), order.status, "place")
        transition = RESTOCK_ORDER_WORKFLOW.find(order.status, RestockStatus.ORDERED.value)
        if transition is None:
            raise IllegalTransitionError(order.status, RestockStatus.ORDERED.value, str(order.id))
        for guard in transition.guards:
            passes, field, message = _PLACE_GUARD_CHECKS[guard.name]
            if not passes(order):
                logger.info(
                    "place_guard_failed",
                    extra={"order_id": str(order.id), "guard": guard.name},
                )
                raise InvalidInputError(message, field=field)
        assert_transition(order.status, RestockStatus.ORDERED, str(order.id))
        order.status = RestockStatus.ORDERED.value

    def _cancel(self, order: RestockOrderModel) -> bool:
        if assert_transition(order.status, RestockStatus.CANCELLED, str(order.id)) is None:
            return False
        order.status = RestockStatus.CANCELLED.value
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_order(
        self,
        store_id: UUID,
        items: Sequence[NewRestockItem],
        actor: Actor,
        supplier_id: str | None = None,
        shipping_cost: Decimal = Decimal("0"),
        notes: str | None = None,
        place: bool = False,
    ) -> RestockOrder:
        """
        Create a DRAFT order with the next per-store order number.

        With ``place=True`` the order is placed in the same transaction.
        """
        items = list(items)
        logger.info(
            "restock_order_create_started",
            extra={"store_id": str(store_id), "item_count": len(items)},
        )
        _validate_items(items)
        if not isinstance(shipping_cost, Decimal) or shipping_cost < 0:
            raise InvalidInputError(
                "shipping_cost must be a non-negative decimal", field="shipping_cost"
            )

        with owned_transaction(self._session, "restock_order.create"):
            self._check_products(store_id, items)
            number = self._sequences.next_value(
                SequenceService.restock_order_sequence(store_id)
            )
            now = self._clock.now()
            order = RestockOrderModel(
                store_id=store_id,
                order_number=self._policy.format_order_number(number),
                supplier_id=supplier_id,
                status=RestockStatus.DRAFT.value,
                notes=notes,
                shipping_cost=shipping_cost,
                total_amount=Decimal("0"),
                created_by=actor.tag,
                created_at=now,
                updated_at=now,
            )
            self._session.add(order)
            self._build_items(order, items, actor)
            self._session.flush()
            if place:
                self._place(order)
                self._session.flush()
            dto = order.to_dto()

        logger.info(
            "restock_order_created",
            extra={
                "order_id": str(dto.id),
                "order_number": dto.order_number,
                "status": dto.status.value,
                "total_amount": str(dto.total_amount),
                "actor": actor.tag,
            },
        )
        return dto

    def update_order(
        self,
        restock_order_id: UUID,
        actor: Actor,
        store_id: UUID | None = None,
        items: Sequence[NewRestockItem] | None = None,
        supplier_id=UNSET,
        shipping_cost=UNSET,
        notes=UNSET,
        status: RestockStatus | str | None = None,
    ) -> RestockOrder:
        """
        Edit an order and optionally move it to ORDERED or CANCELLED.

        Items (replaced wholesale), supplier and shipping cost may change
        only while DRAFT.  Notes may change in any status.  ``status`` may
        request ``ORDERED`` (place) or ``CANCELLED``; receiving statuses are
        computed and cannot be requested.
        """
        target: RestockStatus | None = None
        if status is not None:
            try:
                target = RestockStatus(status)
            except ValueError:
                raise InvalidInputError(f"Unknown status: {status!r}", field="status") from None
        if items is not None:
            items = list(items)
            _validate_items(items)
        if shipping_cost is not UNSET and (
            not isinstance(shipping_cost, Decimal) or shipping_cost < 0
        ):
            raise InvalidInputError(
                "shipping_cost must be a non-negative decimal", field="shipping_cost"
            )

        with owned_transaction(self._session, "restock_order.update"):
            order = lock_restock_order(self._session, restock_order_id, store_id)
            edits_draft_fields = (
                items is not None or supplier_id is not UNSET or shipping_cost is not UNSET
            )
            if edits_draft_fields and order.status != RestockStatus.DRAFT.value:
                raise InvalidOrderStateError(str(order.id), order.status, "edit")

            if supplier_id is not UNSET:
                order.supplier_id = supplier_id
            if shipping_cost is not UNSET:
                order.shipping_cost = shipping_cost
            if notes is not UNSET:
                order.notes = notes
            if items is not None:
                self._check_products(order.store_id, items)
                order.items.clear()
                # Old lines must be gone before new ones reuse their products.
                self._session.flush()
                self._build_items(order, items, actor)

            if target is not None and target.value != order.status:
                transition = RESTOCK_ORDER_WORKFLOW.find(order.status, target.value)
                if transition is None or transition.computed:
                    raise IllegalTransitionError(order.status, target.value, str(order.id))
                if target == RestockStatus.ORDERED:
                    self._place(order)
                else:
                    self._cancel(order)

            self._session.flush()
            dto = order.to_dto()

        logger.info(
            "restock_order_updated",
            extra={
                "order_id": str(dto.id),
                "status": dto.status.value,
                "items_replaced": items is not None,
                "actor": actor.tag,
            },
        )
        return dto

    def place_order(
        self, restock_order_id: UUID, actor: Actor, store_id: UUID | None = None
    ) -> RestockOrder:
        """DRAFT -> ORDERED.  Items are frozen from here on."""
        with owned_transaction(self._session, "restock_order.place"):
            order = lock_restock_order(self._session, restock_order_id, store_id)
            self._place(order)
            self._session.flush()
            dto = order.to_dto()
        logger.info(
            "restock_order_placed",
            extra={"order_id": str(dto.id), "order_number": dto.order_number, "actor": actor.tag},
        )
        return dto

    def cancel_order(
        self, restock_order_id: UUID, actor: Actor, store_id: UUID | None = None
    ) -> RestockOrder:
        """
        Cancel an order.  Stock already received stays in the ledger.

        Cancelling a cancelled order is a no-op; cancelling a completed one
        raises IllegalTransitionError.
        """
        with owned_transaction(self._session, "restock_order.cancel"):
            order = lock_restock_order(self._session, restock_order_id, store_id)
            previous = order.status
            changed = self._cancel(order)
            self._session.flush()
            dto = order.to_dto()
        if changed:
            logger.info(
                "restock_order_cancelled",
                extra={
                    "order_id": str(dto.id),
                    "previous_status": previous,
                    "units_received": dto.units_received,
                    "actor": actor.tag,
                },
            )
        return dto

    def delete_order(
        self, restock_order_id: UUID, actor: Actor, store_id: UUID | None = None
    ) -> None:
        """Hard-delete a DRAFT order and its lines."""
        with owned_transaction(self._session, "restock_order.delete"):
            order = lock_restock_order(self._session, restock_order_id, store_id)
            if order.status != RestockStatus.DRAFT.value:
                raise InvalidOrderStateError(str(order.id), order.status, "delete")
            order_number = order.order_number
            self._session.delete(order)
            self._session.flush()
        logger.info(
            "restock_order_deleted",
            extra={
                "order_id": str(restock_order_id),
                "order_number": order_number,
                "actor": actor.tag,
            },
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, restock_order_id: UUID, store_id: UUID | None = None) -> RestockOrder:
        order = self._session.get(RestockOrderModel, restock_order_id, populate_existing=True)
        if order is None or (store_id is not None and order.store_id != store_id):
            raise RestockOrderNotFoundError(str(restock_order_id))
        return order.to_dto()

    def list_orders(
        self,
        store_id: UUID,
        status: RestockStatus | None = None,
    ) -> list[RestockOrder]:
        """Orders of a store, newest first."""
        stmt = (
            select(RestockOrderModel)
            .where(RestockOrderModel.store_id == store_id)
            .order_by(
                RestockOrderModel.created_at.desc(),
                RestockOrderModel.order_number.desc(),
            )
        )
        if status is not None:
            stmt = stmt.where(RestockOrderModel.status == RestockStatus(status).value)
        return [o.to_dto() for o in self._session.execute(stmt).scalars()]
