"""
StockLedger -- the only writer of stock.

Responsibility:
    Records stock movements and keeps the Product.stock projection in step
    with them.  Every stock change in the system, whatever its cause
    (receiving, manual adjustment, storefront orders, migration), goes
    through ``record`` or ``record_batch``.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only (see BaseService);
    the caller owns the transaction, so the movement insert and the
    projection update commit or roll back together.

Invariants enforced:
    - Ledger chain: previous_stock is read from the locked product row, so
      it always equals the new_stock of the product's latest movement.
    - No silent negative stock: a decrement below zero raises
      InsufficientStockError before any write unless allow_negative=True.
    - Ordering: movement seq comes from SequenceService after the product
      lock is held, so for any product seq order matches commit order.

Lock order:
    restock order row (receiving only) -> product rows in ascending id order
    -> sequence counter row.  ``record_batch`` locks every product up front
    so two batches touching overlapping products cannot deadlock.

Failure modes:
    - InvalidInputError: zero or non-integer delta, unknown type.
    - ProductNotFoundError: missing product, or product outside store_id.
    - InsufficientStockError / MultipleInsufficientStockError.
"""

from collections.abc import Iterable, Iterator
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import Movement, MovementEntry, StockShortage
from inventory_kernel.domain.movement_types import MovementType, parse_movement_type
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidInputError,
    MultipleInsufficientStockError,
    ProductNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_movement import InventoryMovement
from inventory_kernel.models.product import Product
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.stock_ledger")

OPENING_BALANCE_REASON = "Initial stock migration"


class StockLedger(BaseService[InventoryMovement]):
    """
    Append-only stock movement ledger with a consistent stock projection.

    Contract:
        ``record`` returns the persisted Movement.  On any exception nothing
        has been written by this call (the caller still has to roll back the
        transaction if earlier work in it must be discarded).

    Non-goals:
        - Does NOT commit.
        - Does NOT map movement types to signs; callers pass signed deltas.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)
        self._selector = MovementSelector(session)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock_product(self, product_id: UUID, store_id: UUID | None = None) -> Product:
        """Lock a product row and return it with fresh state.

        Raises:
            ProductNotFoundError: Missing, or not in ``store_id`` when given.
        """
        product = self.session.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if product is None or (store_id is not None and product.store_id != store_id):
            raise ProductNotFoundError(str(product_id))
        return product

    def lock_products(
        self, product_ids: Iterable[UUID], store_id: UUID | None = None
    ) -> dict[UUID, Product]:
        """Lock several products in ascending id order."""
        locked: dict[UUID, Product] = {}
        for pid in sorted(set(product_ids), key=str):
            locked[pid] = self.lock_product(pid, store_id)
        return locked

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record(
        self,
        product_id: UUID,
        delta: int,
        type: MovementType | str,
        reason: str | None,
        actor: Actor,
        reference_id: str | None = None,
        description: str | None = None,
        cost: Decimal | None = None,
        price: Decimal | None = None,
        allow_negative: bool = False,
        store_id: UUID | None = None,
    ) -> Movement:
        """
        Record one stock movement and update the product's stock.

        Preconditions:
            - Caller is inside a transaction it will commit or roll back.
            - ``delta`` is a signed non-zero integer.

        Postconditions:
            - One InventoryMovement row with previous_stock = old stock,
              new_stock = old stock + delta.
            - Product.stock == new_stock.

        Raises:
            InvalidInputError, ProductNotFoundError, InsufficientStockError.
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidInputError(f"delta must be an integer, got {delta!r}", field="delta")
        if delta == 0:
            raise InvalidInputError("delta must be non-zero", field="delta")
        try:
            movement_type = parse_movement_type(type)
        except ValueError:
            raise InvalidInputError(f"Unknown movement type: {type!r}", field="type") from None

        product = self.lock_product(product_id, store_id)
        previous_stock = product.stock
        new_stock = previous_stock + delta

        if new_stock < 0 and not allow_negative:
            logger.warning(
                "insufficient_stock_rejected",
                extra={
                    "product_id": str(product_id),
                    "available": previous_stock,
                    "requested": -delta,
                    "movement_type": movement_type.value,
                },
            )
            raise InsufficientStockError(
                product_id=str(product_id),
                available=previous_stock,
                requested=-delta,
                product_name=product.name,
            )

        seq = self._sequences.next_value(SequenceService.INVENTORY_MOVEMENT)

        row = InventoryMovement(
            seq=seq,
            store_id=product.store_id,
            product_id=product.id,
            type=movement_type.value,
            quantity=delta,
            previous_stock=previous_stock,
            new_stock=new_stock,
            reason=reason,
            description=description,
            reference_id=reference_id,
            cost=cost,
            price=price,
            created_by=actor.tag,
            created_at=self.clock.now(),
        )
        self.session.add(row)
        product.stock = new_stock
        self.session.flush()

        logger.info(
            "movement_recorded",
            extra={
                "movement_id": str(row.id),
                "seq": seq,
                "product_id": str(product.id),
                "movement_type": movement_type.value,
                "quantity": delta,
                "previous_stock": previous_stock,
                "new_stock": new_stock,
                "actor": actor.tag,
            },
        )
        return Movement.from_model(row)

    def check_availability(
        self,
        entries: Iterable[MovementEntry],
        store_id: UUID | None = None,
    ) -> list[StockShortage]:
        """
        Dry-run a batch against current stock, grouped per product.

        Each product's entries are applied in order to a running total; a
        product is short if that total ever drops below zero.  ``requested``
        is the product's total decrement in the batch.
        """
        by_product: dict[UUID, list[int]] = {}
        for entry in entries:
            by_product.setdefault(entry.product_id, []).append(entry.delta)

        products = self.lock_products(by_product, store_id)
        shortages: list[StockShortage] = []
        for pid, deltas in by_product.items():
            product = products[pid]
            running = product.stock
            dipped = False
            for d in deltas:
                running += d
                if running < 0:
                    dipped = True
            if dipped:
                shortages.append(
                    StockShortage(
                        product_id=pid,
                        product_name=product.name,
                        available=product.stock,
                        requested=-sum(d for d in deltas if d < 0),
                    )
                )
        return shortages

    def record_batch(
        self,
        entries: Iterable[MovementEntry],
        actor: Actor,
        validate: bool = True,
        allow_negative: bool = False,
        store_id: UUID | None = None,
    ) -> list[Movement]:
        """
        Record several movements in the caller's transaction.

        With ``validate=True`` all shortfalls are collected before anything
        is written: one short product raises InsufficientStockError, more
        than one raises MultipleInsufficientStockError.  Snapshots stay
        correct when a product appears more than once because each record()
        re-reads the locked row.
        """
        entries = list(entries)
        if not entries:
            return []

        # Lock everything up front, in id order.
        self.lock_products((e.product_id for e in entries), store_id)

        if validate and not allow_negative:
            shortages = self.check_availability(entries, store_id)
            if len(shortages) == 1:
                s = shortages[0]
                raise InsufficientStockError(
                    product_id=str(s.product_id),
                    available=s.available,
                    requested=s.requested,
                    product_name=s.product_name,
                )
            if shortages:
                logger.warning(
                    "batch_insufficient_stock_rejected",
                    extra={"shortage_count": len(shortages)},
                )
                raise MultipleInsufficientStockError(
                    [s.as_dict() for s in shortages]
                )

        movements = [
            self.record(
                product_id=e.product_id,
                delta=e.delta,
                type=e.type,
                reason=e.reason,
                actor=actor,
                reference_id=e.reference_id,
                description=e.description,
                cost=e.cost,
                price=e.price,
                allow_negative=allow_negative,
                store_id=store_id,
            )
            for e in entries
        ]
        logger.info(
            "movement_batch_recorded",
            extra={"movement_count": len(movements), "actor": actor.tag},
        )
        return movements

    def record_opening_balance(
        self,
        product_id: UUID,
        actor: Actor,
        cost: Decimal | None = None,
        store_id: UUID | None = None,
    ) -> Movement | None:
        """
        Give a legacy product (stock set outside the ledger) its first movement.

        Writes INITIAL_MIGRATION with previous_stock=0 and new_stock=stock,
        leaving Product.stock untouched.  Returns None, writing nothing, if
        the product already has movements or has zero stock.
        """
        product = self.lock_product(product_id, store_id)
        if product.stock == 0 or self._selector.has_movements(product.id):
            logger.debug(
                "opening_balance_skipped",
                extra={"product_id": str(product.id), "stock": product.stock},
            )
            return None

        seq = self._sequences.next_value(SequenceService.INVENTORY_MOVEMENT)
        row = InventoryMovement(
            seq=seq,
            store_id=product.store_id,
            product_id=product.id,
            type=MovementType.INITIAL_MIGRATION.value,
            quantity=product.stock,
            previous_stock=0,
            new_stock=product.stock,
            reason=OPENING_BALANCE_REASON,
            cost=cost if cost is not None else product.acq_price,
            created_by=actor.tag,
            created_at=self.clock.now(),
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "opening_balance_recorded",
            extra={
                "product_id": str(product.id),
                "seq": seq,
                "stock": product.stock,
                "actor": actor.tag,
            },
        )
        return Movement.from_model(row)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def history(
        self,
        product_id: UUID,
        limit: int = 50,
        cursor: int | None = None,
    ) -> Iterator[Movement]:
        """
        Newest-first movements of a product.

        Finite and restartable: pass the seq of the last movement seen as
        ``cursor`` to continue below it.
        """
        return iter(self._selector.history(product_id, limit=limit, cursor=cursor))
