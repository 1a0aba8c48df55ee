"""
Module: inventory_kernel.selectors.movement_selector
Responsibility: Read-only access to the stock movement ledger: per-product
    history pages, the full chain for verification, store-wide listings with
    display fields, and lookups by reference.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.
    - History is newest first (seq descending) and paged by seq cursor: the
      next page starts strictly below the last seq seen, so pages never
      overlap or skip rows, even while new movements are appended.

Failure modes:
    - Returns empty lists on absence of data (never raises).
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import actor_display_name
from inventory_kernel.domain.dtos import Movement
from inventory_kernel.domain.movement_types import MovementType
from inventory_kernel.models.inventory_movement import InventoryMovement
from inventory_kernel.models.product import Product
from inventory_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class MovementListingRow:
    """A movement with the display fields the admin listing shows."""

    movement: Movement
    product_name: str
    product_sku: str | None
    actor_display_name: str


@dataclass(frozen=True)
class MovementPage:
    rows: tuple[MovementListingRow, ...]
    next_cursor: int | None


class MovementSelector(BaseSelector[InventoryMovement]):
    """
    Selector for stock movement queries.

    Guarantees:
        - Read-only.
        - Ordering is always by seq, never by created_at (timestamps can
          collide; seq cannot).
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def history(
        self,
        product_id: UUID,
        limit: int = 50,
        cursor: int | None = None,
    ) -> list[Movement]:
        """One page of a product's movements, newest first."""
        if limit <= 0:
            return []
        stmt = (
            select(InventoryMovement)
            .where(InventoryMovement.product_id == product_id)
            .order_by(InventoryMovement.seq.desc())
            .limit(limit)
        )
        if cursor is not None:
            stmt = stmt.where(InventoryMovement.seq < cursor)
        rows = self.session.execute(stmt).scalars().all()
        return [Movement.from_model(r) for r in rows]

    def chain(self, product_id: UUID) -> list[Movement]:
        """Every movement of a product, oldest first."""
        rows = self.session.execute(
            select(InventoryMovement)
            .where(InventoryMovement.product_id == product_id)
            .order_by(InventoryMovement.seq.asc())
        ).scalars().all()
        return [Movement.from_model(r) for r in rows]

    def latest(self, product_id: UUID) -> Movement | None:
        page = self.history(product_id, limit=1)
        return page[0] if page else None

    def has_movements(self, product_id: UUID) -> bool:
        return bool(
            self.session.execute(
                select(
                    exists().where(InventoryMovement.product_id == product_id)
                )
            ).scalar()
        )

    def by_reference(
        self,
        reference_id: str,
        movement_type: MovementType | None = None,
    ) -> list[Movement]:
        """Movements pointing at an order or restock order, oldest first."""
        stmt = (
            select(InventoryMovement)
            .where(InventoryMovement.reference_id == reference_id)
            .order_by(InventoryMovement.seq.asc())
        )
        if movement_type is not None:
            stmt = stmt.where(InventoryMovement.type == movement_type.value)
        rows = self.session.execute(stmt).scalars().all()
        return [Movement.from_model(r) for r in rows]

    def list_for_store(
        self,
        store_id: UUID,
        product_id: UUID | None = None,
        limit: int = 50,
        cursor: int | None = None,
    ) -> MovementPage:
        """
        Store-wide movement listing, newest first, with display fields.

        ``next_cursor`` is the seq to pass back for the following page, or
        None when this page is the last one.
        """
        stmt = (
            select(InventoryMovement, Product.name, Product.sku)
            .join(Product, Product.id == InventoryMovement.product_id)
            .where(InventoryMovement.store_id == store_id)
            .order_by(InventoryMovement.seq.desc())
            .limit(limit + 1)
        )
        if product_id is not None:
            stmt = stmt.where(InventoryMovement.product_id == product_id)
        if cursor is not None:
            stmt = stmt.where(InventoryMovement.seq < cursor)

        result = self.session.execute(stmt).all()
        has_more = len(result) > limit
        result = result[:limit]

        rows = tuple(
            MovementListingRow(
                movement=Movement.from_model(movement),
                product_name=name,
                product_sku=sku,
                actor_display_name=actor_display_name(movement.created_by),
            )
            for movement, name, sku in result
        )
        next_cursor = rows[-1].movement.seq if has_more and rows else None
        return MovementPage(rows=rows, next_cursor=next_cursor)
