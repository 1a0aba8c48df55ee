"""
Module: inventory_kernel.models.inventory_movement
Responsibility: ORM persistence for the append-only stock movement ledger --
    the single source of stock truth.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - quantity <> 0 (CHECK constraint).
    - new_stock = previous_stock + quantity (CHECK constraint).
    - seq is unique and globally monotonic (UNIQUE constraint; allocated by
      SequenceService under a row lock).
    - Rows are never updated or deleted (ORM listeners in db/immutability.py
      plus PostgreSQL triggers in db/sql/01_inventory_movement.sql).

Failure modes:
    - IntegrityError on a CHECK violation or duplicate seq.
    - ImmutabilityViolationError on UPDATE/DELETE.

Audit relevance:
    Replaying a product's movements in seq order reproduces its stock.  The
    created_by actor tag and reference_id tie each change to its cause.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.models.product import Product


class InventoryMovement(Base):
    """
    One immutable stock change.

    Not a TrackedBase: movements have no updated_at because they are never
    updated.
    """

    __tablename__ = "inventory_movements"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_inventory_movement_seq"),
        CheckConstraint("quantity <> 0", name="ck_inventory_movement_nonzero"),
        CheckConstraint(
            "new_stock = previous_stock + quantity",
            name="ck_inventory_movement_snapshot",
        ),
        Index("idx_movement_product_seq", "product_id", "seq"),
        Index("idx_movement_store_seq", "store_id", "seq"),
        Index("idx_movement_reference", "reference_id"),
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    store_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    # Signed change
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    previous_stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    new_stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    reason: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    # Restock order id, storefront order id, ...
    reference_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    cost: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 4),
        nullable=True,
    )

    price: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 4),
        nullable=True,
    )

    # Canonical actor tag (see domain/actor.py)
    created_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    product: Mapped[Product] = relationship()

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement seq={self.seq} {self.type} "
            f"{self.previous_stock}{self.quantity:+d}={self.new_stock}>"
        )
