"""
SQLAlchemy ORM persistence models for the Restock module.

Responsibility
--------------
Provide database-backed persistence for restock (purchase) orders, their
line items, and receiving receipts.

Suppliers are an external thin-CRUD entity: ``supplier_id`` is an opaque
``String(100)`` reference with NO foreign key constraint.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``RestockOrderService`` and
``ReceivingProcessor``.  Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` (Numeric(18,4)) -- NEVER float.
* Status stored as String(30) for readability and portability.
* ``order_number`` is unique per store.
* A product appears at most once per order.
* ``quantity_received`` starts at 0 and never decreases (PostgreSQL trigger
  plus ``inventory_modules.restock.immutability``).
* An idempotency key is unique per order.

Audit relevance
---------------
* Every applied receiving call leaves a ``RestockReceiptModel`` row naming
  the actor and the number of units applied.  Stock effects themselves are
  in the kernel's movement ledger (reference_id = order id).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase, UUIDString

# ---------------------------------------------------------------------------
# RestockOrderModel
# ---------------------------------------------------------------------------


class RestockOrderModel(TrackedBase):
    """
    A restock order sent to a supplier.

    Maps to the ``RestockOrder`` DTO in ``inventory_modules.restock.models``.

    Guarantees:
        - ``order_number`` is unique within ``store_id``.
        - ``status`` follows RESTOCK_ORDER_WORKFLOW.
        - ``items`` load eagerly in display (``index``) order.
    """

    __tablename__ = "restock_orders"

    __table_args__ = (
        UniqueConstraint("store_id", "order_number", name="uq_restock_order_store_number"),
        Index("idx_restock_order_store", "store_id"),
        Index("idx_restock_order_status", "status"),
    )

    store_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="DRAFT")
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    shipping_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    items: Mapped[list["RestockOrderItemModel"]] = relationship(
        "RestockOrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RestockOrderItemModel.index",
    )

    def to_dto(self):
        from inventory_modules.restock.models import RestockOrder, RestockStatus

        item_dtos = tuple(item.to_dto() for item in self.items) if self.items else ()

        return RestockOrder(
            id=self.id,
            store_id=self.store_id,
            order_number=self.order_number,
            supplier_id=self.supplier_id,
            status=RestockStatus(self.status),
            notes=self.notes,
            shipping_cost=self.shipping_cost,
            total_amount=self.total_amount,
            items=item_dtos,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<RestockOrder {self.order_number} status={self.status}>"


# ---------------------------------------------------------------------------
# RestockOrderItemModel
# ---------------------------------------------------------------------------


class RestockOrderItemModel(TrackedBase):
    """
    A line item within a restock order.

    Maps to the ``RestockOrderItem`` DTO.

    Guarantees:
        - Belongs to exactly one ``RestockOrderModel``.
        - ``product_id`` is unique within the order.
        - Once the order leaves DRAFT only ``quantity_received`` changes.
    """

    __tablename__ = "restock_order_items"

    __table_args__ = (
        UniqueConstraint("restock_order_id", "product_id", name="uq_restock_item_order_product"),
        Index("idx_restock_item_order", "restock_order_id"),
        Index("idx_restock_item_product", "product_id"),
    )

    restock_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("restock_orders.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    cost: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    order: Mapped["RestockOrderModel"] = relationship(
        "RestockOrderModel",
        back_populates="items",
    )

    def to_dto(self):
        from inventory_modules.restock.models import RestockOrderItem
        from inventory_modules.restock.workflows import line_progress

        return RestockOrderItem(
            id=self.id,
            restock_order_id=self.restock_order_id,
            product_id=self.product_id,
            quantity=self.quantity,
            cost=self.cost,
            quantity_received=self.quantity_received,
            subtotal=self.subtotal,
            index=self.index,
            progress=line_progress(self.quantity, self.quantity_received),
        )


# ---------------------------------------------------------------------------
# RestockReceiptModel
# ---------------------------------------------------------------------------


class RestockReceiptModel(TrackedBase):
    """
    One applied receiving call against a restock order.

    Guarantees:
        - ``idempotency_key``, when present, is unique within the order, so
          a retried call with the same key is detected and not re-applied.
    """

    __tablename__ = "restock_receipts"

    __table_args__ = (
        UniqueConstraint(
            "restock_order_id", "idempotency_key", name="uq_restock_receipt_idempotency"
        ),
        Index("idx_restock_receipt_order", "restock_order_id"),
    )

    restock_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("restock_orders.id"), nullable=False
    )
    idempotency_key: Mapped[str | None] = mapped_column(String(200), nullable=True)
    line_count: Mapped[int] = mapped_column(Integer, nullable=False)
    units_received: Mapped[int] = mapped_column(Integer, nullable=False)

    def to_dto(self) -> dict:
        return {
            "id": self.id,
            "restock_order_id": self.restock_order_id,
            "idempotency_key": self.idempotency_key,
            "line_count": self.line_count,
            "units_received": self.units_received,
            "created_by": self.created_by,
            "created_at": self.created_at,
        }
