"""
Module: inventory_kernel.models.product
Responsibility: ORM persistence for products -- only the stock-relevant slice
    (identity, store, display fields and the stock projection).
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - stock is a cached projection of the ledger.  It is written only by
      StockLedger (alongside a movement) or by the reconciliation repair.
      db/immutability.py rejects any other stock write at flush time.

Failure modes:
    - ImmutabilityViolationError when stock is changed without a movement.

Audit relevance:
    Product.stock must equal the new_stock of the product's latest movement.
    StockReconciliationService verifies and repairs that relationship.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString


class Product(TrackedBase):
    """
    A sellable product, reduced to what the stock ledger needs.

    Catalog attributes (categories, sizes, images, prices) are owned by an
    external CRUD layer and are not modelled here.
    """

    __tablename__ = "products"

    __table_args__ = (
        Index("idx_product_store", "store_id"),
        Index("idx_product_store_sku", "store_id", "sku"),
    )

    store_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    sku: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # Acquisition price; default cost for opening-balance movements
    acq_price: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 4),
        nullable=True,
    )

    stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<Product {self.id} sku={self.sku} stock={self.stock}>"
