"""
DTOs -- Pure domain data transfer objects for the stock ledger.

Responsibility:
    Immutable data structures crossing the ledger boundary: MovementEntry
    (input to batch recording), Movement (a recorded ledger row) and
    StockShortage (one product's shortfall in a validation pass).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers.

Invariants enforced:
    - Movement.new_stock == Movement.previous_stock + Movement.quantity
      (checked in __post_init__).
    - MovementEntry.delta is a non-zero integer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from inventory_kernel.domain.movement_types import MovementType

if TYPE_CHECKING:
    from inventory_kernel.models.inventory_movement import InventoryMovement


@dataclass(frozen=True)
class MovementEntry:
    """
    One requested stock change, as passed to StockLedger.record_batch().

    Contract:
        ``delta`` is already signed.  Processors compute it from the
        movement type table; the ledger never re-derives the sign.
    """

    product_id: UUID
    delta: int
    type: MovementType
    reason: str | None = None
    reference_id: str | None = None
    description: str | None = None
    cost: Decimal | None = None
    price: Decimal | None = None

    def __post_init__(self) -> None:
        if isinstance(self.delta, bool) or not isinstance(self.delta, int):
            raise ValueError(f"delta must be an integer, got {self.delta!r}")
        if self.delta == 0:
            raise ValueError("delta must be non-zero")


@dataclass(frozen=True)
class Movement:
    """
    A recorded ledger row.

    Guarantees:
        - new_stock == previous_stock + quantity.
        - seq is globally monotonic and orders the product's history.
    """

    id: UUID
    seq: int
    store_id: UUID
    product_id: UUID
    type: MovementType
    quantity: int
    previous_stock: int
    new_stock: int
    reason: str | None
    description: str | None
    reference_id: str | None
    cost: Decimal | None
    price: Decimal | None
    created_by: str
    created_at: datetime

    def __post_init__(self) -> None:
        if self.new_stock != self.previous_stock + self.quantity:
            raise ValueError(
                f"Movement {self.id} breaks its own snapshot: "
                f"{self.previous_stock} + {self.quantity} != {self.new_stock}"
            )

    @property
    def is_increment(self) -> bool:
        return self.quantity > 0

    @classmethod
    def from_model(cls, model: InventoryMovement) -> Movement:
        """Create a Movement from an InventoryMovement ORM row."""
        return cls(
            id=model.id,
            seq=model.seq,
            store_id=model.store_id,
            product_id=model.product_id,
            type=MovementType(model.type),
            quantity=model.quantity,
            previous_stock=model.previous_stock,
            new_stock=model.new_stock,
            reason=model.reason,
            description=model.description,
            reference_id=model.reference_id,
            cost=model.cost,
            price=model.price,
            created_by=model.created_by,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class StockShortage:
    """A product whose requested decrements exceed available stock."""

    product_id: UUID
    product_name: str
    available: int
    requested: int

    def as_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "product_name": self.product_name,
            "available": self.available,
            "requested": self.requested,
        }
