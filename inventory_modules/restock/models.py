"""
Restock Domain Models.

The nouns of replenishment: restock orders, their lines, receiving
instructions and receiving results.  Frozen DTOs; persistence lives in
``inventory_modules.restock.orm``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from inventory_kernel.domain.dtos import Movement
from inventory_kernel.logging_config import get_logger

logger = get_logger("modules.restock.models")


class RestockStatus(str, Enum):
    """Restock order lifecycle states."""
    DRAFT = "DRAFT"
    ORDERED = "ORDERED"
    PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


RECEIVABLE_STATUSES = frozenset({RestockStatus.ORDERED, RestockStatus.PARTIALLY_RECEIVED})


@dataclass(frozen=True)
class LineProgress:
    """Receiving progress of one line."""
    ordered: int
    received: int
    remaining: int
    percent_received: int
    satisfied: bool
    over_received: bool


@dataclass(frozen=True)
class NewRestockItem:
    """A line requested on create / draft edit."""
    product_id: UUID
    quantity: int
    cost: Decimal


@dataclass(frozen=True)
class RestockOrderItem:
    """A line item on a restock order."""
    id: UUID
    restock_order_id: UUID
    product_id: UUID
    quantity: int
    cost: Decimal
    quantity_received: int
    subtotal: Decimal
    index: int
    progress: LineProgress


@dataclass(frozen=True)
class RestockOrder:
    """A restock order with its lines, in display order."""
    id: UUID
    store_id: UUID
    order_number: str
    supplier_id: str | None
    status: RestockStatus
    notes: str | None
    shipping_cost: Decimal
    total_amount: Decimal
    items: tuple[RestockOrderItem, ...] = field(default_factory=tuple)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_draft(self) -> bool:
        return self.status == RestockStatus.DRAFT

    @property
    def units_ordered(self) -> int:
        return sum(i.quantity for i in self.items)

    @property
    def units_received(self) -> int:
        return sum(i.quantity_received for i in self.items)


@dataclass(frozen=True)
class ReceiveLine:
    """One receiving instruction: units that arrived for a line item.

    ``cost`` overrides the line's unit cost for this delivery only.
    """
    item_id: UUID
    quantity: int
    cost: Decimal | None = None


@dataclass(frozen=True)
class ReceivedLine:
    """Outcome of one line in a receiving call."""
    item_id: UUID
    product_id: UUID
    quantity: int
    quantity_ordered: int
    quantity_received: int
    unit_cost: Decimal | None
    over_received: bool
    movement_id: UUID


@dataclass(frozen=True)
class ReceivingResult:
    """What a receive call did, and the order as it now stands."""
    order: RestockOrder
    lines: tuple[ReceivedLine, ...]
    movements: tuple[Movement, ...]
    replayed: bool = False

    @property
    def over_received_lines(self) -> tuple[ReceivedLine, ...]:
        return tuple(line for line in self.lines if line.over_received)
