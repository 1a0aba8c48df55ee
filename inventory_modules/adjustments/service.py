"""
Manual Adjustment Processor (``inventory_modules.adjustments.service``).

Responsibility
--------------
Turn an operator's "this many units, for this reason" into a signed ledger
movement.  The caller never supplies a sign: the movement type decides it
through ``MOVEMENT_RULES``.  Also handles bulk intake (several products,
one positive type, all-or-nothing).

Architecture position
---------------------
**Modules layer** -- owns the transaction; delegates the write to the
kernel ``StockLedger``.

Invariants enforced
-------------------
* Only types whose channel is MANUAL are accepted here.  Receiving, order
  hook and migration types have their own entry points.
* ``quantity`` is a positive integer.
* A reason is required while ``AdjustmentPolicy.require_reason`` is on.

Failure modes
-------------
* ``InvalidInputError`` -- bad type, quantity or reason.
* ``ProductNotFoundError`` -- product missing or in another store.
* ``InsufficientStockError`` / ``MultipleInsufficientStockError``.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import Movement, MovementEntry
from inventory_kernel.domain.movement_types import (
    BATCH_INTAKE_TYPES,
    MOVEMENT_RULES,
    MovementType,
    parse_movement_type,
    signed_quantity,
)
from inventory_kernel.exceptions import InvalidInputError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.stock_ledger import StockLedger
from inventory_modules._transaction import owned_transaction
from inventory_modules.adjustments.config import AdjustmentPolicy
from inventory_modules.adjustments.models import AdjustmentLine

logger = get_logger("modules.adjustments.service")


def _parse_type(value: MovementType | str) -> MovementType:
    try:
        return parse_movement_type(value)
    except ValueError:
        raise InvalidInputError(f"Unknown movement type: {value!r}", field="type") from None


def _check_quantity(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInputError(
            f"quantity must be an integer, got {quantity!r}", field="quantity"
        )
    if quantity <= 0:
        raise InvalidInputError("quantity must be a positive integer", field="quantity")


class ManualAdjustmentProcessor:
    """
    Manual stock corrections and bulk intake.

    Contract
    --------
    Returns the recorded Movement(s).  On any exception the session has been
    rolled back and stock is unchanged.
    """

    def __init__(
        self,
        session: Session,
        policy: AdjustmentPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._policy = policy or AdjustmentPolicy()
        self._ledger = StockLedger(session, clock or SystemClock())

    def _check_reason(self, reason: str | None) -> str | None:
        reason = reason.strip() if reason else None
        if self._policy.require_reason and not reason:
            raise InvalidInputError("A reason is required", field="reason")
        return reason

    def adjust(
        self,
        product_id: UUID,
        type: MovementType | str,
        quantity: int,
        reason: str | None,
        actor: Actor,
        description: str | None = None,
        cost: Decimal | None = None,
        store_id: UUID | None = None,
        allow_negative: bool = False,
    ) -> Movement:
        """Record one manual adjustment; the sign comes from ``type``."""
        movement_type = _parse_type(type)
        if not MOVEMENT_RULES[movement_type].manual:
            raise InvalidInputError(
                f"{movement_type.value} cannot be recorded as a manual adjustment",
                field="type",
            )
        _check_quantity(quantity)
        reason = self._check_reason(reason)

        with owned_transaction(self._session, "inventory.adjust"):
            movement = self._ledger.record(
                product_id=product_id,
                delta=signed_quantity(movement_type, quantity),
                type=movement_type,
                reason=reason,
                actor=actor,
                description=description,
                cost=cost,
                allow_negative=allow_negative,
                store_id=store_id,
            )

        logger.info(
            "manual_adjustment_recorded",
            extra={
                "movement_id": str(movement.id),
                "product_id": str(product_id),
                "movement_type": movement_type.value,
                "quantity": movement.quantity,
                "new_stock": movement.new_stock,
                "actor": actor.tag,
            },
        )
        return movement

    def adjust_batch(
        self,
        type: MovementType | str,
        lines: Sequence[AdjustmentLine],
        reason: str | None,
        actor: Actor,
        description: str | None = None,
        store_id: UUID | None = None,
    ) -> list[Movement]:
        """
        Bulk intake: one positive type applied to several products.

        All lines are recorded or none are.
        """
        movement_type = _parse_type(type)
        if movement_type not in BATCH_INTAKE_TYPES:
            raise InvalidInputError(
                f"{movement_type.value} is not a bulk intake type", field="type"
            )
        lines = list(lines)
        if not lines:
            raise InvalidInputError("At least one line is required", field="lines")
        for line in lines:
            _check_quantity(line.quantity)
        reason = self._check_reason(reason)

        entries = [
            MovementEntry(
                product_id=line.product_id,
                delta=signed_quantity(movement_type, line.quantity),
                type=movement_type,
                reason=reason,
                description=description,
                cost=line.cost,
            )
            for line in lines
        ]
        with owned_transaction(self._session, "inventory.adjust_batch"):
            movements = self._ledger.record_batch(entries, actor, store_id=store_id)

        logger.info(
            "batch_intake_recorded",
            extra={
                "movement_type": movement_type.value,
                "movement_count": len(movements),
                "units": sum(m.quantity for m in movements),
                "actor": actor.tag,
            },
        )
        return movements
