"""
Movement types and their sign / caller rules.

Responsibility:
    Single lookup table that maps every MovementType to the sign applied to
    a caller-supplied positive quantity, and to the channel allowed to
    produce it.  The ledger itself accepts signed deltas; processors use
    this table so callers never supply a sign.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - Every MovementType has exactly one rule (checked at import).
    - Manual adjustments may only use types whose channel is MANUAL.
"""

from dataclasses import dataclass
from enum import Enum


class MovementType(str, Enum):
    """Why stock changed."""

    ORDER_PLACED = "ORDER_PLACED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"
    INITIAL_INTAKE = "INITIAL_INTAKE"
    PURCHASE = "PURCHASE"
    RETURN = "RETURN"
    DAMAGE = "DAMAGE"
    LOST = "LOST"
    RESTOCK_RECEIVED = "RESTOCK_RECEIVED"
    INITIAL_MIGRATION = "INITIAL_MIGRATION"
    PROMOTION = "PROMOTION"
    STORE_USE = "STORE_USE"


class MovementChannel(str, Enum):
    """Which code path is permitted to record a movement type."""

    MANUAL = "MANUAL"
    RECEIVING = "RECEIVING"
    ORDER_HOOK = "ORDER_HOOK"
    MIGRATION = "MIGRATION"


@dataclass(frozen=True)
class MovementRule:
    """Sign and permitted channel for one movement type."""

    sign: int
    channel: MovementChannel

    @property
    def manual(self) -> bool:
        return self.channel is MovementChannel.MANUAL


MOVEMENT_RULES: dict[MovementType, MovementRule] = {
    MovementType.DAMAGE: MovementRule(-1, MovementChannel.MANUAL),
    MovementType.LOST: MovementRule(-1, MovementChannel.MANUAL),
    MovementType.STORE_USE: MovementRule(-1, MovementChannel.MANUAL),
    MovementType.MANUAL_ADJUSTMENT: MovementRule(+1, MovementChannel.MANUAL),
    MovementType.INITIAL_INTAKE: MovementRule(+1, MovementChannel.MANUAL),
    MovementType.RETURN: MovementRule(+1, MovementChannel.MANUAL),
    MovementType.PROMOTION: MovementRule(+1, MovementChannel.MANUAL),
    MovementType.PURCHASE: MovementRule(+1, MovementChannel.MANUAL),
    MovementType.RESTOCK_RECEIVED: MovementRule(+1, MovementChannel.RECEIVING),
    MovementType.ORDER_PLACED: MovementRule(-1, MovementChannel.ORDER_HOOK),
    MovementType.ORDER_CANCELLED: MovementRule(+1, MovementChannel.ORDER_HOOK),
    MovementType.INITIAL_MIGRATION: MovementRule(+1, MovementChannel.MIGRATION),
}

assert set(MOVEMENT_RULES) == set(MovementType), "every movement type needs a rule"

MANUAL_MOVEMENT_TYPES: frozenset[MovementType] = frozenset(
    t for t, rule in MOVEMENT_RULES.items() if rule.manual
)

# Types accepted by the bulk intake endpoint.
BATCH_INTAKE_TYPES: frozenset[MovementType] = frozenset({
    MovementType.INITIAL_INTAKE,
    MovementType.PURCHASE,
    MovementType.MANUAL_ADJUSTMENT,
})


def parse_movement_type(value: "str | MovementType") -> MovementType:
    """Coerce a wire value into a MovementType.

    Raises:
        ValueError: If the value names no movement type.
    """
    if isinstance(value, MovementType):
        return value
    return MovementType(str(value).strip().upper())


def signed_quantity(movement_type: MovementType, quantity: int) -> int:
    """Apply the table's sign to a positive quantity."""
    return MOVEMENT_RULES[movement_type].sign * quantity
