"""
Pure domain layer.

Value objects and rules with NO dependencies on the ORM, the database, the
clock or any I/O.
"""

from inventory_kernel.domain.actor import (
    Actor,
    SystemActor,
    SystemKind,
    UserActor,
    parse_actor,
)
from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import Movement, MovementEntry, StockShortage
from inventory_kernel.domain.movement_types import (
    MANUAL_MOVEMENT_TYPES,
    MOVEMENT_RULES,
    MovementType,
    signed_quantity,
)
from inventory_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Actor",
    "Clock",
    "DeterministicClock",
    "Guard",
    "MANUAL_MOVEMENT_TYPES",
    "MOVEMENT_RULES",
    "Movement",
    "MovementEntry",
    "MovementType",
    "StockShortage",
    "SystemActor",
    "SystemClock",
    "SystemKind",
    "Transition",
    "UserActor",
    "Workflow",
    "parse_actor",
    "signed_quantity",
]
