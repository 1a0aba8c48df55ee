"""
Actor -- who caused a stock change.

Responsibility:
    Tagged variant replacing free-form "who" strings.  An actor is either a
    SystemActor of a known kind (payment gateways, migration scripts) or a
    UserActor carrying an opaque user id.  The canonical tag is what gets
    persisted in ``created_by``; parsing happens only at the read boundary.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Canonical tags:
    SYSTEM                    -> SystemActor(SystemKind.SYSTEM)
    SYSTEM_PAYU               -> SystemActor(SystemKind.PAYU)
    SYSTEM_WOMPI              -> SystemActor(SystemKind.WOMPI)
    SYSTEM_MIGRATION_SCRIPT   -> SystemActor(SystemKind.MIGRATION_SCRIPT)
    USER_<id>                 -> UserActor("<id>")
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

USER_PREFIX = "USER_"


class SystemKind(str, Enum):
    """Known non-human sources of stock changes."""

    SYSTEM = "SYSTEM"
    PAYU = "SYSTEM_PAYU"
    WOMPI = "SYSTEM_WOMPI"
    MIGRATION_SCRIPT = "SYSTEM_MIGRATION_SCRIPT"


_SYSTEM_DISPLAY_NAMES: dict[SystemKind, str] = {
    SystemKind.SYSTEM: "Sistema",
    SystemKind.PAYU: "PayU",
    SystemKind.WOMPI: "Wompi",
    SystemKind.MIGRATION_SCRIPT: "Migración",
}


@dataclass(frozen=True)
class SystemActor:
    kind: SystemKind = SystemKind.SYSTEM

    @property
    def tag(self) -> str:
        return self.kind.value

    @property
    def display_name(self) -> str:
        return _SYSTEM_DISPLAY_NAMES[self.kind]


@dataclass(frozen=True)
class UserActor:
    user_id: str

    def __post_init__(self) -> None:
        if not self.user_id or not str(self.user_id).strip():
            raise ValueError("UserActor requires a non-empty user_id")

    @property
    def tag(self) -> str:
        return f"{USER_PREFIX}{self.user_id}"

    @property
    def display_name(self) -> str:
        return str(self.user_id)


Actor = Union[SystemActor, UserActor]

SYSTEM = SystemActor(SystemKind.SYSTEM)
MIGRATION_SCRIPT = SystemActor(SystemKind.MIGRATION_SCRIPT)


def parse_actor(tag: str) -> Actor:
    """Parse a persisted canonical tag back into an Actor.

    Tags that match no known kind are treated as legacy user ids, which is
    how rows written before tagging was introduced read back.
    """
    if tag.startswith(USER_PREFIX):
        return UserActor(tag[len(USER_PREFIX):])
    try:
        return SystemActor(SystemKind(tag))
    except ValueError:
        return UserActor(tag)


def actor_display_name(tag: str) -> str:
    """Human-facing name for a persisted actor tag."""
    return parse_actor(tag).display_name
