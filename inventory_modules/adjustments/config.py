"""
Adjustment Configuration Schema.
"""

from dataclasses import dataclass
from typing import Self

from inventory_kernel.logging_config import get_logger

logger = get_logger("modules.adjustments.config")


@dataclass(frozen=True)
class AdjustmentPolicy:
    """Configuration schema for manual stock adjustments."""

    # Every manual adjustment must say why.
    require_reason: bool = True

    def __post_init__(self):
        logger.info(
            "adjustment_policy_initialized",
            extra={"require_reason": self.require_reason},
        )

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "adjustment_policy_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
