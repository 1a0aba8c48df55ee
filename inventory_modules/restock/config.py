"""
Restock Configuration Schema.

Named policy flags for ordering and receiving.  Values come from
``inventory_config`` at runtime; the defaults here match the long-standing
behavior of the stores (over-receipt accepted, no landed-cost allocation).
"""

from dataclasses import dataclass
from typing import Self

from inventory_kernel.logging_config import get_logger

logger = get_logger("modules.restock.config")


@dataclass(frozen=True)
class RestockPolicy:
    """
    Configuration schema for the restock module.

    Override at instantiation:

        policy = RestockPolicy(allow_over_receipt=False)
    """

    # Receiving more units than ordered is recorded and flagged, not refused.
    allow_over_receipt: bool = True

    # Spread shipping_cost over received units' cost in proportion to value.
    apply_landed_cost: bool = False

    # Order numbers: PO-0001, PO-0002, ... per store.
    order_number_prefix: str = "PO-"
    order_number_width: int = 4

    def __post_init__(self):
        if self.order_number_width < 1:
            raise ValueError("order_number_width must be at least 1")
        logger.info(
            "restock_policy_initialized",
            extra={
                "allow_over_receipt": self.allow_over_receipt,
                "apply_landed_cost": self.apply_landed_cost,
                "order_number_prefix": self.order_number_prefix,
            },
        )

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create a policy from a mapping (e.g. a YAML section)."""
        logger.info(
            "restock_policy_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    def format_order_number(self, value: int) -> str:
        return f"{self.order_number_prefix}{value:0{self.order_number_width}d}"
