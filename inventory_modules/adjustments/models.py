"""
Adjustment Domain Models.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class AdjustmentLine:
    """One product in a bulk intake.  ``quantity`` is a positive unit count."""
    product_id: UUID
    quantity: int
    cost: Decimal | None = None
