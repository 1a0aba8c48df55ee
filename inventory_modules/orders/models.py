"""
Order Hook Models.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class OrderLine:
    """A product sold on a storefront order."""
    product_id: UUID
    quantity: int
    price: Decimal | None = None
