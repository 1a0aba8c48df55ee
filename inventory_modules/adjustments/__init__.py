"""
Adjustments Module (``inventory_modules.adjustments``).

Manual stock corrections (damage, loss, store use, returns, promotions,
intake) and bulk intake.  The movement type decides the sign; operators
only ever enter positive quantities.
"""

from inventory_modules.adjustments.config import AdjustmentPolicy
from inventory_modules.adjustments.models import AdjustmentLine

__all__ = ["AdjustmentLine", "AdjustmentPolicy"]
