"""
Orders Module (``inventory_modules.orders``).

Stock hooks for the storefront order flow: ``ORDER_PLACED`` on checkout and
``ORDER_CANCELLED`` on cancellation.
"""

from inventory_modules.orders.models import OrderLine

__all__ = ["OrderLine"]
