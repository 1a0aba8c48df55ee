"""
Inventory modules: restock orders, manual adjustments and storefront order
hooks.  Each module owns its transactions and writes stock only through
``inventory_kernel.services.StockLedger``.
"""
