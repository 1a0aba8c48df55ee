"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.reconciliation_service import (
    ReconciliationReport,
    StockReconciliationService,
    StockRepair,
)
from inventory_kernel.services.sequence_service import SequenceService
from inventory_kernel.services.stock_ledger import StockLedger

__all__ = [
    "ReconciliationReport",
    "SequenceService",
    "StockLedger",
    "StockReconciliationService",
    "StockRepair",
]
