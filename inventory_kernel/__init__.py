"""
Inventory Kernel

An append-only stock ledger with:
- A stock projection kept in step with every movement
- Row-locked, transactional stock mutation
- Typed errors and structured logging
- Reconciliation of the projection against the ledger
"""

__version__ = "0.1.0"
