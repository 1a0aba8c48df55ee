"""
Transaction ownership for module processors.

Kernel services only flush.  Each module entry point (receive, adjust,
create order, ...) is one unit of work: it commits on success, and on any
failure rolls back everything it did before re-raising.  Database-reported
conflicts leave as ConcurrentModificationError; nothing here retries.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from inventory_kernel.db.conflicts import translate_conflict
from inventory_kernel.logging_config import get_logger

logger = get_logger("modules.transaction")


@contextmanager
def owned_transaction(session: Session, operation: str) -> Iterator[Session]:
    """Run the block as one transaction: commit, or roll back and re-raise."""
    try:
        yield session
        session.commit()
    except Exception as exc:
        session.rollback()
        logger.info(
            "transaction_rolled_back",
            extra={"operation": operation, "error_type": type(exc).__name__},
        )
        conflict = translate_conflict(exc, operation)
        if conflict is not None:
            logger.warning(
                "concurrent_modification_detected",
                extra={"operation": operation, "detail": conflict.detail},
            )
            raise conflict from exc
        raise
