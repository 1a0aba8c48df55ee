"""
Module: inventory_kernel.db.conflicts
Responsibility: Classify database exceptions that signal a transaction
    conflict (serialization failure, deadlock, lock timeout, SQLite busy)
    and translate them into ConcurrentModificationError.
Architecture position: Kernel > DB.  Imports exceptions and sqlalchemy only.

Callers that own a transaction use ``translate_conflict`` after rolling
back.  Nothing here retries: whether a retry is safe is the caller's call.
"""

from sqlalchemy.exc import DBAPIError, OperationalError

from inventory_kernel.exceptions import ConcurrentModificationError

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected,
# lock_not_available
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})

_SQLITE_CONFLICT_MESSAGES = ("database is locked", "database table is locked")


def is_conflict(exc: BaseException) -> bool:
    """True if ``exc`` is a database-reported transaction conflict."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    pgcode = getattr(orig, "pgcode", None)
    if pgcode in _CONFLICT_SQLSTATES:
        return True
    if isinstance(exc, OperationalError):
        message = str(orig).lower()
        return any(m in message for m in _SQLITE_CONFLICT_MESSAGES)
    return False


def translate_conflict(
    exc: BaseException, operation: str
) -> ConcurrentModificationError | None:
    """Return the typed error for a conflict, or None if ``exc`` is not one."""
    if not is_conflict(exc):
        return None
    return ConcurrentModificationError(
        operation=operation,
        detail=str(getattr(exc, "orig", exc)),
    )
