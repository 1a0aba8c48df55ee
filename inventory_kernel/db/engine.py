"""
Module: inventory_kernel.db.engine
Responsibility: Owns the process-wide engine and session factory, and the
    commit-or-rollback scope used by scripts.
Architecture position: Kernel > DB.  Imports db/base.py, db/triggers.py and
    (for create_tables only) the kernel models.

Locking model:
    - PostgreSQL: READ COMMITTED.  Every stock read that precedes a write
      takes a row lock (SELECT ... FOR UPDATE).
    - SQLite: pysqlite's implicit BEGIN is disabled and each transaction
      starts with BEGIN IMMEDIATE, so one writer holds the database for
      the whole unit of work.  Waiting writers give up after
      ``pool_timeout`` seconds with "database is locked".

Failure modes:
    - RuntimeError when a session is requested before init_engine_from_url().
    - OperationalError from trigger installation after repeated deadlocks.
"""

import atexit
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_IN_MEMORY_SQLITE = ("sqlite://", "sqlite:///:memory:")
TRIGGER_INSTALL_ATTEMPTS = 3


def _sqlite_kwargs(database_url: str, pool: dict[str, Any], timeout: int) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "connect_args": {"check_same_thread": False, "timeout": timeout},
    }
    if database_url in _IN_MEMORY_SQLITE:
        kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(pool)
    return kwargs


def _postgres_kwargs(pool: dict[str, Any], pool_recycle: int) -> dict[str, Any]:
    return {**pool, "pool_recycle": pool_recycle, "isolation_level": "READ COMMITTED"}


def _begin_immediate(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    Calling it again replaces both.  Sessions never expire attributes on
    commit, so DTOs built after a commit read loaded values.

    Args:
        database_url: ``postgresql://...`` or ``sqlite:///path``.
        pool_timeout: Seconds to wait for a pooled connection.  On SQLite it
            is also the busy timeout for the write lock.
    """
    global _engine, _SessionFactory

    pool = {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": pool_pre_ping,
        "pool_timeout": pool_timeout,
    }
    is_sqlite_url = database_url.startswith("sqlite")
    if is_sqlite_url:
        kwargs = _sqlite_kwargs(database_url, pool, pool_timeout)
    else:
        kwargs = _postgres_kwargs(pool, pool_recycle)

    _engine = create_engine(database_url, echo=echo, **kwargs)
    if is_sqlite_url:
        _begin_immediate(_engine)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "pool_size": pool_size, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def _require_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_session() -> Session:
    return _require_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """The factory itself, for callers that open one session per thread."""
    return _require_factory()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Session that commits on normal exit and rolls back on error.

    Module processors commit their own work, so inside this scope the final
    commit only covers whatever the caller did directly.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _retry_on_deadlock(action: Callable[[], None], engine: Engine) -> None:
    for attempt in range(1, TRIGGER_INSTALL_ATTEMPTS + 1):
        try:
            action()
            return
        except OperationalError as exc:
            if "deadlock" not in str(exc).lower() or attempt == TRIGGER_INSTALL_ATTEMPTS:
                raise
            logger.warning("trigger_install_deadlock_retry", extra={"attempt": attempt})
            engine.dispose()
            time.sleep(0.5 * attempt)


def create_tables(install_triggers: bool = True) -> None:
    """
    Create every table registered on ``Base.metadata``.

    Module ORM classes must be imported first
    (``inventory_modules._orm_registry.create_all_tables`` does both).  On
    PostgreSQL the immutability triggers are installed as well; SQLite relies
    on the ORM listeners alone.
    """
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401

    engine = get_engine()
    Base.metadata.create_all(engine)

    if install_triggers and is_postgres():
        from inventory_kernel.db.triggers import install_immutability_triggers

        _retry_on_deadlock(lambda: install_immutability_triggers(engine), engine)

    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every table (and, on PostgreSQL, the triggers).  Tests and resets only."""
    from inventory_kernel.db.base import Base

    engine = get_engine()
    if is_postgres():
        from inventory_kernel.db.triggers import uninstall_immutability_triggers

        uninstall_immutability_triggers(engine)
    Base.metadata.drop_all(engine)


def reset_engine() -> None:
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
