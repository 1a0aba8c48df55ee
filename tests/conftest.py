"""
Pytest fixtures for the inventory test suite.

Provides:
- A fresh database per test (SQLite file under tmp_path, or the PostgreSQL
  database named by DATABASE_URL, dropped and recreated per test)
- Structured log capture
- Seeding helpers for products and restock orders

Environment Variables:
- DATABASE_URL: PostgreSQL connection URL.  If not set, SQLite is used and
  PostgreSQL-only tests are skipped.
"""

import json
import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from inventory_kernel.db.engine import (
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
)
from inventory_kernel.domain.actor import UserActor
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.movement_types import MovementType
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_kernel.models.product import Product
from inventory_kernel.services.stock_ledger import StockLedger
from inventory_modules._orm_registry import create_all_tables, register_all_listeners
from inventory_modules.restock.models import NewRestockItem
from inventory_modules.restock.service import RestockOrderService


TEST_ACTOR = UserActor("user_test_admin")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "postgres: requires a PostgreSQL DATABASE_URL")
    config.addinivalue_line("markers", "slow: long-running concurrency or property tests")


def pytest_collection_modifyitems(config, items):
    if os.environ.get("DATABASE_URL", "").startswith("postgresql"):
        return
    skip_pg = pytest.mark.skip(reason="DATABASE_URL does not point at PostgreSQL")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip_pg)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ...):
            ...
            assert any(r["message"] == "movement_recorded" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """Engine over a fresh schema, disposed after the test."""
    url = os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'inventory.db'}"
    engine = init_engine_from_url(url, pool_size=10, max_overflow=10, pool_timeout=30)
    if is_postgres():
        drop_tables()
    create_all_tables()
    register_all_listeners()
    yield engine
    if is_postgres():
        drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """A session on the fresh database.  Module services commit through it."""
    s = get_session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def session_factory(db_engine):
    """Session factory for tests that need one session per thread."""
    return get_session_factory()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def test_actor() -> UserActor:
    return TEST_ACTOR


@pytest.fixture
def store_id():
    return uuid4()


# =============================================================================
# Seeding helpers
# =============================================================================


@pytest.fixture
def make_product(session, store_id, deterministic_clock):
    """
    Create a product, committed.

    ``stock`` is reached through an INITIAL_INTAKE movement so the ledger
    and the projection agree.  ``legacy_stock`` sets the column directly,
    like rows written before the ledger existed.
    """
    counter = iter(range(1, 10_000))

    def _make(
        stock: int = 0,
        name: str | None = None,
        sku: str | None = None,
        store=None,
        legacy_stock: int = 0,
        acq_price: Decimal | None = None,
    ) -> Product:
        n = next(counter)
        product = Product(
            store_id=store or store_id,
            name=name or f"Cuaderno {n}",
            sku=sku or f"SKU-{n:04d}",
            acq_price=acq_price,
            stock=legacy_stock,
            created_by="SYSTEM",
        )
        session.add(product)
        session.flush()
        if stock:
            StockLedger(session, deterministic_clock).record(
                product.id, stock, MovementType.INITIAL_INTAKE, "seed", TEST_ACTOR
            )
        session.commit()
        return product

    return _make


@pytest.fixture
def order_service(session, deterministic_clock) -> RestockOrderService:
    return RestockOrderService(session, clock=deterministic_clock)


@pytest.fixture
def make_order(order_service, store_id):
    """Create a restock order from (product, quantity, cost) triples."""

    def _make(lines, supplier_id: str | None = "SUP-001", place: bool = True, store=None):
        items = [
            NewRestockItem(product_id=p.id, quantity=q, cost=Decimal(str(c)))
            for p, q, c in lines
        ]
        return order_service.create_order(
            store_id=store or store_id,
            items=items,
            actor=TEST_ACTOR,
            supplier_id=supplier_id,
            place=place,
        )

    return _make
