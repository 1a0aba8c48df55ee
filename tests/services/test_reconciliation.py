"""
Reconciliation: verify the ledger chain and repair the stock projection.
"""

from uuid import uuid4

import pytest
from sqlalchemy import update

from inventory_kernel.db.immutability import STOCK_REPAIR_FLAG
from inventory_kernel.domain.actor import SYSTEM
from inventory_kernel.domain.movement_types import MovementType
from inventory_kernel.exceptions import ProductNotFoundError
from inventory_kernel.models.product import Product
from inventory_kernel.services.reconciliation_service import (
    ChainBreak,
    StockReconciliationService,
    check_chain,
)
from inventory_kernel.services.stock_ledger import StockLedger


@pytest.fixture
def reconciler(session, deterministic_clock):
    return StockReconciliationService(session, deterministic_clock)


def _drift(session, product, value):
    """Write Product.stock behind the ledger's back, like a legacy client would."""
    session.execute(update(Product).where(Product.id == product.id).values(stock=value))
    session.commit()


class TestVerify:

    def test_consistent_product(self, session, reconciler, make_product, test_actor, deterministic_clock):
        product = make_product(stock=10)
        StockLedger(session, deterministic_clock).record(
            product.id, -3, MovementType.DAMAGE, None, test_actor
        )
        session.commit()

        report = reconciler.verify(product.id)

        assert report.consistent
        assert report.movement_count == 2
        assert report.ledger_stock == report.product_stock == 7

    def test_product_without_movements_is_vacuously_consistent(self, reconciler, make_product):
        product = make_product(legacy_stock=4)
        report = reconciler.verify(product.id)
        assert report.ledger_stock is None
        assert report.consistent

    def test_projection_drift_detected(self, session, reconciler, make_product, captured_logs):
        product = make_product(stock=10)
        _drift(session, product, 13)

        report = reconciler.verify(product.id)

        assert report.chain_ok
        assert not report.projection_ok
        assert (report.product_stock, report.ledger_stock) == (13, 10)
        assert any(r["message"] == "stock_inconsistency_detected" for r in captured_logs())

    def test_unknown_product(self, reconciler):
        with pytest.raises(ProductNotFoundError):
            reconciler.verify(uuid4())

    def test_verify_store_covers_only_that_store(self, reconciler, make_product, store_id):
        make_product(stock=1)
        make_product(stock=2)
        make_product(stock=3, store=uuid4())
        reports = reconciler.verify_store(store_id)
        assert len(reports) == 2
        assert all(r.consistent for r in reports)


class TestRepair:

    def test_repair_restores_ledger_value(self, session, reconciler, make_product, captured_logs):
        product = make_product(stock=10)
        _drift(session, product, 2)

        repair = reconciler.repair(product.id, SYSTEM)
        session.commit()

        assert (repair.previous_stock, repair.repaired_stock) == (2, 10)
        session.refresh(product)
        assert product.stock == 10
        assert reconciler.verify(product.id).consistent
        assert any(r["message"] == "stock_projection_repaired" for r in captured_logs())

    def test_nothing_to_repair(self, reconciler, make_product):
        product = make_product(stock=5)
        assert reconciler.repair(product.id, SYSTEM) is None

    def test_repair_flag_does_not_leak(self, session, reconciler, make_product):
        product = make_product(stock=5)
        _drift(session, product, 1)
        reconciler.repair(product.id, SYSTEM)
        assert STOCK_REPAIR_FLAG not in session.info


class TestCheckChain:

    def test_link_break(self, session, make_product, deterministic_clock, test_actor):
        product = make_product(stock=5)
        ledger = StockLedger(session, deterministic_clock)
        first = next(ledger.history(product.id))
        _drift(session, product, 8)
        second = ledger.record(product.id, 1, MovementType.RETURN, None, test_actor)

        breaks = check_chain([first, second])

        assert breaks == (ChainBreak(second.seq, "link", 5, 8),)
