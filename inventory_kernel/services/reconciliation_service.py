"""
StockReconciliationService -- verify and repair the stock projection.

Responsibility:
    Product.stock is a cache of the ledger.  This service walks a product's
    movements in seq order, reports chain breaks, derives the stock the
    ledger implies, and (on request) rewrites Product.stock to match.

Architecture position:
    Kernel > Services.  Flush-only.  Used by scripts/reconcile_stock.py and
    by tests that assert the chain after concurrent or failed writes.

Invariants enforced:
    - Movements are never edited.  The only thing ``repair`` writes is
      Product.stock, under the STOCK_REPAIR_FLAG session marker that the
      immutability listener honours.

Audit relevance:
    Every repair is logged at WARNING with the before and after values and
    the actor that requested it.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.db.immutability import STOCK_REPAIR_FLAG
from inventory_kernel.domain.actor import Actor
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import Movement
from inventory_kernel.exceptions import ProductNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.product import Product
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.services.base import BaseService

logger = get_logger("services.reconciliation")


@dataclass(frozen=True)
class ChainBreak:
    """One place where the ledger contradicts itself."""

    seq: int
    kind: str  # "link" (previous_stock != predecessor new_stock) or "snapshot"
    expected: int
    actual: int


@dataclass(frozen=True)
class ReconciliationReport:
    product_id: UUID
    product_stock: int
    ledger_stock: int | None
    movement_count: int
    breaks: tuple[ChainBreak, ...]

    @property
    def chain_ok(self) -> bool:
        return not self.breaks

    @property
    def projection_ok(self) -> bool:
        """Product.stock agrees with the ledger (vacuously true with no ledger)."""
        return self.ledger_stock is None or self.ledger_stock == self.product_stock

    @property
    def consistent(self) -> bool:
        return self.chain_ok and self.projection_ok


@dataclass(frozen=True)
class StockRepair:
    product_id: UUID
    previous_stock: int
    repaired_stock: int


def check_chain(movements: list[Movement]) -> tuple[ChainBreak, ...]:
    """Chain breaks in an oldest-first list of one product's movements."""
    breaks: list[ChainBreak] = []
    prior: Movement | None = None
    for m in movements:
        if m.new_stock != m.previous_stock + m.quantity:
            breaks.append(
                ChainBreak(m.seq, "snapshot", m.previous_stock + m.quantity, m.new_stock)
            )
        if prior is not None and m.previous_stock != prior.new_stock:
            breaks.append(ChainBreak(m.seq, "link", prior.new_stock, m.previous_stock))
        prior = m
    return tuple(breaks)


class StockReconciliationService(BaseService[Product]):
    """
    Verify ledger chains and reconcile Product.stock against them.

    Non-goals:
        - Does NOT fix chain breaks.  A broken chain needs a human; the
          report says where.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._selector = MovementSelector(session)

    def _get_product(self, product_id: UUID) -> Product:
        product = self.session.get(Product, product_id, populate_existing=True)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _report(self, product: Product) -> ReconciliationReport:
        movements = self._selector.chain(product.id)
        ledger_stock = None
        if movements:
            ledger_stock = movements[0].previous_stock + sum(m.quantity for m in movements)
        return ReconciliationReport(
            product_id=product.id,
            product_stock=product.stock,
            ledger_stock=ledger_stock,
            movement_count=len(movements),
            breaks=check_chain(movements),
        )

    def verify(self, product_id: UUID) -> ReconciliationReport:
        """Check one product's chain and projection."""
        report = self._report(self._get_product(product_id))
        if not report.consistent:
            logger.warning(
                "stock_inconsistency_detected",
                extra={
                    "product_id": str(product_id),
                    "product_stock": report.product_stock,
                    "ledger_stock": report.ledger_stock,
                    "break_count": len(report.breaks),
                },
            )
        return report

    def verify_store(self, store_id: UUID) -> list[ReconciliationReport]:
        """Check every product of a store, ordered by product id."""
        product_ids = self.session.execute(
            select(Product.id).where(Product.store_id == store_id).order_by(Product.id)
        ).scalars().all()
        reports = [self.verify(pid) for pid in product_ids]
        logger.info(
            "store_verified",
            extra={
                "store_id": str(store_id),
                "product_count": len(reports),
                "inconsistent_count": sum(1 for r in reports if not r.consistent),
            },
        )
        return reports

    def repair(self, product_id: UUID, actor: Actor) -> StockRepair | None:
        """
        Set Product.stock to the ledger-derived value when they differ.

        Returns None when there is nothing to repair (no movements, or the
        projection already matches).
        """
        product = self.session.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))

        report = self._report(product)
        if report.projection_ok:
            return None

        previous = product.stock
        self.session.info[STOCK_REPAIR_FLAG] = True
        try:
            product.stock = report.ledger_stock
            self.session.flush()
        finally:
            self.session.info.pop(STOCK_REPAIR_FLAG, None)

        logger.warning(
            "stock_projection_repaired",
            extra={
                "product_id": str(product_id),
                "previous_stock": previous,
                "repaired_stock": report.ledger_stock,
                "actor": actor.tag,
            },
        )
        return StockRepair(product_id, previous, report.ledger_stock)
