"""
Tamper resistance of the stock ledger and of placed restock orders.

The ORM listeners must reject, at flush time:
- any update or delete of an inventory movement
- a Product.stock write with no matching movement
- edits to a restock order's lines or money fields once it left DRAFT
- status writes that are not in the restock workflow
- removal of a placed order or its lines
"""

from decimal import Decimal

import pytest
from sqlalchemy import select, text

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.models.inventory_movement import InventoryMovement
from inventory_modules.restock.models import ReceiveLine
from inventory_modules.restock.orm import RestockOrderItemModel, RestockOrderModel
from inventory_modules.restock.receiving import ReceivingProcessor


def _first_movement(session, product):
    return session.execute(
        select(InventoryMovement).where(InventoryMovement.product_id == product.id)
    ).scalars().first()


class TestLedgerImmutability:

    def test_movement_update_blocked(self, session, make_product):
        movement = _first_movement(session, make_product(stock=5))
        movement.reason = "rewritten"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "InventoryMovement"

    def test_movement_quantity_update_blocked(self, session, make_product):
        movement = _first_movement(session, make_product(stock=5))
        movement.quantity = 50
        movement.new_stock = 50
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_movement_delete_blocked(self, session, make_product):
        movement = _first_movement(session, make_product(stock=5))
        session.delete(movement)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_stock_written_without_movement_blocked(self, session, make_product, captured_logs):
        product = make_product(stock=5)
        product.stock = 500
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Product"
        assert any(
            r["message"] == "immutability_violation_blocked" and r.get("field") == "stock"
            for r in captured_logs()
        )

    def test_other_product_fields_editable(self, session, make_product):
        product = make_product(stock=5)
        product.name = "Cuaderno rayado"
        session.flush()


class TestRestockOrderImmutability:

    def _item(self, session, order):
        return session.get(RestockOrderItemModel, order.items[0].id)

    def test_item_quantity_frozen_after_placing(self, session, make_order, make_product):
        order = make_order([(make_product(), 10, 100)])
        item = self._item(session, order)
        item.quantity = 99
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "RestockOrderItem"

    def test_item_cost_frozen_after_placing(self, session, make_order, make_product):
        order = make_order([(make_product(), 10, 100)])
        item = self._item(session, order)
        item.cost = Decimal("1")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_item_editable_while_draft(self, session, make_order, make_product):
        order = make_order([(make_product(), 10, 100)], place=False)
        item = self._item(session, order)
        item.quantity = 12
        session.flush()

    def test_quantity_received_cannot_decrease(
        self, session, make_order, make_product, test_actor, deterministic_clock
    ):
        order = make_order([(make_product(), 10, 100)])
        ReceivingProcessor(session, clock=deterministic_clock).receive(
            order.id, [ReceiveLine(order.items[0].id, 6)], test_actor
        )
        item = self._item(session, order)
        item.quantity_received = 2
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_item_delete_blocked_after_placing(self, session, make_order, make_product):
        order = make_order([(make_product(), 10, 100)])
        session.delete(self._item(session, order))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_supplier_frozen_after_placing(self, session, make_order, make_product):
        order = make_order([(make_product(), 10, 100)])
        row = session.get(RestockOrderModel, order.id)
        row.supplier_id = "SUP-OTHER"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_notes_editable_after_placing(self, session, make_order, make_product):
        order = make_order([(make_product(), 10, 100)])
        row = session.get(RestockOrderModel, order.id)
        row.notes = "Confirmado por telefono"
        session.flush()

    def test_ordered_back_to_draft_blocked(self, session, make_order, make_product):
        order = make_order([(make_product(), 10, 100)])
        row = session.get(RestockOrderModel, order.id)
        row.status = "DRAFT"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_cancelled_cannot_reopen(self, session, make_order, make_product):
        order = make_order([(make_product(), 10, 100)])
        row = session.get(RestockOrderModel, order.id)
        row.status = "CANCELLED"
        session.flush()
        row.status = "ORDERED"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_placed_order_delete_blocked(self, session, make_order, make_product):
        order = make_order([(make_product(), 10, 100)])
        session.delete(session.get(RestockOrderModel, order.id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


@pytest.mark.postgres
class TestDatabaseTriggers:
    """Raw SQL bypasses the ORM; the triggers still refuse it."""

    def test_raw_movement_update_rejected(self, session, make_product):
        product = make_product(stock=5)
        with pytest.raises(Exception, match="IMMUTABILITY_VIOLATION"):
            session.execute(
                text("UPDATE inventory_movements SET quantity = 99 WHERE product_id = :pid"),
                {"pid": str(product.id)},
            )

    def test_raw_item_update_rejected(self, session, make_order, make_product):
        order = make_order([(make_product(), 10, 100)])
        with pytest.raises(Exception, match="IMMUTABILITY_VIOLATION"):
            session.execute(
                text("UPDATE restock_order_items SET quantity = 1 WHERE id = :iid"),
                {"iid": str(order.items[0].id)},
            )
