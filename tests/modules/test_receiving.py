"""
Receiving goods against restock orders.

The reference scenario: 20 units ordered at 1000 each.  Receiving 8 leaves
the order PARTIALLY_RECEIVED with stock +8; receiving the remaining 12
completes it with stock +20 and two RESTOCK_RECEIVED movements.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.movement_types import MovementType
from inventory_kernel.exceptions import (
    InvalidInputError,
    InvalidOrderStateError,
    NoQuantitiesProvidedError,
    OverReceiptNotAllowedError,
    RestockOrderItemNotFoundError,
    RestockOrderNotFoundError,
)
from inventory_kernel.models.inventory_movement import InventoryMovement
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_modules.restock.config import RestockPolicy
from inventory_modules.restock.models import NewRestockItem, ReceiveLine, RestockStatus
from inventory_modules.restock.orm import RestockReceiptModel
from inventory_modules.restock.receiving import (
    ReceivingProcessor,
    landed_unit_cost,
    normalize_lines,
)
from inventory_modules.restock.service import RestockOrderService


@pytest.fixture
def processor(session, deterministic_clock):
    return ReceivingProcessor(session, clock=deterministic_clock)


def _restock_movements(session, order):
    return (
        session.query(InventoryMovement)
        .filter_by(reference_id=str(order.id), type=MovementType.RESTOCK_RECEIVED.value)
        .all()
    )


class TestReceivingFlow:

    def test_partial_then_complete(self, session, processor, make_order, make_product, test_actor):
        product = make_product()
        order = make_order([(product, 20, 1000)])
        item_id = order.items[0].id

        first = processor.receive(order.id, [ReceiveLine(item_id, 8)], test_actor)

        assert first.order.status is RestockStatus.PARTIALLY_RECEIVED
        assert first.order.items[0].quantity_received == 8
        assert first.order.items[0].progress.percent_received == 40
        session.refresh(product)
        assert product.stock == 8

        second = processor.receive(order.id, [ReceiveLine(item_id, 12)], test_actor)

        assert second.order.status is RestockStatus.COMPLETED
        session.refresh(product)
        assert product.stock == 20
        movements = _restock_movements(session, order)
        assert sorted(m.quantity for m in movements) == [8, 12]

    def test_movement_fields(self, processor, make_order, make_product, test_actor):
        product = make_product(stock=3)
        order = make_order([(product, 5, 1200)])

        result = processor.receive(order.id, [ReceiveLine(order.items[0].id, 5)], test_actor)

        movement = result.movements[0]
        assert movement.type is MovementType.RESTOCK_RECEIVED
        assert (movement.previous_stock, movement.new_stock) == (3, 8)
        assert movement.reason == order.order_number
        assert movement.reference_id == str(order.id)
        assert movement.cost == Decimal("1200")
        assert movement.created_by == test_actor.tag
        line = result.lines[0]
        assert (line.quantity, line.quantity_ordered, line.quantity_received) == (5, 5, 5)
        assert line.movement_id == movement.id

    def test_several_lines_in_one_call(self, session, processor, make_order, make_product, test_actor):
        a, b = make_product(), make_product()
        order = make_order([(a, 4, 10), (b, 6, 20)])
        by_product = {i.product_id: i.id for i in order.items}

        result = processor.receive(
            order.id,
            [ReceiveLine(by_product[a.id], 4), ReceiveLine(by_product[b.id], 2)],
            test_actor,
        )

        assert result.order.status is RestockStatus.PARTIALLY_RECEIVED
        assert len(result.movements) == 2
        assert result.order.units_received == 6

    def test_zero_lines_are_ignored(self, processor, make_order, make_product, test_actor):
        a, b = make_product(), make_product()
        order = make_order([(a, 4, 10), (b, 6, 20)])
        by_product = {i.product_id: i.id for i in order.items}

        result = processor.receive(
            order.id,
            [ReceiveLine(by_product[a.id], 0), ReceiveLine(by_product[b.id], 6)],
            test_actor,
        )

        assert len(result.movements) == 1
        assert result.movements[0].product_id == b.id

    def test_cost_override_for_one_delivery(self, processor, make_order, make_product, test_actor):
        order = make_order([(make_product(), 10, 1000)])
        item_id = order.items[0].id

        result = processor.receive(
            order.id, [ReceiveLine(item_id, 5, cost=Decimal("1100"))], test_actor
        )

        assert result.movements[0].cost == Decimal("1100")
        assert result.order.items[0].cost == Decimal("1000")

    def test_receipt_row_written(self, session, processor, make_order, make_product, test_actor):
        order = make_order([(make_product(), 10, 1000)])
        processor.receive(
            order.id, [ReceiveLine(order.items[0].id, 3)], test_actor, idempotency_key="dlv-1"
        )
        receipt = session.query(RestockReceiptModel).one()
        assert receipt.to_dto()["units_received"] == 3
        assert receipt.idempotency_key == "dlv-1"


class TestRejections:

    def test_all_zero(self, session, processor, make_order, make_product, test_actor):
        order = make_order([(make_product(), 10, 1000)])
        with pytest.raises(NoQuantitiesProvidedError):
            processor.receive(order.id, [ReceiveLine(order.items[0].id, 0)], test_actor)
        assert _restock_movements(session, order) == []

    def test_empty_lines(self, processor, make_order, make_product, test_actor):
        order = make_order([(make_product(), 10, 1000)])
        with pytest.raises(NoQuantitiesProvidedError):
            processor.receive(order.id, [], test_actor)

    @pytest.mark.parametrize("quantity", [-1, 1.5, "2"])
    def test_bad_quantity(self, processor, make_order, make_product, test_actor, quantity):
        order = make_order([(make_product(), 10, 1000)])
        with pytest.raises(InvalidInputError):
            processor.receive(order.id, [ReceiveLine(order.items[0].id, quantity)], test_actor)

    def test_draft_order(self, session, processor, make_order, make_product, test_actor):
        order = make_order([(make_product(), 10, 1000)], place=False)
        with pytest.raises(InvalidOrderStateError) as exc_info:
            processor.receive(order.id, [ReceiveLine(order.items[0].id, 2)], test_actor)
        assert exc_info.value.status == "DRAFT"
        assert exc_info.value.action == "receive"
        assert _restock_movements(session, order) == []

    def test_cancelled_order(self, session, processor, order_service, make_order, make_product, test_actor):
        product = make_product()
        order = make_order([(product, 10, 1000)])
        order_service.cancel_order(order.id, test_actor)

        with pytest.raises(InvalidOrderStateError):
            processor.receive(order.id, [ReceiveLine(order.items[0].id, 2)], test_actor)

        session.refresh(product)
        assert product.stock == 0
        assert _restock_movements(session, order) == []

    def test_completed_order(self, session, processor, make_order, make_product, test_actor):
        product = make_product()
        order = make_order([(product, 2, 1000)])
        item_id = order.items[0].id
        processor.receive(order.id, [ReceiveLine(item_id, 2)], test_actor)

        with pytest.raises(InvalidOrderStateError) as exc_info:
            processor.receive(order.id, [ReceiveLine(item_id, 1)], test_actor)

        assert exc_info.value.status == "COMPLETED"
        assert [m.quantity for m in _restock_movements(session, order)] == [2]
        session.refresh(product)
        assert product.stock == 2

    def test_unknown_item(self, processor, make_order, make_product, test_actor):
        order = make_order([(make_product(), 2, 1000)])
        with pytest.raises(RestockOrderItemNotFoundError):
            processor.receive(order.id, [ReceiveLine(uuid4(), 1)], test_actor)

    def test_item_of_another_order(self, processor, make_order, make_product, test_actor):
        p = make_product()
        order = make_order([(p, 2, 1000)])
        other = make_order([(p, 2, 1000)])
        with pytest.raises(RestockOrderItemNotFoundError):
            processor.receive(order.id, [ReceiveLine(other.items[0].id, 1)], test_actor)

    def test_unknown_order(self, processor, test_actor):
        with pytest.raises(RestockOrderNotFoundError):
            processor.receive(uuid4(), [ReceiveLine(uuid4(), 1)], test_actor)

    def test_other_store(self, processor, make_order, make_product, test_actor):
        order = make_order([(make_product(), 2, 1000)])
        with pytest.raises(RestockOrderNotFoundError):
            processor.receive(
                order.id, [ReceiveLine(order.items[0].id, 1)], test_actor, store_id=uuid4()
            )


class TestOverReceipt:

    def test_accepted_and_flagged(self, session, processor, make_order, make_product, test_actor, captured_logs):
        product = make_product()
        order = make_order([(product, 10, 1000)])

        result = processor.receive(order.id, [ReceiveLine(order.items[0].id, 12)], test_actor)

        assert result.order.status is RestockStatus.COMPLETED
        assert len(result.over_received_lines) == 1
        assert result.order.items[0].progress.over_received
        assert result.order.items[0].progress.percent_received == 100
        session.refresh(product)
        assert product.stock == 12
        assert any(r["message"] == "over_receipt_accepted" for r in captured_logs())

    def test_rejected_when_policy_forbids(self, session, make_order, make_product, test_actor, deterministic_clock):
        product = make_product()
        order = make_order([(product, 10, 1000)])
        processor = ReceivingProcessor(
            session, policy=RestockPolicy(allow_over_receipt=False), clock=deterministic_clock
        )
        item_id = order.items[0].id
        processor.receive(order.id, [ReceiveLine(item_id, 7)], test_actor)

        with pytest.raises(OverReceiptNotAllowedError) as exc_info:
            processor.receive(order.id, [ReceiveLine(item_id, 4)], test_actor)

        assert (exc_info.value.ordered, exc_info.value.received) == (10, 11)
        session.refresh(product)
        assert product.stock == 7


class TestIdempotency:

    def test_replay_writes_nothing(self, session, processor, make_order, make_product, test_actor):
        product = make_product()
        order = make_order([(product, 20, 1000)])
        lines = [ReceiveLine(order.items[0].id, 8)]

        first = processor.receive(order.id, lines, test_actor, idempotency_key="k-1")
        again = processor.receive(order.id, lines, test_actor, idempotency_key="k-1")

        assert not first.replayed
        assert again.replayed
        assert again.movements == ()
        assert again.order.items[0].quantity_received == 8
        session.refresh(product)
        assert product.stock == 8

    def test_replay_after_completion(self, processor, make_order, make_product, test_actor):
        order = make_order([(make_product(), 5, 1000)])
        lines = [ReceiveLine(order.items[0].id, 5)]
        processor.receive(order.id, lines, test_actor, idempotency_key="k-2")

        again = processor.receive(order.id, lines, test_actor, idempotency_key="k-2")

        assert again.replayed
        assert again.order.status is RestockStatus.COMPLETED

    def test_different_keys_both_apply(self, processor, make_order, make_product, test_actor):
        order = make_order([(make_product(), 20, 1000)])
        lines = [ReceiveLine(order.items[0].id, 5)]
        processor.receive(order.id, lines, test_actor, idempotency_key="a")
        result = processor.receive(order.id, lines, test_actor, idempotency_key="b")
        assert result.order.units_received == 10

    def test_same_key_on_another_order_applies(self, processor, make_order, make_product, test_actor):
        p = make_product()
        first = make_order([(p, 5, 1)])
        second = make_order([(p, 5, 1)])
        processor.receive(first.id, [ReceiveLine(first.items[0].id, 1)], test_actor, idempotency_key="x")
        result = processor.receive(
            second.id, [ReceiveLine(second.items[0].id, 1)], test_actor, idempotency_key="x"
        )
        assert not result.replayed


class TestNormalizeLines:

    def test_duplicates_are_summed(self):
        item = uuid4()
        lines = normalize_lines([ReceiveLine(item, 3), ReceiveLine(item, 4)])
        assert lines == [ReceiveLine(item, 7)]

    def test_first_cost_override_wins(self):
        item = uuid4()
        lines = normalize_lines(
            [ReceiveLine(item, 1), ReceiveLine(item, 1, Decimal("5")), ReceiveLine(item, 1, Decimal("6"))]
        )
        assert lines == [ReceiveLine(item, 3, Decimal("5"))]

    def test_order_of_first_appearance(self):
        a, b = uuid4(), uuid4()
        lines = normalize_lines([ReceiveLine(b, 1), ReceiveLine(a, 1), ReceiveLine(b, 1)])
        assert [line.item_id for line in lines] == [b, a]

    def test_negative_cost(self):
        with pytest.raises(InvalidInputError):
            normalize_lines([ReceiveLine(uuid4(), 1, Decimal("-1"))])

    def test_duplicate_lines_make_one_movement(self, session, processor, make_order, make_product, test_actor):
        order = make_order([(make_product(), 20, 1000)])
        item_id = order.items[0].id
        result = processor.receive(
            order.id, [ReceiveLine(item_id, 3), ReceiveLine(item_id, 5)], test_actor
        )
        assert [m.quantity for m in result.movements] == [8]


class TestLandedCost:

    def test_formula(self):
        # 10% shipping on the order value adds 10% to each unit
        assert landed_unit_cost(Decimal("1000"), Decimal("2000"), Decimal("20000")) == Decimal("1100.0000")

    def test_zero_total(self):
        assert landed_unit_cost(Decimal("5"), Decimal("0"), Decimal("0")) == Decimal("5.0000")

    def test_applied_when_enabled(self, session, make_product, store_id, test_actor, deterministic_clock):
        policy = RestockPolicy(apply_landed_cost=True)
        order = RestockOrderService(session, policy, deterministic_clock).create_order(
            store_id,
            [NewRestockItem(make_product().id, 20, Decimal("1000"))],
            test_actor,
            supplier_id="SUP-1",
            shipping_cost=Decimal("2000"),
            place=True,
        )
        result = ReceivingProcessor(session, policy, deterministic_clock).receive(
            order.id, [ReceiveLine(order.items[0].id, 20)], test_actor
        )
        assert result.movements[0].cost == Decimal("1100.0000")
        assert MovementSelector(session).latest(order.items[0].product_id).cost == Decimal("1100")
