"""
Restock order state machine and status derivation.
"""

import pytest

from inventory_kernel.domain.workflow import Transition, Workflow
from inventory_kernel.exceptions import IllegalTransitionError
from inventory_modules.restock.models import RestockStatus
from inventory_modules.restock.workflows import (
    HAS_ITEMS,
    RESTOCK_ORDER_WORKFLOW,
    SUPPLIER_SET,
    assert_transition,
    derive_status,
    is_terminal,
    line_progress,
)

S = RestockStatus


class TestTransitionTable:

    @pytest.mark.parametrize(
        "src,dst",
        [
            (S.DRAFT, S.ORDERED),
            (S.ORDERED, S.PARTIALLY_RECEIVED),
            (S.ORDERED, S.COMPLETED),
            (S.PARTIALLY_RECEIVED, S.COMPLETED),
            (S.DRAFT, S.CANCELLED),
            (S.ORDERED, S.CANCELLED),
            (S.PARTIALLY_RECEIVED, S.CANCELLED),
        ],
    )
    def test_allowed(self, src, dst):
        assert assert_transition(src, dst) is not None

    @pytest.mark.parametrize(
        "src,dst",
        [
            (S.DRAFT, S.COMPLETED),
            (S.DRAFT, S.PARTIALLY_RECEIVED),
            (S.PARTIALLY_RECEIVED, S.ORDERED),
            (S.ORDERED, S.DRAFT),
            (S.COMPLETED, S.CANCELLED),
            (S.COMPLETED, S.ORDERED),
            (S.CANCELLED, S.ORDERED),
            (S.CANCELLED, S.DRAFT),
        ],
    )
    def test_rejected(self, src, dst):
        with pytest.raises(IllegalTransitionError) as exc_info:
            assert_transition(src, dst, "order-1")
        assert exc_info.value.from_status == src.value
        assert exc_info.value.to_status == dst.value
        assert exc_info.value.entity_id == "order-1"

    def test_same_state_is_not_a_transition(self):
        assert assert_transition(S.PARTIALLY_RECEIVED, S.PARTIALLY_RECEIVED) is None

    def test_receiving_transitions_are_computed(self):
        for t in RESTOCK_ORDER_WORKFLOW.transitions:
            assert t.computed == (t.action == "receive")

    def test_terminal_states(self):
        assert is_terminal(S.COMPLETED)
        assert is_terminal("CANCELLED")
        assert not is_terminal(S.ORDERED)
        assert RESTOCK_ORDER_WORKFLOW.actions_from("COMPLETED") == ()

    def test_actions_from_ordered(self):
        assert RESTOCK_ORDER_WORKFLOW.actions_from("ORDERED") == ("receive", "cancel")

    def test_place_carries_both_guards(self):
        place = RESTOCK_ORDER_WORKFLOW.find(S.DRAFT.value, S.ORDERED.value)
        assert place.guards == (HAS_ITEMS, SUPPLIER_SET)

    def test_other_transitions_are_unguarded(self):
        others = [t for t in RESTOCK_ORDER_WORKFLOW.transitions if t.action != "place"]
        assert all(t.guards == () for t in others)


class TestWorkflowValidation:

    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="bad",
                description="",
                initial_state="A",
                states=("A",),
                transitions=(Transition("A", "B", action="go"),),
            )

    def test_transition_out_of_terminal_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="bad",
                description="",
                initial_state="A",
                states=("A", "B"),
                transitions=(Transition("B", "A", action="reopen"),),
                terminal_states=("B",),
            )


class TestDeriveStatus:

    def test_nothing_received(self):
        assert derive_status([(20, 0), (5, 0)]) is S.ORDERED

    def test_some_received(self):
        assert derive_status([(20, 8), (5, 0)]) is S.PARTIALLY_RECEIVED

    def test_all_satisfied(self):
        assert derive_status([(20, 20), (5, 5)]) is S.COMPLETED

    def test_over_receipt_counts_as_satisfied(self):
        assert derive_status([(20, 25), (5, 5)]) is S.COMPLETED

    def test_over_receipt_on_one_line_does_not_complete_the_order(self):
        assert derive_status([(20, 25), (5, 0)]) is S.PARTIALLY_RECEIVED

    def test_no_lines(self):
        assert derive_status([]) is S.ORDERED

    def test_accepts_generator(self):
        assert derive_status((q, q) for q in (1, 2, 3)) is S.COMPLETED


class TestLineProgress:

    def test_partial(self):
        p = line_progress(20, 8)
        assert (p.remaining, p.percent_received, p.satisfied, p.over_received) == (12, 40, False, False)

    def test_over_received(self):
        p = line_progress(10, 12)
        assert p.remaining == 0
        assert p.percent_received == 100
        assert p.satisfied and p.over_received

    def test_zero_quantity_line(self):
        assert line_progress(0, 0).percent_received == 100
