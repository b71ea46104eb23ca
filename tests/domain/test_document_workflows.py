"""
Transition tables of the document workflows.

Pure: exercises ``Workflow.resolve`` against each module's table.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from erp_kernel.domain.workflow import Transition, Workflow
from erp_kernel.exceptions import IllegalTransitionError
from erp_modules.bom.workflows import BOM_WORKFLOW
from erp_modules.production.workflows import PRODUCTION_ORDER_WORKFLOW
from erp_modules.sales.workflows import SALES_ORDER_WORKFLOW
from erp_modules.transfer.workflows import TRANSFER_WORKFLOW

ALL_WORKFLOWS = [
    SALES_ORDER_WORKFLOW,
    BOM_WORKFLOW,
    PRODUCTION_ORDER_WORKFLOW,
    TRANSFER_WORKFLOW,
]


class TestSalesOrderTransitions:

    @pytest.mark.parametrize("state,action,target", [
        ("pending", "approve", "preparing"),
        ("preparing", "complete", "completed"),
        ("pending", "cancel", "cancelled"),
        ("preparing", "cancel", "cancelled"),
    ])
    def test_legal(self, state, action, target):
        assert SALES_ORDER_WORKFLOW.resolve(state, action).to_state == target

    @pytest.mark.parametrize("state,action", [
        ("pending", "complete"),
        ("completed", "cancel"),
        ("completed", "approve"),
        ("cancelled", "approve"),
        ("cancelled", "complete"),
    ])
    def test_illegal(self, state, action):
        with pytest.raises(IllegalTransitionError) as exc_info:
            SALES_ORDER_WORKFLOW.resolve(state, action, entity_id="order-1")
        assert exc_info.value.current_state == state
        assert exc_info.value.action == action

    @pytest.mark.parametrize("state,action", [
        ("preparing", "approve"),
        ("completed", "complete"),
        ("cancelled", "cancel"),
    ])
    def test_repeat_is_noop(self, state, action):
        assert SALES_ORDER_WORKFLOW.resolve(state, action) is None

    def test_approve_moves_stock_under_guard(self):
        transition = SALES_ORDER_WORKFLOW.transition_for("pending", "approve")
        assert transition.moves_stock
        assert transition.guard.name == "stock_exportable"


class TestProductionOrderTransitions:

    def test_happy_path(self):
        assert PRODUCTION_ORDER_WORKFLOW.resolve("pending", "start").to_state == "in_progress"
        assert PRODUCTION_ORDER_WORKFLOW.resolve("in_progress", "complete").to_state == "completed"

    def test_cannot_complete_pending(self):
        with pytest.raises(IllegalTransitionError):
            PRODUCTION_ORDER_WORKFLOW.resolve("pending", "complete")

    def test_cancel_from_in_progress_moves_stock(self):
        assert PRODUCTION_ORDER_WORKFLOW.transition_for("in_progress", "cancel").moves_stock
        assert not PRODUCTION_ORDER_WORKFLOW.transition_for("pending", "cancel").moves_stock


class TestBomTransitions:

    def test_approve_then_deactivate(self):
        assert BOM_WORKFLOW.resolve("draft", "approve").to_state == "approved"
        assert BOM_WORKFLOW.resolve("approved", "deactivate").to_state == "inactive"

    def test_draft_cannot_be_deactivated(self):
        with pytest.raises(IllegalTransitionError):
            BOM_WORKFLOW.resolve("draft", "deactivate")


class TestTransferTransitions:

    def test_happy_path(self):
        assert TRANSFER_WORKFLOW.resolve("pending", "approve").to_state == "in_transit"
        assert TRANSFER_WORKFLOW.resolve("in_transit", "complete").to_state == "completed"

    def test_completed_cannot_be_cancelled(self):
        with pytest.raises(IllegalTransitionError):
            TRANSFER_WORKFLOW.resolve("completed", "cancel")


class TestWorkflowDefinition:

    def test_undeclared_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a",),
                transitions=(Transition("a", "b", action="go"),),
            )

    def test_terminal_state_with_exit_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a", "b"),
                transitions=(Transition("a", "b", action="go"), Transition("b", "a", action="back")),
                terminal_states=("b",),
            )

    @pytest.mark.parametrize("workflow", ALL_WORKFLOWS, ids=lambda w: w.name)
    def test_terminal_states_have_no_exits(self, workflow):
        for t in workflow.transitions:
            assert t.from_state not in workflow.terminal_states


class TestWorkflowProperties:

    @settings(max_examples=100, deadline=None)
    @given(
        workflow=st.sampled_from(ALL_WORKFLOWS),
        actions=st.lists(st.sampled_from(["approve", "complete", "cancel", "start", "deactivate"]), max_size=12),
    )
    def test_random_action_sequences_stay_inside_the_table(self, workflow, actions):
        state = workflow.initial_state
        for action in actions:
            try:
                transition = workflow.resolve(state, action)
            except IllegalTransitionError:
                continue
            if transition is None:
                # Repeating an applied action never changes the state
                assert workflow.is_repeat(state, action)
                continue
            assert transition.from_state == state
            state = transition.to_state
            assert state in workflow.states

        if state in workflow.terminal_states:
            for action in workflow.actions:
                assert workflow.transition_for(state, action) is None
