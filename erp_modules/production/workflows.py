"""
Production Workflows.

State machine for production orders.
"""

from erp_kernel.domain.workflow import Guard, Transition, Workflow
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.production.workflows")


MATERIALS_AVAILABLE = Guard(
    name="materials_available",
    description="Every planned material can be exported from its warehouse",
)


PRODUCTION_ORDER_WORKFLOW = Workflow(
    name="production_order",
    description="Production order processing",
    initial_state="pending",
    states=(
        "pending",
        "in_progress",
        "completed",
        "cancelled",
    ),
    transitions=(
        Transition("pending", "in_progress", action="start", guard=MATERIALS_AVAILABLE, moves_stock=True),
        Transition("in_progress", "completed", action="complete", moves_stock=True),
        Transition("pending", "cancelled", action="cancel"),
        Transition("in_progress", "cancelled", action="cancel", moves_stock=True),  # material rollback
    ),
    terminal_states=("completed", "cancelled"),
)

logger.info(
    "production_order_workflow_registered",
    extra={
        "workflow_name": PRODUCTION_ORDER_WORKFLOW.name,
        "state_count": len(PRODUCTION_ORDER_WORKFLOW.states),
        "transition_count": len(PRODUCTION_ORDER_WORKFLOW.transitions),
        "initial_state": PRODUCTION_ORDER_WORKFLOW.initial_state,
    },
)
