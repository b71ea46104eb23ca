"""
Transfer Workflows.

State machine for warehouse transfers.
"""

from erp_kernel.domain.workflow import Guard, Transition, Workflow
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.transfer.workflows")


SOURCE_STOCK_AVAILABLE = Guard(
    name="source_stock_available",
    description="The source warehouse can reserve every line",
)


TRANSFER_WORKFLOW = Workflow(
    name="stock_transfer",
    description="Inter-warehouse stock transfer",
    initial_state="pending",
    states=(
        "pending",
        "in_transit",
        "completed",
        "cancelled",
    ),
    transitions=(
        Transition("pending", "in_transit", action="approve", guard=SOURCE_STOCK_AVAILABLE, moves_stock=True),
        Transition("in_transit", "completed", action="complete", moves_stock=True),
        Transition("pending", "cancelled", action="cancel"),
        Transition("in_transit", "cancelled", action="cancel", moves_stock=True),  # release reservations
    ),
    terminal_states=("completed", "cancelled"),
)

logger.info(
    "transfer_workflow_registered",
    extra={
        "workflow_name": TRANSFER_WORKFLOW.name,
        "state_count": len(TRANSFER_WORKFLOW.states),
        "transition_count": len(TRANSFER_WORKFLOW.transitions),
        "initial_state": TRANSFER_WORKFLOW.initial_state,
    },
)
