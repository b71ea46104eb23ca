"""
Sales Workflows.

State machine for sales orders.
"""

from erp_kernel.domain.workflow import Guard, Transition, Workflow
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.sales.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

STOCK_EXPORTABLE = Guard(
    name="stock_exportable",
    description="Every line can be exported from its warehouse",
)


# -----------------------------------------------------------------------------
# Sales Order Workflow
# -----------------------------------------------------------------------------

SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order fulfillment",
    initial_state="pending",
    states=(
        "pending",
        "preparing",
        "completed",
        "cancelled",
    ),
    transitions=(
        Transition("pending", "preparing", action="approve", guard=STOCK_EXPORTABLE, moves_stock=True),
        Transition("preparing", "completed", action="complete"),
        Transition("pending", "cancelled", action="cancel", moves_stock=True),  # release reservations
        Transition("preparing", "cancelled", action="cancel", moves_stock=True),  # re-import exports
    ),
    terminal_states=("completed", "cancelled"),
)

logger.info(
    "sales_order_workflow_registered",
    extra={
        "workflow_name": SALES_ORDER_WORKFLOW.name,
        "state_count": len(SALES_ORDER_WORKFLOW.states),
        "transition_count": len(SALES_ORDER_WORKFLOW.transitions),
        "initial_state": SALES_ORDER_WORKFLOW.initial_state,
    },
)
