"""
BOM Workflows.

Lifecycle of a bill of materials.
"""

from erp_kernel.domain.workflow import Guard, Transition, Workflow
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.bom.workflows")


HAS_MATERIALS = Guard(
    name="has_materials",
    description="The BOM lists at least one material",
)


BOM_WORKFLOW = Workflow(
    name="bill_of_materials",
    description="Bill of materials lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "approved",
        "inactive",
    ),
    transitions=(
        Transition("draft", "approved", action="approve", guard=HAS_MATERIALS),
        Transition("approved", "inactive", action="deactivate"),
    ),
    terminal_states=("inactive",),
)

logger.info(
    "bom_workflow_registered",
    extra={
        "workflow_name": BOM_WORKFLOW.name,
        "state_count": len(BOM_WORKFLOW.states),
        "transition_count": len(BOM_WORKFLOW.transitions),
        "initial_state": BOM_WORKFLOW.initial_state,
    },
)
