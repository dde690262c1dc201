"""
Inventory session workflow.

Counting happens while the session is EN_COURS and never touches stock.
Validation writes one INVENTORY_CORRECTION movement per counted line with
a non-zero variance; cancellation has no effect on stock.
"""

from enum import Enum

from stock_kernel.domain.workflow import Guard, StockEffect, Transition, Workflow
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.inventory_count.workflows")


class InventoryStatus(str, Enum):
    EN_COURS = "EN_COURS"
    VALIDE = "VALIDE"
    ANNULE = "ANNULE"


FINAL_STATUSES = frozenset({InventoryStatus.VALIDE.value, InventoryStatus.ANNULE.value})

SOMETHING_COUNTED = Guard(
    name="something_counted",
    description="At least one line carries a physical count",
)

INVENTORY_WORKFLOW = Workflow(
    name="inventory",
    description="Physical count: counting, then validated or cancelled",
    initial_state=InventoryStatus.EN_COURS.value,
    states=tuple(s.value for s in InventoryStatus),
    transitions=(
        Transition(
            "EN_COURS",
            "VALIDE",
            action="validate",
            guard=SOMETHING_COUNTED,
            stock_effect=StockEffect.INVENTORY_CORRECTION,
        ),
        Transition("EN_COURS", "ANNULE", action="cancel"),
    ),
    terminal_states=("VALIDE", "ANNULE"),
    initial_states=("EN_COURS",),
    deletable_states=("EN_COURS",),
)

logger.debug(
    "inventory_workflow_defined",
    extra={"states": INVENTORY_WORKFLOW.states},
)
