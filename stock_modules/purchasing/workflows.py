"""
Purchase workflow.

Purchases record goods received from a supplier.  Stock comes in at
creation, whatever the payment status; cancelling takes it back out.
"""

from enum import Enum

from stock_kernel.domain.workflow import Guard, StockEffect, Transition, Workflow
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.purchasing.workflows")


class PurchaseStatus(str, Enum):
    EN_ATTENTE = "EN_ATTENTE"
    PAYEE = "PAYEE"
    ANNULEE = "ANNULEE"


STOCK_STILL_ON_HAND = Guard(
    name="stock_still_on_hand",
    description="Every received quantity is still in stock and can be reversed",
)

PURCHASE_WORKFLOW = Workflow(
    name="purchase",
    description="Supplier purchase: received goods, payment, cancellation",
    initial_state=PurchaseStatus.PAYEE.value,
    states=tuple(s.value for s in PurchaseStatus),
    transitions=(
        Transition("EN_ATTENTE", "PAYEE", action="pay"),
        Transition(
            "EN_ATTENTE",
            "ANNULEE",
            action="cancel",
            guard=STOCK_STILL_ON_HAND,
            stock_effect=StockEffect.REVERSE_INBOUND,
        ),
        Transition(
            "PAYEE",
            "ANNULEE",
            action="cancel",
            guard=STOCK_STILL_ON_HAND,
            stock_effect=StockEffect.REVERSE_INBOUND,
        ),
    ),
    terminal_states=("ANNULEE",),
    initial_states=("EN_ATTENTE", "PAYEE"),
    deletable_states=("EN_ATTENTE", "PAYEE"),
)

logger.debug(
    "purchase_workflow_defined",
    extra={"states": PURCHASE_WORKFLOW.states},
)
