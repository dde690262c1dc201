"""
Credit note workflow.

Validation returns to stock every catalog line flagged ``return_to_stock``;
unflagged lines and free-text lines never touch stock.
"""

from enum import Enum

from stock_kernel.domain.workflow import StockEffect, Transition, Workflow
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.credit_notes.workflows")


class CreditNoteStatus(str, Enum):
    EN_ATTENTE = "EN_ATTENTE"
    VALIDE = "VALIDE"
    REMBOURSE = "REMBOURSE"


# Statuses in which the flagged lines have been returned to stock.
RETURNED_STATUSES = (CreditNoteStatus.VALIDE.value, CreditNoteStatus.REMBOURSE.value)

CREDIT_NOTE_WORKFLOW = Workflow(
    name="credit_note",
    description="Customer credit note: pending, validated, refunded",
    initial_state=CreditNoteStatus.EN_ATTENTE.value,
    states=tuple(s.value for s in CreditNoteStatus),
    transitions=(
        Transition(
            "EN_ATTENTE",
            "VALIDE",
            action="validate",
            stock_effect=StockEffect.RETURN,
        ),
        Transition("VALIDE", "REMBOURSE", action="refund"),
    ),
    terminal_states=("REMBOURSE",),
    initial_states=("EN_ATTENTE",),
    deletable_states=("EN_ATTENTE",),
)

logger.debug(
    "credit_note_workflow_defined",
    extra={"states": CREDIT_NOTE_WORKFLOW.states},
)
