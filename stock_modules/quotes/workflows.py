"""
Quote workflow.

Quotes never move stock.  An accepted quote is converted once into a
draft invoice; the invoice's own issue transition moves the stock.
"""

from enum import Enum

from stock_kernel.domain.workflow import Guard, Transition, Workflow
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.quotes.workflows")


class QuoteStatus(str, Enum):
    BROUILLON = "BROUILLON"
    ENVOYE = "ENVOYE"
    ACCEPTE = "ACCEPTE"
    REFUSE = "REFUSE"
    EXPIRE = "EXPIRE"


OPEN_STATUSES = frozenset({QuoteStatus.BROUILLON.value, QuoteStatus.ENVOYE.value})

QUOTE_STILL_VALID = Guard(
    name="quote_still_valid",
    description="The quote's validity date has not passed",
)

QUOTE_WORKFLOW = Workflow(
    name="quote",
    description="Customer quote: draft, sent, decided or expired",
    initial_state=QuoteStatus.BROUILLON.value,
    states=tuple(s.value for s in QuoteStatus),
    transitions=(
        Transition("BROUILLON", "ENVOYE", action="send"),
        Transition("ENVOYE", "ACCEPTE", action="accept", guard=QUOTE_STILL_VALID),
        Transition("ENVOYE", "REFUSE", action="refuse"),
        Transition("BROUILLON", "EXPIRE", action="expire"),
        Transition("ENVOYE", "EXPIRE", action="expire"),
    ),
    terminal_states=("ACCEPTE", "REFUSE", "EXPIRE"),
    initial_states=("BROUILLON",),
    deletable_states=("BROUILLON",),
)

logger.debug(
    "quote_workflow_defined",
    extra={"states": QUOTE_WORKFLOW.states},
)
