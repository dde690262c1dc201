"""
Invoice workflow.

A draft (BROUILLON) invoice is a plain document: it holds no stock.
Issuing it (any status out of BROUILLON except ANNULEE) sells the goods,
so the stock leaves with the issuing transition, or at creation when the
invoice is created directly in an issued status.  Cancelling an issued
invoice brings the goods back.
"""

from enum import Enum

from stock_kernel.domain.workflow import Guard, StockEffect, Transition, Workflow
from stock_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.workflows")


class InvoiceStatus(str, Enum):
    BROUILLON = "BROUILLON"
    EN_ATTENTE = "EN_ATTENTE"
    PARTIELLEMENT_PAYEE = "PARTIELLEMENT_PAYEE"
    PAYEE = "PAYEE"
    ANNULEE = "ANNULEE"


ISSUED_STATUSES = frozenset(
    {
        InvoiceStatus.EN_ATTENTE.value,
        InvoiceStatus.PARTIELLEMENT_PAYEE.value,
        InvoiceStatus.PAYEE.value,
    }
)

# Issued and not yet fully paid: record_payment applies.
PAYABLE_STATUSES = frozenset(
    {
        InvoiceStatus.EN_ATTENTE.value,
        InvoiceStatus.PARTIELLEMENT_PAYEE.value,
    }
)

STOCK_AVAILABLE = Guard(
    name="stock_available",
    description="Every stocked line's quantity is on hand",
)

NO_VALIDATED_CREDIT_NOTE = Guard(
    name="no_validated_credit_note",
    description="No validated credit note has already returned the goods",
)


def _issue(to_state: str) -> Transition:
    return Transition(
        "BROUILLON",
        to_state,
        action="issue",
        guard=STOCK_AVAILABLE,
        stock_effect=StockEffect.OUTBOUND,
    )


def _cancel(from_state: str) -> Transition:
    return Transition(
        from_state,
        "ANNULEE",
        action="cancel",
        guard=NO_VALIDATED_CREDIT_NOTE,
        stock_effect=StockEffect.RETURN,
    )


INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Customer invoice: draft, issue, payment, cancellation",
    initial_state=InvoiceStatus.EN_ATTENTE.value,
    states=tuple(s.value for s in InvoiceStatus),
    transitions=(
        _issue("EN_ATTENTE"),
        _issue("PARTIELLEMENT_PAYEE"),
        _issue("PAYEE"),
        Transition("BROUILLON", "ANNULEE", action="discard"),
        Transition("EN_ATTENTE", "PARTIELLEMENT_PAYEE", action="record_payment"),
        Transition("EN_ATTENTE", "PAYEE", action="record_payment"),
        Transition("PARTIELLEMENT_PAYEE", "PAYEE", action="record_payment"),
        _cancel("EN_ATTENTE"),
        _cancel("PARTIELLEMENT_PAYEE"),
        _cancel("PAYEE"),
    ),
    terminal_states=("ANNULEE",),
    initial_states=("BROUILLON", "EN_ATTENTE", "PARTIELLEMENT_PAYEE", "PAYEE"),
    deletable_states=("BROUILLON",),
)

logger.debug(
    "invoice_workflow_defined",
    extra={"states": INVOICE_WORKFLOW.states},
)
