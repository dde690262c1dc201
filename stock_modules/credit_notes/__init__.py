"""
Credit Notes Module (``stock_modules.credit_notes``).

Customer credit notes, optionally seeded from an invoice.  Validation
returns the flagged catalog lines to stock.  The operations live on
``stock_modules.credit_notes.service.CreditNoteService``.
"""

from stock_modules.credit_notes.orm import CreditNote, CreditNoteLine
from stock_modules.credit_notes.workflows import (
    CREDIT_NOTE_WORKFLOW,
    RETURNED_STATUSES,
    CreditNoteStatus,
)

__all__ = [
    "CREDIT_NOTE_WORKFLOW",
    "RETURNED_STATUSES",
    "CreditNote",
    "CreditNoteLine",
    "CreditNoteStatus",
]
