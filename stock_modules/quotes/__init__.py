"""
Quotes Module (``stock_modules.quotes``).

Customer quotes.  No stock effect; an accepted quote converts once into a
draft invoice.  The operations live on
``stock_modules.quotes.service.QuoteService``.
"""

from stock_modules.quotes.orm import Quote, QuoteLine
from stock_modules.quotes.workflows import OPEN_STATUSES, QUOTE_WORKFLOW, QuoteStatus

__all__ = [
    "OPEN_STATUSES",
    "QUOTE_WORKFLOW",
    "Quote",
    "QuoteLine",
    "QuoteStatus",
]
