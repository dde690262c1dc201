"""
Invoicing Module (``stock_modules.invoicing``).

Customer invoices, the sale path: issuing an invoice takes its catalog
lines out of stock, cancelling it brings them back.  The operations live
on ``stock_modules.invoicing.service.InvoiceService``.
"""

from stock_modules.invoicing.orm import Invoice, InvoiceLine
from stock_modules.invoicing.workflows import (
    INVOICE_WORKFLOW,
    ISSUED_STATUSES,
    InvoiceStatus,
)

__all__ = [
    "INVOICE_WORKFLOW",
    "ISSUED_STATUSES",
    "Invoice",
    "InvoiceLine",
    "InvoiceStatus",
]
