"""
Stock Modules.

Document families over the Stock Kernel.  Each family contains:
- ORM tables (header and lines)
- Workflow (the transition table, with the stock effect of each transition)
- Service (the operations, one transaction each)

Modules:
- purchasing: supplier purchases, stock in at creation
- invoicing: customer invoices, stock out when issued
- quotes: customer quotes, converted once into a draft invoice
- credit_notes: credit notes, flagged lines returned on validation
- inventory_count: physical counts, corrections on validation

Stock itself only ever moves through the kernel's Stock Ledger.
"""

from stock_modules import (
    credit_notes,
    inventory_count,
    invoicing,
    purchasing,
    quotes,
)

__all__ = [
    "credit_notes",
    "inventory_count",
    "invoicing",
    "purchasing",
    "quotes",
]
