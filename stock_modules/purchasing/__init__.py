"""
Purchasing Module (``stock_modules.purchasing``).

Supplier purchases.  Stock comes in at creation, whatever the payment
status; cancelling takes it back out.  The operations live on
``stock_modules.purchasing.service.PurchaseService``.
"""

from stock_modules.purchasing.orm import Purchase, PurchaseLine
from stock_modules.purchasing.workflows import PURCHASE_WORKFLOW, PurchaseStatus

__all__ = [
    "PURCHASE_WORKFLOW",
    "Purchase",
    "PurchaseLine",
    "PurchaseStatus",
]
