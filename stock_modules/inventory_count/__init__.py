"""
Inventory Count Module (``stock_modules.inventory_count``).

Physical counts.  A session snapshots the theoretical quantities, lines
are counted freely while it is open, and validation corrects stock by
each counted line's variance.  The operations live on
``stock_modules.inventory_count.service.InventoryService``.
"""

from stock_modules.inventory_count.orm import InventoryLine, InventorySession
from stock_modules.inventory_count.workflows import (
    FINAL_STATUSES,
    INVENTORY_WORKFLOW,
    InventoryStatus,
)

__all__ = [
    "FINAL_STATUSES",
    "INVENTORY_WORKFLOW",
    "InventoryLine",
    "InventorySession",
    "InventoryStatus",
]
