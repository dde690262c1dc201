"""Read-only query selectors."""

from stock_kernel.selectors.item_selector import ItemSelector, LowStockItem
from stock_kernel.selectors.movement_selector import (
    ConservationReport,
    MovementSelector,
)

__all__ = [
    "ConservationReport",
    "ItemSelector",
    "LowStockItem",
    "MovementSelector",
]
