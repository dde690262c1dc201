"""Domain models for the stock kernel."""

from stock_kernel.models.activity import ActivityLogEntry
from stock_kernel.models.item import Item
from stock_kernel.models.movement import (
    MovementKind,
    MovementRecord,
    StockMovement,
)
from stock_kernel.models.tenant import Tenant


def import_kernel_models() -> None:
    """Import every kernel table, including ones declared beside services."""
    from stock_kernel.services import sequence_service  # noqa: F401


__all__ = [
    "ActivityLogEntry",
    "Item",
    "MovementKind",
    "MovementRecord",
    "StockMovement",
    "Tenant",
    "import_kernel_models",
]
