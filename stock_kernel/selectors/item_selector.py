"""
ItemSelector -- read-only item queries.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from stock_kernel.models.item import Item
from stock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LowStockItem:
    item_id: UUID
    reference: str
    name: str
    quantity: int
    reorder_threshold: int

    @property
    def missing(self) -> int:
        return max(self.reorder_threshold - self.quantity, 0)


class ItemSelector(BaseSelector):
    """Queries over the tenant's catalog."""

    def get(self, tenant_id: UUID, item_id: UUID) -> Item | None:
        return self.session.execute(
            select(Item).where(Item.tenant_id == tenant_id, Item.id == item_id)
        ).scalar_one_or_none()

    def active_items(self, tenant_id: UUID) -> list[Item]:
        return list(
            self.session.execute(
                select(Item)
                .where(Item.tenant_id == tenant_id, Item.is_active.is_(True))
                .order_by(Item.reference)
            ).scalars()
        )

    def low_stock(self, tenant_id: UUID) -> list[LowStockItem]:
        """Active items whose quantity is at or below their reorder threshold."""
        rows = self.session.execute(
            select(Item)
            .where(
                Item.tenant_id == tenant_id,
                Item.is_active.is_(True),
                Item.quantity_on_hand <= Item.reorder_threshold,
            )
            .order_by(Item.quantity_on_hand, Item.reference)
        ).scalars()
        return [
            LowStockItem(
                item_id=item.id,
                reference=item.reference,
                name=item.name,
                quantity=item.quantity,
                reorder_threshold=item.reorder_threshold,
            )
            for item in rows
        ]
