"""
Module: stock_kernel.selectors.movement_selector
Responsibility: Read access to the movement history and verification of
    the conservation invariant.

Conservation invariant:
    For every item, the sum of all movement deltas equals the current
    quantity-on-hand (items start at zero).  The movement chain is also
    contiguous: each movement's ``quantity_before`` is the previous
    movement's ``quantity_after`` and ``item_version`` runs 1..n.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.models.item import Item
from stock_kernel.models.movement import MovementKind, MovementRecord, StockMovement
from stock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ConservationReport:
    item_id: UUID
    quantity_on_hand: int
    movement_total: int
    movement_count: int
    chain_breaks: tuple[int, ...] = ()

    @property
    def holds(self) -> bool:
        return (
            self.quantity_on_hand == self.movement_total
            and not self.chain_breaks
        )


class MovementSelector(BaseSelector):
    """Queries over ``stock_movements``; every method filters on tenant."""

    def list_movements(
        self,
        tenant_id: UUID,
        item_id: UUID | None = None,
        kind: MovementKind | str | None = None,
        limit: int | None = None,
        document_ref: str | None = None,
    ) -> list[MovementRecord]:
        """Newest first."""
        stmt = select(StockMovement).where(StockMovement.tenant_id == tenant_id)
        if item_id is not None:
            stmt = stmt.where(StockMovement.item_id == item_id)
        if kind is not None:
            stmt = stmt.where(StockMovement.kind == MovementKind(kind).value)
        if document_ref is not None:
            stmt = stmt.where(StockMovement.document_ref == document_ref)
        stmt = stmt.order_by(
            StockMovement.created_at.desc(), StockMovement.item_version.desc()
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def get_movement(self, tenant_id: UUID, movement_id: UUID) -> MovementRecord | None:
        movement = self.session.execute(
            select(StockMovement).where(
                StockMovement.tenant_id == tenant_id,
                StockMovement.id == movement_id,
            )
        ).scalar_one_or_none()
        return movement.to_dto() if movement is not None else None

    def count_for_document(self, tenant_id: UUID, document_ref: str) -> int:
        return self.session.execute(
            select(func.count(StockMovement.id)).where(
                StockMovement.tenant_id == tenant_id,
                StockMovement.document_ref == document_ref,
            )
        ).scalar_one()

    def verify_conservation(self, tenant_id: UUID, item_id: UUID) -> ConservationReport:
        quantity = self.session.execute(
            select(Item.quantity_on_hand).where(
                Item.tenant_id == tenant_id, Item.id == item_id
            )
        ).scalar_one()

        chain = self.session.execute(
            select(
                StockMovement.item_version,
                StockMovement.quantity_before,
                StockMovement.quantity_delta,
                StockMovement.quantity_after,
            )
            .where(
                StockMovement.tenant_id == tenant_id,
                StockMovement.item_id == item_id,
            )
            .order_by(StockMovement.item_version)
        ).all()

        breaks: list[int] = []
        expected_before = 0
        total = 0
        for position, (version, before, delta, after) in enumerate(chain, start=1):
            if version != position or before != expected_before:
                breaks.append(version)
            expected_before = after
            total += delta

        return ConservationReport(
            item_id=item_id,
            quantity_on_hand=quantity,
            movement_total=total,
            movement_count=len(chain),
            chain_breaks=tuple(breaks),
        )
