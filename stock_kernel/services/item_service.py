"""
ItemService -- catalog items and manual stock adjustments.

Responsibility:
    Creates and deactivates items and records manual movements.  Opening
    stock is not written on the item row: it is an ADJUSTMENT movement
    through the Stock Ledger, so the conservation invariant holds from the
    first movement on.

Invariants enforced:
    - Each public method owns its transaction (UnitOfWork).
    - Manual OUTBOUND and TRANSFER movements refuse to go below zero, like
      the sale path; every other kind accepts any resulting quantity.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.item import Item
from stock_kernel.models.movement import MovementKind, StockMovement
from stock_kernel.services.activity_service import ActivitySink
from stock_kernel.services.tenant_guard import TenantContext
from stock_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("services.item")

_NO_NEGATIVE = frozenset({MovementKind.OUTBOUND, MovementKind.TRANSFER})


class ItemService:
    """Item lifecycle and manual stock movements."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        activity_sink: ActivitySink | None = None,
    ):
        self._session = session
        self._uow = UnitOfWork(session, clock, activity_sink)

    def create_item(
        self,
        ctx: TenantContext,
        reference: str,
        name: str,
        sale_price: Decimal,
        cost_price: Decimal | None = None,
        reorder_threshold: int = 0,
        opening_quantity: int = 0,
    ) -> Item:
        reference = (reference or "").strip()
        if not reference:
            raise ValidationError("reference is required", field="reference")
        if not name or not name.strip():
            raise ValidationError("name is required", field="name")
        sale_price = Decimal(sale_price)
        if sale_price < 0:
            raise ValidationError("sale_price cannot be negative", field="sale_price")
        if cost_price is not None and Decimal(cost_price) < 0:
            raise ValidationError("cost_price cannot be negative", field="cost_price")
        if reorder_threshold < 0:
            raise ValidationError(
                "reorder_threshold cannot be negative", field="reorder_threshold"
            )
        if opening_quantity < 0:
            raise ValidationError(
                "opening_quantity cannot be negative", field="opening_quantity"
            )

        with self._uow.begin(ctx, "create_item") as uow:
            existing = self._session.execute(
                select(Item.id).where(
                    Item.tenant_id == ctx.tenant_id, Item.reference == reference
                )
            ).scalar_one_or_none()
            if existing is not None:
                raise ValidationError(
                    f"reference {reference} already exists", field="reference"
                )

            item = Item(
                tenant_id=ctx.tenant_id,
                reference=reference,
                name=name.strip(),
                sale_price=sale_price,
                cost_price=Decimal(cost_price) if cost_price is not None else None,
                reorder_threshold=reorder_threshold,
                created_by_id=ctx.actor_id,
            )
            self._session.add(item)
            self._session.flush()
            uow.record("create", "Item", item.id, f"Item {reference} created")

            if opening_quantity:
                uow.move_stock(
                    item,
                    MovementKind.ADJUSTMENT,
                    opening_quantity,
                    "Opening stock",
                    reference,
                )

        logger.info(
            "item_created",
            extra={"item_id": str(item.id), "reference": reference},
        )
        return item

    def deactivate_item(self, ctx: TenantContext, item_id: UUID) -> Item:
        """Remove the item from snapshots and low-stock lists; history stays."""
        with self._uow.begin(ctx, "deactivate_item") as uow:
            item = uow.guard.get_owned(Item, item_id, ctx.tenant_id)
            item.is_active = False
            item.updated_by_id = ctx.actor_id
            uow.record("deactivate", "Item", item.id, f"Item {item.reference} deactivated")
        return item

    def adjust_stock(
        self,
        ctx: TenantContext,
        item_id: UUID,
        kind: MovementKind | str,
        quantity_delta: int,
        reason: str,
        reference: str | None = None,
    ) -> StockMovement:
        """
        Record one manual movement.

        Raises:
            ValidationError: empty reason.
            MovementSignError: delta does not fit ``kind``.
            InsufficientStockError: OUTBOUND/TRANSFER below zero.
        """
        kind = MovementKind(kind)
        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")

        with self._uow.begin(ctx, "adjust_stock") as uow:
            movement = uow.move_stock(
                item_id,
                kind,
                quantity_delta,
                reason.strip(),
                reference,
                allow_negative=kind not in _NO_NEGATIVE,
            )
        return movement
