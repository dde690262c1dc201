"""
StockLedger -- the single choke point for quantity-on-hand changes.

Responsibility:
    Applies one signed quantity change to one Item: re-reads the item under
    a row lock, computes ``after = before + delta``, writes the new quantity
    under a ledger grant and appends exactly one immutable StockMovement
    carrying ``before``/``after``.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the item service and
    every document service, always inside their unit of work.

Invariants enforced:
    - Tenant match: ``item.tenant_id == tenant_id`` or CrossTenantAccessError.
      This is a programming error, not a business outcome.
    - Sign/kind agreement: INBOUND/RETURN > 0, OUTBOUND/TRANSFER < 0,
      zero deltas are rejected.  Mismatches raise MovementSignError; the
      sign is never flipped silently.
    - Serialized read-then-write: the item row is locked with
      ``SELECT ... FOR UPDATE`` (PostgreSQL) or under the write lock that
      ``begin_write`` takes at BEGIN IMMEDIATE (SQLite).  Two concurrent
      callers can never record the same ``before``; ``(item_id,
      item_version)`` is unique as a second line of defence.
    - One movement per call.  Never batched, never retried.

Non-goals:
    - Non-negativity is NOT enforced here unless the caller passes
      ``allow_negative=False``; the policy belongs to the document services.
    - Does NOT commit.
"""

from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_kernel.db.immutability import grant_quantity_write
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.exceptions import InsufficientStockError, MovementSignError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.item import Item
from stock_kernel.models.movement import (
    NEGATIVE_KINDS,
    POSITIVE_KINDS,
    MovementKind,
    StockMovement,
)
from stock_kernel.services.base import BaseService
from stock_kernel.services.tenant_guard import TenantGuard

logger = get_logger("services.stock_ledger")


@dataclass(frozen=True)
class StockRequirement:
    """Outbound quantity needed for one item by a document."""

    item_id: UUID
    quantity: int


def check_sign(kind: MovementKind, quantity_delta: int) -> None:
    """Raise MovementSignError when ``quantity_delta`` does not fit ``kind``."""
    if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int):
        raise MovementSignError(kind.value, quantity_delta)
    if quantity_delta == 0:
        raise MovementSignError(kind.value, quantity_delta)
    if kind in POSITIVE_KINDS and quantity_delta < 0:
        raise MovementSignError(kind.value, quantity_delta)
    if kind in NEGATIVE_KINDS and quantity_delta > 0:
        raise MovementSignError(kind.value, quantity_delta)


class StockLedger(BaseService):
    """
    Applies quantity changes and records their movements.

    Contract:
        ``apply`` mutates exactly one Item and appends exactly one
        StockMovement inside the caller's transaction.

    Usage:
        movement = ledger.apply(
            item_id, tenant_id, MovementKind.INBOUND, 10,
            reason="Purchase P-0001", document_ref="P-0001", actor_id=actor,
        )
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._guard = TenantGuard(session)

    def lock_item(self, item_id: UUID, tenant_id: UUID) -> Item:
        """Fresh read of the item with a row lock, within ``tenant_id``."""
        return self._guard.get_owned(Item, item_id, tenant_id, for_update=True)

    def lock_items(self, item_ids: Iterable[UUID], tenant_id: UUID) -> dict[UUID, Item]:
        """
        Lock several items in ascending id order.

        A fixed lock order keeps two documents touching the same items from
        deadlocking each other.
        """
        locked: dict[UUID, Item] = {}
        for item_id in sorted(set(item_ids), key=str):
            locked[item_id] = self.lock_item(item_id, tenant_id)
        return locked

    def check_available(
        self,
        requirements: Iterable[StockRequirement],
        tenant_id: UUID,
    ) -> dict[UUID, Item]:
        """
        Lock every required item and verify the whole document fits.

        Quantities of lines referring to the same item are summed.  All
        offenders are reported together.

        Raises:
            InsufficientStockError: at least one item is short.
        """
        needed: dict[UUID, int] = {}
        for req in requirements:
            needed[req.item_id] = needed.get(req.item_id, 0) + req.quantity

        locked = self.lock_items(needed, tenant_id)
        shortfalls = [
            (str(item.id), item.reference, item.quantity, needed[item_id])
            for item_id, item in locked.items()
            if needed[item_id] > item.quantity
        ]
        if shortfalls:
            logger.info(
                "insufficient_stock",
                extra={
                    "tenant_id": str(tenant_id),
                    "shortfalls": [
                        {"item_id": s[0], "available": s[2], "requested": s[3]}
                        for s in shortfalls
                    ],
                },
            )
            raise InsufficientStockError(shortfalls)
        return locked

    def apply(
        self,
        item: Item | UUID,
        tenant_id: UUID,
        kind: MovementKind | str,
        quantity_delta: int,
        reason: str,
        document_ref: str | None,
        actor_id: UUID,
        *,
        allow_negative: bool = True,
    ) -> StockMovement:
        """
        Apply ``quantity_delta`` to the item and append its movement.

        Preconditions:
            - Called inside an active transaction.
        Postconditions:
            - ``movement.quantity_after == item.quantity``.
            - ``movement.quantity_before`` is the quantity committed by the
              previous writer (or earlier in this transaction).

        Raises:
            CrossTenantAccessError: item belongs to another tenant.
            NotFoundError: no such item.
            MovementSignError: delta sign does not fit ``kind`` or is zero.
            InsufficientStockError: ``allow_negative=False`` and the result
                would be below zero.
        """
        kind = MovementKind(kind)
        check_sign(kind, quantity_delta)

        if isinstance(item, Item):
            self._guard.check_owned(item, tenant_id)
            item_id = item.id
        else:
            item_id = item

        # INVARIANT: read-then-write under the row lock.
        locked = self.lock_item(item_id, tenant_id)
        before = locked.quantity_on_hand
        after = before + quantity_delta

        if after < 0 and not allow_negative:
            raise InsufficientStockError(
                [(str(locked.id), locked.reference, before, -quantity_delta)]
            )

        version = locked.ledger_version + 1
        grant_quantity_write(self.session, locked.id, after)
        locked.quantity_on_hand = after
        locked.ledger_version = version

        movement = StockMovement(
            tenant_id=tenant_id,
            item_id=locked.id,
            item_version=version,
            kind=kind.value,
            quantity_delta=quantity_delta,
            quantity_before=before,
            quantity_after=after,
            reason=reason,
            document_ref=document_ref,
            actor_id=actor_id,
            created_at=self._clock.now(),
        )
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "stock_movement_applied",
            extra={
                "tenant_id": str(tenant_id),
                "item_id": str(locked.id),
                "movement_id": str(movement.id),
                "kind": kind.value,
                "quantity_delta": quantity_delta,
                "quantity_before": before,
                "quantity_after": after,
                "document_ref": document_ref,
            },
        )
        return movement

    def movement_count_for_document(self, tenant_id: UUID, document_ref: str) -> int:
        return self.session.execute(
            select(func.count(StockMovement.id)).where(
                StockMovement.tenant_id == tenant_id,
                StockMovement.document_ref == document_ref,
            )
        ).scalar_one()
