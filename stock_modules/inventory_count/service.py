"""
Inventory Reconciliation Service (``stock_modules.inventory_count.service``).

Responsibility
--------------
Physical inventory sessions.  Creation snapshots the quantity on hand of
every counted item as its theoretical quantity.  Lines are counted while
the session is EN_COURS; counting is staging only and never touches the
Stock Ledger.

Invariants
----------
- Validation applies one INVENTORY_CORRECTION movement per counted line
  with a non-zero variance, ``quantity_delta = variance``, in the same
  transaction as the status change.  Uncounted lines are skipped.
- A session whose counted lines all have zero variance validates with
  zero movements.
- ``aggregate_variance`` is the sum of the counted lines' variances.
- Once VALIDE or ANNULE, the session and its lines are read-only.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from stock_kernel.domain.workflow import StockEffect
from stock_kernel.exceptions import (
    DocumentNotEditableError,
    EmptyDocumentError,
    NothingCountedError,
    NotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.item import Item
from stock_kernel.models.movement import MovementKind
from stock_kernel.selectors.item_selector import ItemSelector
from stock_kernel.services.sequence_service import DocumentType
from stock_kernel.services.tenant_guard import TenantContext
from stock_kernel.services.unit_of_work import UnitOfWork
from stock_modules._document_service import DocumentService
from stock_modules.inventory_count.orm import InventoryLine, InventorySession
from stock_modules.inventory_count.workflows import (
    INVENTORY_WORKFLOW,
    InventoryStatus,
)

logger = get_logger("modules.inventory_count.service")


class InventoryService(DocumentService):
    """Physical counts and the corrections they produce."""

    document_type = DocumentType.INVENTORY
    workflow = INVENTORY_WORKFLOW
    header_model = InventorySession
    line_model = InventoryLine

    def create_inventory_session(
        self,
        ctx: TenantContext,
        item_ids: Iterable[UUID] | None = None,
        notes: str | None = None,
    ) -> InventorySession:
        """
        Open a session over ``item_ids``, or over every active item.

        Raises:
            NotFoundError / CrossTenantAccessError: an explicit id is
                unknown or belongs to another tenant.
            EmptyDocumentError: nothing to count.
        """
        with self._uow.begin(ctx, "create_inventory_session") as uow:
            items = self._items_to_count(uow, item_ids)
            if not items:
                raise EmptyDocumentError(self.workflow.name)

            session = self._new_header(
                uow,
                InventoryStatus.EN_COURS.value,
                started_at=self._clock.now(),
                notes=notes,
            )
            for position, item in enumerate(items, start=1):
                session.lines.append(
                    InventoryLine(
                        tenant_id=ctx.tenant_id,
                        item_id=item.id,
                        position=position,
                        theoretical_quantity=item.quantity,
                    )
                )
            self._session.flush()
            self._record_created(uow, session)
        return session

    def update_inventory_line(
        self,
        ctx: TenantContext,
        session_id: UUID,
        line_id: UUID,
        physical_quantity: int,
        notes: str | None = None,
    ) -> InventoryLine:
        """
        Record a physical count; may be repeated while the session is open.

        Raises:
            ValidationError: negative or non-integer quantity.
            DocumentNotEditableError: the session is no longer EN_COURS.
            NotFoundError: the line is not part of the session.
        """
        if isinstance(physical_quantity, bool) or not isinstance(physical_quantity, int):
            raise ValidationError(
                "physical_quantity must be an integer", field="physical_quantity"
            )
        if physical_quantity < 0:
            raise ValidationError(
                "physical_quantity cannot be negative", field="physical_quantity"
            )

        with self._uow.begin(ctx, "update_inventory_line") as uow:
            session = self._load_for_update(uow, session_id)
            self._require_editable(session)
            line = uow.guard.get_owned(InventoryLine, line_id, ctx.tenant_id)
            if line.session_id != session.id:
                raise NotFoundError("InventoryLine", str(line_id))

            line.record_count(physical_quantity, self._clock.now())
            if notes is not None:
                line.notes = notes
            uow.record(
                "count",
                "InventoryLine",
                line.id,
                f"inventory {session.number}: counted {physical_quantity}",
                item_id=line.item_id,
                theoretical_quantity=line.theoretical_quantity,
                physical_quantity=physical_quantity,
                variance=line.variance,
            )
        return line

    def set_inventory_status(
        self,
        ctx: TenantContext,
        session_id: UUID,
        status: InventoryStatus | str,
    ) -> InventorySession:
        """
        Validate or cancel a session.

        Raises:
            InvalidTransitionError: the session is already final.
            NothingCountedError: validating with no counted line.
        """
        status = InventoryStatus(status).value
        with self._uow.begin(ctx, "set_inventory_status") as uow:
            session = self._load_for_update(uow, session_id)
            transition = self.workflow.require(session.status, status)
            counted = session.counted_lines

            if transition.stock_effect is StockEffect.INVENTORY_CORRECTION:
                if not counted:
                    raise NothingCountedError(str(session.id))
                session.aggregate_variance = sum(line.variance for line in counted)

            # Header fields are written before the status flips: a final
            # session accepts no further update.
            session.ended_at = self._clock.now()
            self._transition(uow, session, status)

            if transition.stock_effect is StockEffect.INVENTORY_CORRECTION:
                self._apply_corrections(uow, session, counted)
        return session

    def delete_inventory_session(self, ctx: TenantContext, session_id: UUID) -> None:
        self._delete(ctx, session_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_editable(self, session: InventorySession) -> None:
        if session.status != InventoryStatus.EN_COURS.value:
            raise DocumentNotEditableError(
                self.workflow.name, str(session.id), session.status
            )

    def _items_to_count(
        self, uow: UnitOfWork, item_ids: Iterable[UUID] | None
    ) -> list[Item]:
        if item_ids is None:
            return ItemSelector(self._session).active_items(uow.ctx.tenant_id)
        items: list[Item] = []
        seen: set[UUID] = set()
        for item_id in item_ids:
            if item_id in seen:
                continue
            seen.add(item_id)
            items.append(uow.guard.get_owned(Item, item_id, uow.ctx.tenant_id))
        return items

    def _apply_corrections(
        self,
        uow: UnitOfWork,
        session: InventorySession,
        counted: list[InventoryLine],
    ) -> None:
        corrections = [line for line in counted if line.variance]
        uow.ledger.lock_items(
            (line.item_id for line in corrections), uow.ctx.tenant_id
        )
        for line in corrections:
            uow.move_stock(
                line.item_id,
                MovementKind.INVENTORY_CORRECTION,
                line.variance,
                f"Inventory {session.number}",
                session.number,
            )
        logger.info(
            "inventory_validated",
            extra={
                "number": session.number,
                "counted_lines": len(counted),
                "corrections": len(corrections),
                "aggregate_variance": session.aggregate_variance,
            },
        )

    def _record_created(self, uow: UnitOfWork, session: InventorySession) -> None:
        logger.info(
            "document_created",
            extra={
                "document_type": self.workflow.name,
                "document_id": str(session.id),
                "number": session.number,
                "status": session.status,
                "line_count": len(session.lines),
            },
        )
        uow.record(
            "create",
            self._entity,
            session.id,
            f"inventory {session.number} opened",
            line_count=len(session.lines),
        )
