"""
Shared machinery of the document services.

Responsibility
--------------
Every document family (purchase, invoice, quote, credit note) follows the
same shape: allocate a number, write header and lines, check the status
transition against the family's ``Workflow``, and apply the transition's
stock effect through the Stock Ledger -- all in one UnitOfWork.  This base
holds that shape so each family's ``service.py`` only states its own rules.

Invariants
----------
- Transition checks go through ``Workflow.require`` before any write.
- Stock effects are applied per stocked line, once, through
  ``UnitOfWork.move_stock``; no other code writes item quantities.
- Headers are loaded with a row lock for every state change, so two
  concurrent transitions on one document are serialized.
- Deletion is allowed from ``Workflow.deletable_states`` only, and never
  once a movement references the document number.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from stock_config import StockConfig, get_active_config
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.lines import DocumentLine, validate_lines
from stock_kernel.domain.pricing import compute_totals
from stock_kernel.domain.workflow import Transition, Workflow
from stock_kernel.exceptions import (
    DocumentHasMovementsError,
    DocumentNotEditableError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.item import Item
from stock_kernel.models.movement import MovementKind
from stock_kernel.services.activity_service import ActivitySink
from stock_kernel.services.sequence_service import DocumentType
from stock_kernel.services.stock_ledger import StockRequirement
from stock_kernel.services.tenant_guard import TenantContext
from stock_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("modules.documents")


class DocumentService:
    """Base for the per-family document services."""

    document_type: DocumentType
    workflow: Workflow
    header_model: type
    line_model: type
    catalog_only: bool = False

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        activity_sink: ActivitySink | None = None,
        config: StockConfig | None = None,
    ):
        self._session = session
        self._config = config or get_active_config()
        self._uow = UnitOfWork(session, clock, activity_sink, self._config.numbering)
        self._clock = self._uow.clock

    @property
    def _places(self) -> int:
        return self._config.documents.money_places

    @property
    def _entity(self) -> str:
        return self.header_model.__name__

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, ctx: TenantContext, document_id: UUID):
        """Read a document of this family within the caller's tenant."""
        return self._uow.guard.get_owned(self.header_model, document_id, ctx.tenant_id)

    def _load_for_update(self, uow: UnitOfWork, document_id: UUID):
        doc = uow.guard.get_owned(
            self.header_model, document_id, uow.ctx.tenant_id, for_update=True
        )
        uow.set_document_ref(doc.number)
        return doc

    # ------------------------------------------------------------------
    # Lines and totals
    # ------------------------------------------------------------------

    def _validate(self, lines: Sequence[DocumentLine]) -> list[DocumentLine]:
        return validate_lines(
            self.workflow.name, lines, catalog_only=self.catalog_only
        )

    def _check_items(self, uow: UnitOfWork, lines: Sequence[DocumentLine]) -> None:
        for item_id in {line.item_id for line in lines if line.is_stocked}:
            uow.guard.get_owned(Item, item_id, uow.ctx.tenant_id)

    def _write_lines(
        self,
        uow: UnitOfWork,
        doc,
        lines: Sequence[DocumentLine],
        discount: Decimal | None = None,
    ) -> None:
        """Replace every line of ``doc`` and store recomputed totals."""
        doc.lines.clear()
        self._session.flush()
        for position, line in enumerate(lines, start=1):
            doc.lines.append(
                self.line_model.from_domain(
                    line, position, uow.ctx.tenant_id, self._places
                )
            )
        doc.apply_totals(compute_totals(lines, discount, self._places))
        self._session.flush()

    def _new_header(self, uow: UnitOfWork, status: str, **fields):
        seq, number = uow.allocate_number(self.document_type)
        doc = self.header_model(
            tenant_id=uow.ctx.tenant_id,
            seq=seq,
            number=number,
            status=status,
            created_by_id=uow.ctx.actor_id,
            **fields,
        )
        self._session.add(doc)
        return doc

    # ------------------------------------------------------------------
    # Status and stock
    # ------------------------------------------------------------------

    def _transition(self, uow: UnitOfWork, doc, to_status: str) -> Transition:
        transition = self.workflow.require(doc.status, to_status)
        from_status = doc.status
        doc.status = transition.to_state
        doc.updated_by_id = uow.ctx.actor_id
        logger.info(
            "document_status_changed",
            extra={
                "document_type": self.workflow.name,
                "document_id": str(doc.id),
                "number": doc.number,
                "from_status": from_status,
                "to_status": transition.to_state,
                "action": transition.action,
            },
        )
        uow.record(
            "status_change",
            self._entity,
            doc.id,
            f"{self.workflow.name} {doc.number} {from_status} -> {transition.to_state}",
            from_status=from_status,
            to_status=transition.to_state,
        )
        return transition

    def _record_created(self, uow: UnitOfWork, doc) -> None:
        logger.info(
            "document_created",
            extra={
                "document_type": self.workflow.name,
                "document_id": str(doc.id),
                "number": doc.number,
                "status": doc.status,
                "total": doc.total,
            },
        )
        uow.record(
            "create",
            self._entity,
            doc.id,
            f"{self.workflow.name} {doc.number} created",
            status=doc.status,
            total=doc.total,
        )

    def _stock_out(self, uow: UnitOfWork, doc, reason: str) -> None:
        """OUTBOUND per stocked line; the whole document or nothing."""
        stocked = [line for line in doc.lines if line.is_stocked]
        uow.ledger.check_available(
            [StockRequirement(line.item_id, line.quantity) for line in stocked],
            uow.ctx.tenant_id,
        )
        for line in stocked:
            uow.move_stock(
                line.item_id,
                MovementKind.OUTBOUND,
                -line.quantity,
                reason,
                doc.number,
                allow_negative=False,
            )

    def _stock_in(
        self,
        uow: UnitOfWork,
        doc,
        kind: MovementKind,
        reason: str,
        *,
        flagged_only: bool = False,
    ) -> int:
        """Positive movement per stocked line; return how many were applied."""
        applied = 0
        for line in doc.lines:
            if not line.is_stocked or (flagged_only and not line.return_to_stock):
                continue
            uow.move_stock(line.item_id, kind, line.quantity, reason, doc.number)
            applied += 1
        return applied

    # ------------------------------------------------------------------
    # Editing and deletion
    # ------------------------------------------------------------------

    def _require_editable(self, doc) -> None:
        if doc.status not in self.workflow.deletable_states:
            raise DocumentNotEditableError(
                self.workflow.name, str(doc.id), doc.status
            )

    def _delete(self, ctx: TenantContext, document_id: UUID) -> None:
        with self._uow.begin(ctx, f"delete_{self.document_type.value.lower()}") as uow:
            doc = self._load_for_update(uow, document_id)
            self._require_editable(doc)
            count = uow.ledger.movement_count_for_document(ctx.tenant_id, doc.number)
            if count:
                raise DocumentHasMovementsError(self.workflow.name, doc.number, count)
            self._before_delete(uow, doc)
            self._session.delete(doc)
            self._session.flush()
            logger.info(
                "document_deleted",
                extra={
                    "document_type": self.workflow.name,
                    "document_id": str(document_id),
                    "number": doc.number,
                },
            )
            uow.record(
                "delete",
                self._entity,
                document_id,
                f"{self.workflow.name} {doc.number} deleted",
            )

    def _before_delete(self, uow: UnitOfWork, doc) -> None:
        """Hook for family-specific delete checks."""
