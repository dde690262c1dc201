"""
Credit Note Service (``stock_modules.credit_notes.service``).

Responsibility
--------------
Customer credit notes.  A credit note may stand alone or reference an
issued invoice; ``create_credit_note_from_invoice`` copies the invoice's
lines verbatim with every catalog line flagged for return.

Invariants
----------
- Validation applies one RETURN movement per catalog line flagged
  ``return_to_stock``, in the validating transaction.  Unflagged and
  free-text lines produce no movement.
- A credit note on a cancelled invoice cannot be validated: the
  cancellation already returned the goods.
- Across all validated credit notes of one invoice, the quantity returned
  per item never exceeds the quantity the invoice sold.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.domain.lines import DocumentLine, with_return_flag
from stock_kernel.domain.workflow import StockEffect
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.movement import MovementKind
from stock_kernel.services.sequence_service import DocumentType
from stock_kernel.services.tenant_guard import TenantContext
from stock_kernel.services.unit_of_work import UnitOfWork
from stock_modules._document_service import DocumentService
from stock_modules.credit_notes.orm import CreditNote, CreditNoteLine
from stock_modules.credit_notes.workflows import (
    CREDIT_NOTE_WORKFLOW,
    RETURNED_STATUSES,
    CreditNoteStatus,
)
from stock_modules.invoicing.orm import Invoice, InvoiceLine
from stock_modules.invoicing.workflows import ISSUED_STATUSES, InvoiceStatus

logger = get_logger("modules.credit_notes.service")


class CreditNoteService(DocumentService):
    """Credit notes and customer returns."""

    document_type = DocumentType.CREDIT_NOTE
    workflow = CREDIT_NOTE_WORKFLOW
    header_model = CreditNote
    line_model = CreditNoteLine

    def create_credit_note(
        self,
        ctx: TenantContext,
        reason: str,
        lines: Sequence[DocumentLine],
        customer_ref: str | None = None,
        invoice_id: UUID | None = None,
        notes: str | None = None,
    ) -> CreditNote:
        """
        Create a pending credit note.  No stock moves until validation.

        Raises:
            ValidationError: missing reason, bad lines, or ``invoice_id``
                names an invoice that was never issued.
            NotFoundError / CrossTenantAccessError: unknown invoice or item.
        """
        reason = self._require_reason(reason)
        lines = self._validate(lines)
        with self._uow.begin(ctx, "create_credit_note") as uow:
            invoice = None
            if invoice_id is not None:
                invoice = self._credited_invoice(uow, invoice_id)
            credit_note = self._build(uow, reason, lines, customer_ref, invoice, notes)
        return credit_note

    def create_credit_note_from_invoice(
        self,
        ctx: TenantContext,
        invoice_id: UUID,
        reason: str,
        notes: str | None = None,
    ) -> CreditNote:
        """Credit an issued invoice in full, every catalog line flagged for return."""
        reason = self._require_reason(reason)
        with self._uow.begin(ctx, "create_credit_note_from_invoice") as uow:
            invoice = self._credited_invoice(uow, invoice_id)
            lines = [
                with_return_flag(line, True) for line in invoice.domain_lines()
            ]
            credit_note = self._build(uow, reason, lines, None, invoice, notes)
        return credit_note

    def update_credit_note_status(
        self,
        ctx: TenantContext,
        credit_note_id: UUID,
        status: CreditNoteStatus | str,
    ) -> CreditNote:
        """
        Move a credit note along its workflow.

        EN_ATTENTE -> VALIDE returns the flagged lines to stock.
        VALIDE -> REMBOURSE records the refund only.
        """
        status = CreditNoteStatus(status).value
        with self._uow.begin(ctx, "update_credit_note_status") as uow:
            credit_note = self._load_for_update(uow, credit_note_id)
            transition = self.workflow.require(credit_note.status, status)
            if transition.stock_effect is StockEffect.RETURN:
                self._check_against_invoice(uow, credit_note)

            self._transition(uow, credit_note, status)
            now = self._clock.now()
            if transition.stock_effect is StockEffect.RETURN:
                credit_note.validated_at = now
                returned = self._stock_in(
                    uow,
                    credit_note,
                    MovementKind.RETURN,
                    f"Credit note {credit_note.number}",
                    flagged_only=True,
                )
                logger.info(
                    "credit_note_returned_to_stock",
                    extra={
                        "number": credit_note.number,
                        "returned_lines": returned,
                        "line_count": len(credit_note.lines),
                    },
                )
            elif status == CreditNoteStatus.REMBOURSE.value:
                credit_note.refunded_at = now
        return credit_note

    def validate_credit_note(self, ctx: TenantContext, credit_note_id: UUID) -> CreditNote:
        return self.update_credit_note_status(
            ctx, credit_note_id, CreditNoteStatus.VALIDE
        )

    def mark_credit_note_refunded(
        self, ctx: TenantContext, credit_note_id: UUID
    ) -> CreditNote:
        return self.update_credit_note_status(
            ctx, credit_note_id, CreditNoteStatus.REMBOURSE
        )

    def delete_credit_note(self, ctx: TenantContext, credit_note_id: UUID) -> None:
        self._delete(ctx, credit_note_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _require_reason(reason: str) -> str:
        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")
        return reason.strip()

    def _credited_invoice(self, uow: UnitOfWork, invoice_id: UUID) -> Invoice:
        invoice = uow.guard.get_owned(Invoice, invoice_id, uow.ctx.tenant_id)
        if invoice.status not in ISSUED_STATUSES:
            raise ValidationError(
                f"invoice {invoice.number} is {invoice.status}; only issued "
                "invoices can be credited",
                field="invoice_id",
            )
        return invoice

    def _build(
        self,
        uow: UnitOfWork,
        reason: str,
        lines: Sequence[DocumentLine],
        customer_ref: str | None,
        invoice: Invoice | None,
        notes: str | None,
    ) -> CreditNote:
        self._check_items(uow, lines)
        if customer_ref is None and invoice is not None:
            customer_ref = invoice.customer_ref
        credit_note = self._new_header(
            uow,
            CreditNoteStatus.EN_ATTENTE.value,
            reason=reason,
            customer_ref=customer_ref,
            invoice_id=invoice.id if invoice is not None else None,
            notes=notes,
        )
        self._write_lines(uow, credit_note, lines)
        self._record_created(uow, credit_note)
        return credit_note

    def _check_against_invoice(
        self, uow: UnitOfWork, credit_note: CreditNote
    ) -> None:
        """
        Refuse to return goods the credited invoice no longer owes back.

        The invoice row is locked, so validations of credit notes on the
        same invoice are serialized.
        """
        if credit_note.invoice_id is None:
            return
        invoice = uow.guard.get_owned(
            Invoice, credit_note.invoice_id, uow.ctx.tenant_id, for_update=True
        )
        if invoice.status == InvoiceStatus.ANNULEE.value:
            raise ValidationError(
                f"invoice {invoice.number} was cancelled; its goods are "
                "already back in stock",
                field="invoice_id",
            )

        remaining = self._returnable_quantities(invoice, exclude=credit_note.id)
        requested: dict[UUID, int] = defaultdict(int)
        for index, line in enumerate(credit_note.lines):
            if line.item_id is None or not line.return_to_stock:
                continue
            requested[line.item_id] += line.quantity
            if requested[line.item_id] > remaining.get(line.item_id, 0):
                raise ValidationError(
                    f"line {line.position} returns {requested[line.item_id]} of "
                    f"item {line.item_id}; invoice {invoice.number} has "
                    f"{remaining.get(line.item_id, 0)} left to return",
                    field="lines",
                    line_index=index,
                )

    def _returnable_quantities(self, invoice: Invoice, exclude: UUID) -> dict[UUID, int]:
        """Quantity per item sold by ``invoice`` and not yet credited back."""
        sold = self._session.execute(
            select(InvoiceLine.item_id, func.sum(InvoiceLine.quantity))
            .where(
                InvoiceLine.invoice_id == invoice.id,
                InvoiceLine.item_id.is_not(None),
            )
            .group_by(InvoiceLine.item_id)
        ).all()
        returned = self._session.execute(
            select(CreditNoteLine.item_id, func.sum(CreditNoteLine.quantity))
            .join(CreditNote, CreditNote.id == CreditNoteLine.credit_note_id)
            .where(
                CreditNote.tenant_id == invoice.tenant_id,
                CreditNote.invoice_id == invoice.id,
                CreditNote.status.in_(RETURNED_STATUSES),
                CreditNote.id != exclude,
                CreditNoteLine.item_id.is_not(None),
                CreditNoteLine.return_to_stock.is_(True),
            )
            .group_by(CreditNoteLine.item_id)
        ).all()

        remaining = {item_id: int(quantity) for item_id, quantity in sold}
        for item_id, quantity in returned:
            remaining[item_id] = remaining.get(item_id, 0) - int(quantity)
        return remaining
