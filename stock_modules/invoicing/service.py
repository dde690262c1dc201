"""
Invoicing Service (``stock_modules.invoicing.service``).

Responsibility
--------------
Customer invoices: drafts, issue, payments and cancellation.  This is the
sale path of the system and the only document path that refuses to take
an item below zero.

Invariants
----------
- Issuing an invoice (at creation, or BROUILLON -> issued status) applies
  one OUTBOUND movement per catalog line.  Availability is checked for
  the whole invoice first; one shortfall aborts the entire operation and
  leaves no header, line, number or movement behind.
- Cancelling an issued invoice returns its catalog lines with RETURN
  movements, unless a validated credit note already returned them.
- Drafts hold no stock and are the only editable, deletable invoices.

Usage::

    service = InvoiceService(session)
    invoice = service.create_invoice(ctx, lines, customer_ref="C-12")
    service.record_payment(ctx, invoice.id, Decimal("20"))
    service.update_invoice_status(ctx, invoice.id, "PAYEE")
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.domain.lines import DocumentLine
from stock_kernel.domain.workflow import StockEffect
from stock_kernel.exceptions import InvalidTransitionError, ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.movement import MovementKind
from stock_kernel.services.sequence_service import DocumentType
from stock_kernel.services.tenant_guard import TenantContext
from stock_kernel.services.unit_of_work import UnitOfWork
from stock_modules._document_service import DocumentService
from stock_modules.credit_notes.orm import CreditNote
from stock_modules.credit_notes.workflows import RETURNED_STATUSES
from stock_modules.invoicing.orm import Invoice, InvoiceLine
from stock_modules.invoicing.workflows import (
    INVOICE_WORKFLOW,
    ISSUED_STATUSES,
    PAYABLE_STATUSES,
    InvoiceStatus,
)
from stock_modules.quotes.orm import Quote

logger = get_logger("modules.invoicing.service")


class InvoiceService(DocumentService):
    """Customer invoices and the sale-side stock effect."""

    document_type = DocumentType.INVOICE
    workflow = INVOICE_WORKFLOW
    header_model = Invoice
    line_model = InvoiceLine

    def create_invoice(
        self,
        ctx: TenantContext,
        lines: Sequence[DocumentLine],
        customer_ref: str | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
        discount: Decimal | None = None,
        status: InvoiceStatus | str | None = None,
        amount_paid: Decimal | None = None,
    ) -> Invoice:
        """
        Create an invoice.

        Created in BROUILLON it touches no stock.  Created in an issued
        status (EN_ATTENTE by default) it sells every catalog line at once.

        Raises:
            InsufficientStockError: any catalog line exceeds the stock on
                hand.  Lists every offending item; nothing is persisted.
            EmptyDocumentError / ValidationError: bad lines, discount or status.
        """
        lines = self._validate(lines)
        status = InvoiceStatus(
            status or self._config.documents.invoice_default_status
        ).value
        if status not in self.workflow.creation_states:
            raise ValidationError(
                f"an invoice cannot be created as {status}", field="status"
            )

        with self._uow.begin(ctx, "create_invoice") as uow:
            invoice = self.build_invoice(
                uow,
                lines,
                status,
                customer_ref=customer_ref,
                payment_method=payment_method,
                notes=notes,
                discount=discount,
                amount_paid=amount_paid,
            )
        return invoice

    def build_invoice(
        self,
        uow: UnitOfWork,
        lines: Sequence[DocumentLine],
        status: str,
        *,
        customer_ref: str | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
        discount: Decimal | None = None,
        amount_paid: Decimal | None = None,
        quote_id: UUID | None = None,
    ) -> Invoice:
        """Write a new invoice inside an open unit of work.

        Shared by ``create_invoice`` and quote conversion so both allocate
        the number and apply the stock effect the same way.
        """
        self._check_items(uow, lines)
        invoice = self._new_header(
            uow,
            status,
            customer_ref=customer_ref,
            payment_method=payment_method,
            quote_id=quote_id,
            notes=notes,
        )
        self._write_lines(uow, invoice, lines, discount)
        if status in ISSUED_STATUSES:
            self._issue(uow, invoice)
            self._apply_payment(invoice, status, amount_paid)
        self._record_created(uow, invoice)
        return invoice

    def update_invoice(
        self,
        ctx: TenantContext,
        invoice_id: UUID,
        lines: Sequence[DocumentLine],
        customer_ref: str | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
        discount: Decimal | None = None,
    ) -> Invoice:
        """
        Replace every line of a draft and recompute its totals.

        Header fields left as None keep their current value.

        Raises:
            DocumentNotEditableError: the invoice is no longer a draft.
        """
        lines = self._validate(lines)
        with self._uow.begin(ctx, "update_invoice") as uow:
            invoice = self._load_for_update(uow, invoice_id)
            self._require_editable(invoice)
            self._check_items(uow, lines)
            if customer_ref is not None:
                invoice.customer_ref = customer_ref
            if payment_method is not None:
                invoice.payment_method = payment_method
            if notes is not None:
                invoice.notes = notes
            self._write_lines(
                uow,
                invoice,
                lines,
                invoice.discount if discount is None else discount,
            )
            invoice.updated_by_id = ctx.actor_id
            uow.record(
                "update",
                self._entity,
                invoice.id,
                f"invoice {invoice.number} lines replaced",
                line_count=len(lines),
                total=invoice.total,
            )
        return invoice

    def update_invoice_status(
        self,
        ctx: TenantContext,
        invoice_id: UUID,
        status: InvoiceStatus | str,
        amount_paid: Decimal | None = None,
        payment_method: str | None = None,
    ) -> Invoice:
        """
        Move an invoice along its workflow and apply the transition's
        stock effect.

        - BROUILLON -> issued status: OUTBOUND per catalog line, refused
          as a whole on any shortfall.
        - issued -> ANNULEE: RETURN per catalog line.
        - -> PAYEE: ``paid_at`` is set and ``amount_paid`` equals the total.
        - -> PARTIELLEMENT_PAYEE: ``amount_paid`` is recorded when given.
        """
        status = InvoiceStatus(status).value
        with self._uow.begin(ctx, "update_invoice_status") as uow:
            invoice = self._load_for_update(uow, invoice_id)
            transition = self.workflow.require(invoice.status, status)
            if transition.stock_effect is StockEffect.RETURN:
                self._require_not_credited(invoice)

            self._transition(uow, invoice, status)
            if payment_method is not None:
                invoice.payment_method = payment_method

            if transition.stock_effect is StockEffect.OUTBOUND:
                self._issue(uow, invoice)
            elif transition.stock_effect is StockEffect.RETURN:
                self._stock_in(
                    uow,
                    invoice,
                    MovementKind.RETURN,
                    f"Invoice {invoice.number} cancelled",
                )

            if status in ISSUED_STATUSES:
                self._apply_payment(invoice, status, amount_paid)
        return invoice

    def record_payment(
        self,
        ctx: TenantContext,
        invoice_id: UUID,
        amount_paid: Decimal,
        payment_method: str | None = None,
    ) -> Invoice:
        """
        Record the amount paid so far on an issued, unpaid invoice.

        The amount only grows.  Reaching the total moves the invoice to
        PAYEE; any smaller amount leaves it PARTIELLEMENT_PAYEE.  No stock
        moves.

        Raises:
            InvalidTransitionError: the invoice is a draft, paid or cancelled.
            ValidationError: the amount is not above what was already paid
                or exceeds the total.
        """
        amount_paid = Decimal(amount_paid)
        with self._uow.begin(ctx, "record_payment") as uow:
            invoice = self._load_for_update(uow, invoice_id)
            target = (
                InvoiceStatus.PAYEE.value
                if amount_paid == invoice.total
                else InvoiceStatus.PARTIELLEMENT_PAYEE.value
            )
            if invoice.status not in PAYABLE_STATUSES:
                raise InvalidTransitionError(self.workflow.name, invoice.status, target)
            if amount_paid <= invoice.amount_paid or amount_paid > invoice.total:
                raise ValidationError(
                    f"amount_paid must be above the {invoice.amount_paid} already "
                    f"paid and at most the total {invoice.total}",
                    field="amount_paid",
                )

            previous = invoice.amount_paid
            if invoice.status != target:
                self._transition(uow, invoice, target)
            invoice.amount_paid = amount_paid
            invoice.updated_by_id = ctx.actor_id
            if target == InvoiceStatus.PAYEE.value:
                invoice.paid_at = self._clock.now()
            if payment_method is not None:
                invoice.payment_method = payment_method
            uow.record(
                "payment",
                self._entity,
                invoice.id,
                f"invoice {invoice.number} paid {amount_paid} of {invoice.total}",
                previous_amount=previous,
                amount_paid=amount_paid,
            )

        logger.info(
            "invoice_payment_recorded",
            extra={
                "invoice_id": str(invoice.id),
                "number": invoice.number,
                "amount_paid": invoice.amount_paid,
                "status": invoice.status,
            },
        )
        return invoice

    def delete_invoice(self, ctx: TenantContext, invoice_id: UUID) -> None:
        """Delete a draft invoice.  Issued invoices are cancelled instead."""
        self._delete(ctx, invoice_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _issue(self, uow: UnitOfWork, invoice: Invoice) -> None:
        invoice.issued_at = self._clock.now()
        self._stock_out(uow, invoice, f"Invoice {invoice.number}")

    def _apply_payment(
        self, invoice: Invoice, status: str, amount_paid: Decimal | None
    ) -> None:
        if amount_paid is not None:
            amount_paid = Decimal(amount_paid)
            if amount_paid < 0 or amount_paid > invoice.total:
                raise ValidationError(
                    "amount_paid must be between 0 and the invoice total",
                    field="amount_paid",
                )

        if status == InvoiceStatus.PAYEE.value:
            invoice.amount_paid = invoice.total
            invoice.paid_at = self._clock.now()
        elif amount_paid is not None:
            invoice.amount_paid = amount_paid

    def _require_not_credited(self, invoice: Invoice) -> None:
        credited = self._session.execute(
            select(func.count())
            .select_from(CreditNote)
            .where(
                CreditNote.tenant_id == invoice.tenant_id,
                CreditNote.invoice_id == invoice.id,
                CreditNote.status.in_(RETURNED_STATUSES),
            )
        ).scalar_one()
        if credited:
            raise ValidationError(
                f"invoice {invoice.number} has {credited} validated credit "
                "note(s); its goods were already returned",
                field="status",
            )

    def _before_delete(self, uow: UnitOfWork, invoice: Invoice) -> None:
        # A deleted conversion frees its quote to be converted again.
        quotes = self._session.execute(
            select(Quote).where(
                Quote.tenant_id == invoice.tenant_id,
                Quote.converted_invoice_id == invoice.id,
            )
        ).scalars()
        for quote in quotes:
            quote.converted_invoice_id = None
            quote.updated_by_id = uow.ctx.actor_id
        self._session.flush()
