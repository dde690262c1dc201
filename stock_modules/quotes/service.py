"""
Quote Service (``stock_modules.quotes.service``).

Responsibility
--------------
Customer quotes from draft to decision, expiry of overdue quotes, and the
one-time conversion of an accepted quote into a draft invoice.

Invariants
----------
- Quotes never touch the Stock Ledger.
- ``valid_until`` defaults to today plus ``documents.quote_validity_days``.
- An accepted quote converts at most once.  Conversion copies the lines
  verbatim into a BROUILLON invoice in the same transaction; that
  invoice's issue transition is what later moves stock.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_config import StockConfig
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.lines import DocumentLine
from stock_kernel.exceptions import QuoteAlreadyConvertedError, ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.services.activity_service import ActivitySink
from stock_kernel.services.sequence_service import DocumentType
from stock_kernel.services.tenant_guard import TenantContext
from stock_kernel.services.unit_of_work import UnitOfWork
from stock_modules._document_service import DocumentService
from stock_modules.invoicing.orm import Invoice
from stock_modules.invoicing.service import InvoiceService
from stock_modules.invoicing.workflows import InvoiceStatus
from stock_modules.quotes.orm import Quote, QuoteLine
from stock_modules.quotes.workflows import OPEN_STATUSES, QUOTE_WORKFLOW, QuoteStatus

logger = get_logger("modules.quotes.service")

_DECIDED = frozenset(
    {QuoteStatus.ACCEPTE.value, QuoteStatus.REFUSE.value, QuoteStatus.EXPIRE.value}
)


class QuoteService(DocumentService):
    """Customer quotes and their conversion into invoices."""

    document_type = DocumentType.QUOTE
    workflow = QUOTE_WORKFLOW
    header_model = Quote
    line_model = QuoteLine

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        activity_sink: ActivitySink | None = None,
        config: StockConfig | None = None,
    ):
        super().__init__(session, clock, activity_sink, config)
        self._invoices = InvoiceService(session, self._clock, activity_sink, self._config)

    def create_quote(
        self,
        ctx: TenantContext,
        lines: Sequence[DocumentLine],
        customer_ref: str | None = None,
        valid_until: date | None = None,
        discount: Decimal | None = None,
        conditions: str | None = None,
        notes: str | None = None,
        internal_notes: str | None = None,
    ) -> Quote:
        lines = self._validate(lines)
        valid_until = self._valid_until(valid_until)

        with self._uow.begin(ctx, "create_quote") as uow:
            self._check_items(uow, lines)
            quote = self._new_header(
                uow,
                QuoteStatus.BROUILLON.value,
                customer_ref=customer_ref,
                valid_until=valid_until,
                conditions=conditions,
                notes=notes,
                internal_notes=internal_notes,
            )
            self._write_lines(uow, quote, lines, discount)
            self._record_created(uow, quote)
        return quote

    def update_quote(
        self,
        ctx: TenantContext,
        quote_id: UUID,
        lines: Sequence[DocumentLine],
        customer_ref: str | None = None,
        valid_until: date | None = None,
        discount: Decimal | None = None,
        conditions: str | None = None,
        notes: str | None = None,
        internal_notes: str | None = None,
    ) -> Quote:
        """Replace every line of a draft quote; None keeps a header field."""
        lines = self._validate(lines)
        with self._uow.begin(ctx, "update_quote") as uow:
            quote = self._load_for_update(uow, quote_id)
            self._require_editable(quote)
            self._check_items(uow, lines)
            if valid_until is not None:
                quote.valid_until = self._valid_until(valid_until)
            for name, value in (
                ("customer_ref", customer_ref),
                ("conditions", conditions),
                ("notes", notes),
                ("internal_notes", internal_notes),
            ):
                if value is not None:
                    setattr(quote, name, value)
            self._write_lines(
                uow, quote, lines, quote.discount if discount is None else discount
            )
            quote.updated_by_id = ctx.actor_id
            uow.record(
                "update",
                self._entity,
                quote.id,
                f"quote {quote.number} lines replaced",
                line_count=len(lines),
                total=quote.total,
            )
        return quote

    def update_quote_status(
        self,
        ctx: TenantContext,
        quote_id: UUID,
        status: QuoteStatus | str,
    ) -> Quote:
        """
        Move a quote along its workflow.

        Raises:
            InvalidTransitionError: transition not in the quote workflow.
            ValidationError: accepting a quote whose validity date passed.
        """
        status = QuoteStatus(status).value
        with self._uow.begin(ctx, "update_quote_status") as uow:
            quote = self._load_for_update(uow, quote_id)
            self._change_status(uow, quote, status)
        return quote

    def send_quote(self, ctx: TenantContext, quote_id: UUID) -> Quote:
        return self.update_quote_status(ctx, quote_id, QuoteStatus.ENVOYE)

    def accept_quote(self, ctx: TenantContext, quote_id: UUID) -> Quote:
        return self.update_quote_status(ctx, quote_id, QuoteStatus.ACCEPTE)

    def refuse_quote(self, ctx: TenantContext, quote_id: UUID) -> Quote:
        return self.update_quote_status(ctx, quote_id, QuoteStatus.REFUSE)

    def expire_quote(self, ctx: TenantContext, quote_id: UUID) -> Quote:
        return self.update_quote_status(ctx, quote_id, QuoteStatus.EXPIRE)

    def expire_overdue_quotes(
        self, ctx: TenantContext, as_of: date | None = None
    ) -> list[Quote]:
        """Expire every open quote whose ``valid_until`` is before ``as_of``."""
        as_of = as_of or self._clock.today()
        with self._uow.begin(ctx, "expire_overdue_quotes") as uow:
            overdue = list(
                self._session.execute(
                    select(Quote)
                    .where(
                        Quote.tenant_id == ctx.tenant_id,
                        Quote.status.in_(OPEN_STATUSES),
                        Quote.valid_until < as_of,
                    )
                    .order_by(Quote.seq)
                    .with_for_update()
                ).scalars()
            )
            for quote in overdue:
                self._change_status(uow, quote, QuoteStatus.EXPIRE.value)

        logger.info(
            "overdue_quotes_expired",
            extra={"as_of": as_of.isoformat(), "count": len(overdue)},
        )
        return overdue

    def convert_quote_to_invoice(self, ctx: TenantContext, quote_id: UUID) -> Invoice:
        """
        Create a BROUILLON invoice carrying the accepted quote's lines,
        discount and customer.

        Raises:
            ValidationError: the quote is not ACCEPTE.
            QuoteAlreadyConvertedError: the quote was converted before.
        """
        with self._uow.begin(ctx, "convert_quote_to_invoice") as uow:
            quote = self._load_for_update(uow, quote_id)
            if quote.status != QuoteStatus.ACCEPTE.value:
                raise ValidationError(
                    f"quote {quote.number} is {quote.status}; only accepted "
                    "quotes can be converted",
                    field="status",
                )
            if quote.converted_invoice_id is not None:
                raise QuoteAlreadyConvertedError(
                    str(quote.id), str(quote.converted_invoice_id)
                )

            invoice = self._invoices.build_invoice(
                uow,
                quote.domain_lines(),
                InvoiceStatus.BROUILLON.value,
                customer_ref=quote.customer_ref,
                notes=quote.notes,
                discount=quote.discount,
                quote_id=quote.id,
            )
            quote.converted_invoice_id = invoice.id
            quote.converted_at = self._clock.now()
            quote.updated_by_id = ctx.actor_id
            uow.record(
                "convert",
                self._entity,
                quote.id,
                f"quote {quote.number} converted to invoice {invoice.number}",
                invoice_id=invoice.id,
                invoice_number=invoice.number,
            )

        logger.info(
            "quote_converted",
            extra={
                "quote_id": str(quote.id),
                "quote_number": quote.number,
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.number,
            },
        )
        return invoice

    def delete_quote(self, ctx: TenantContext, quote_id: UUID) -> None:
        self._delete(ctx, quote_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _valid_until(self, valid_until: date | None) -> date:
        today = self._clock.today()
        if valid_until is None:
            return today + timedelta(days=self._config.documents.quote_validity_days)
        if valid_until < today:
            raise ValidationError(
                "valid_until cannot be in the past", field="valid_until"
            )
        return valid_until

    def _change_status(self, uow: UnitOfWork, quote: Quote, status: str) -> None:
        if (
            status == QuoteStatus.ACCEPTE.value
            and quote.valid_until < self._clock.today()
        ):
            raise ValidationError(
                f"quote {quote.number} expired on {quote.valid_until.isoformat()}",
                field="valid_until",
            )
        self._transition(uow, quote, status)
        now = self._clock.now()
        if status == QuoteStatus.ENVOYE.value:
            quote.sent_at = now
        elif status in _DECIDED:
            quote.decided_at = now
