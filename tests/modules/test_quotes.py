"""
Quote tests.

Quotes never move stock.  An accepted quote converts once into a draft
invoice; deleting that draft frees the quote again.
"""

from datetime import date
from decimal import Decimal

import pytest

from stock_kernel.domain.lines import CatalogLine, FreeTextLine
from stock_kernel.exceptions import (
    DocumentNotEditableError,
    InvalidTransitionError,
    NotFoundError,
    QuoteAlreadyConvertedError,
    ValidationError,
)
from stock_kernel.selectors.movement_selector import MovementSelector
from stock_modules.invoicing.workflows import InvoiceStatus
from stock_modules.quotes.workflows import QuoteStatus


@pytest.fixture
def accepted_quote(quote_service, make_item, ctx):
    item = make_item(quantity=10)
    quote = quote_service.create_quote(
        ctx,
        [
            CatalogLine(item.id, 2, Decimal("30"), tax_rate=Decimal("20")),
            FreeTextLine("Installation", 1, Decimal("40")),
        ],
        customer_ref="C-7",
        discount=Decimal("10"),
    )
    quote_service.send_quote(ctx, quote.id)
    quote_service.accept_quote(ctx, quote.id)
    return quote, item


class TestCreateQuote:
    def test_defaults(self, session, quote_service, make_item, ctx, tenant):
        item = make_item(quantity=1)
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 5, Decimal("3"))])
        assert quote.number == "D-0001"
        assert quote.status == QuoteStatus.BROUILLON.value
        assert quote.valid_until == date(2024, 1, 31)
        assert quote.total == Decimal("15.00")
        assert MovementSelector(session).count_for_document(tenant.id, "D-0001") == 0

    def test_quote_may_exceed_stock(self, quote_service, make_item, ctx):
        item = make_item(quantity=0)
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 500, Decimal("1"))])
        assert quote.status == "BROUILLON"

    def test_validity_in_the_past_rejected(self, quote_service, make_item, ctx):
        item = make_item()
        with pytest.raises(ValidationError) as exc_info:
            quote_service.create_quote(
                ctx, [CatalogLine(item.id, 1, Decimal("1"))], valid_until=date(2023, 12, 31)
            )
        assert exc_info.value.field == "valid_until"

    def test_update_draft(self, quote_service, make_item, ctx):
        item = make_item()
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 1, Decimal("1"))])
        updated = quote_service.update_quote(
            ctx,
            quote.id,
            [FreeTextLine("Survey", 2, Decimal("15"))],
            conditions="50% upfront",
        )
        assert updated.total == Decimal("30.00")
        assert updated.conditions == "50% upfront"
        assert len(updated.lines) == 1

    def test_sent_quote_not_editable(self, quote_service, make_item, ctx):
        item = make_item()
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 1, Decimal("1"))])
        quote_service.send_quote(ctx, quote.id)
        with pytest.raises(DocumentNotEditableError):
            quote_service.update_quote(ctx, quote.id, [CatalogLine(item.id, 2, Decimal("1"))])


class TestQuoteDecisions:
    def test_send_and_accept(self, quote_service, make_item, ctx):
        item = make_item()
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 1, Decimal("1"))])
        sent = quote_service.send_quote(ctx, quote.id)
        assert sent.sent_at is not None
        accepted = quote_service.accept_quote(ctx, quote.id)
        assert accepted.status == "ACCEPTE"
        assert accepted.decided_at is not None

    def test_draft_cannot_be_accepted(self, quote_service, make_item, ctx):
        item = make_item()
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 1, Decimal("1"))])
        with pytest.raises(InvalidTransitionError):
            quote_service.accept_quote(ctx, quote.id)

    def test_accept_after_validity_rejected(
        self, quote_service, make_item, ctx, deterministic_clock
    ):
        item = make_item()
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 1, Decimal("1"))])
        quote_service.send_quote(ctx, quote.id)
        deterministic_clock.advance_days(31)

        with pytest.raises(ValidationError) as exc_info:
            quote_service.accept_quote(ctx, quote.id)
        assert exc_info.value.field == "valid_until"
        assert quote_service.get(ctx, quote.id).status == "ENVOYE"

    def test_refuse(self, quote_service, make_item, ctx):
        item = make_item()
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 1, Decimal("1"))])
        quote_service.send_quote(ctx, quote.id)
        assert quote_service.refuse_quote(ctx, quote.id).status == "REFUSE"

    def test_expire_overdue(self, quote_service, make_item, ctx, deterministic_clock):
        item = make_item()
        line = [CatalogLine(item.id, 1, Decimal("1"))]
        short = quote_service.create_quote(ctx, line, valid_until=date(2024, 1, 5))
        sent_short = quote_service.create_quote(ctx, line, valid_until=date(2024, 1, 3))
        quote_service.send_quote(ctx, sent_short.id)
        long = quote_service.create_quote(ctx, line)
        decided = quote_service.create_quote(ctx, line, valid_until=date(2024, 1, 2))
        quote_service.send_quote(ctx, decided.id)
        quote_service.refuse_quote(ctx, decided.id)

        deterministic_clock.advance_days(10)
        expired = quote_service.expire_overdue_quotes(ctx)

        assert {q.id for q in expired} == {short.id, sent_short.id}
        assert quote_service.get(ctx, short.id).status == "EXPIRE"
        assert quote_service.get(ctx, long.id).status == "BROUILLON"
        assert quote_service.get(ctx, decided.id).status == "REFUSE"

    def test_expire_open_quote(self, quote_service, make_item, ctx):
        item = make_item()
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 1, Decimal("1"))])
        assert quote_service.expire_quote(ctx, quote.id).status == "EXPIRE"
        with pytest.raises(InvalidTransitionError):
            quote_service.update_quote_status(ctx, quote.id, "ENVOYE")

    def test_status_by_name(self, quote_service, make_item, ctx):
        item = make_item()
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 1, Decimal("1"))])
        quote_service.update_quote_status(ctx, quote.id, "ENVOYE")
        refused = quote_service.update_quote_status(ctx, quote.id, QuoteStatus.REFUSE)
        assert refused.status == "REFUSE"

    def test_delete_draft_quote(self, quote_service, make_item, ctx):
        item = make_item()
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 1, Decimal("1"))])
        quote_service.delete_quote(ctx, quote.id)
        with pytest.raises(NotFoundError):
            quote_service.get(ctx, quote.id)


class TestConvertQuote:
    def test_converts_to_draft_invoice(
        self, session, quote_service, accepted_quote, ctx, tenant
    ):
        quote, item = accepted_quote

        invoice = quote_service.convert_quote_to_invoice(ctx, quote.id)

        assert invoice.number == "F-0001"
        assert invoice.status == InvoiceStatus.BROUILLON.value
        assert invoice.quote_id == quote.id
        assert invoice.customer_ref == "C-7"
        assert invoice.discount == Decimal("10.00")
        assert invoice.total == quote.total
        assert [line.quantity for line in invoice.lines] == [2, 1]
        assert quote_service.get(ctx, quote.id).converted_invoice_id == invoice.id
        assert MovementSelector(session).count_for_document(tenant.id, invoice.number) == 0

    def test_issuing_converted_invoice_moves_stock(
        self, session, quote_service, invoice_service, accepted_quote, ctx
    ):
        quote, item = accepted_quote
        invoice = quote_service.convert_quote_to_invoice(ctx, quote.id)
        invoice_service.update_invoice_status(ctx, invoice.id, "EN_ATTENTE")
        session.refresh(item)
        assert item.quantity == 8

    def test_converts_only_once(self, quote_service, accepted_quote, ctx):
        quote, _ = accepted_quote
        invoice = quote_service.convert_quote_to_invoice(ctx, quote.id)
        with pytest.raises(QuoteAlreadyConvertedError) as exc_info:
            quote_service.convert_quote_to_invoice(ctx, quote.id)
        assert exc_info.value.invoice_id == str(invoice.id)

    def test_only_accepted_quotes_convert(self, quote_service, make_item, ctx):
        item = make_item()
        quote = quote_service.create_quote(ctx, [CatalogLine(item.id, 1, Decimal("1"))])
        with pytest.raises(ValidationError):
            quote_service.convert_quote_to_invoice(ctx, quote.id)

    def test_deleting_draft_invoice_frees_quote(
        self, quote_service, invoice_service, accepted_quote, ctx
    ):
        quote, _ = accepted_quote
        first = quote_service.convert_quote_to_invoice(ctx, quote.id)
        invoice_service.delete_invoice(ctx, first.id)
        assert quote_service.get(ctx, quote.id).converted_invoice_id is None

        second = quote_service.convert_quote_to_invoice(ctx, quote.id)
        assert second.number == "F-0002"
