"""
Credit note tests.

Only catalog lines flagged ``return_to_stock`` come back into stock, and
only when the credit note is validated.
"""

from decimal import Decimal

import pytest

from stock_kernel.domain.lines import CatalogLine, FreeTextLine
from stock_kernel.exceptions import (
    CrossTenantAccessError,
    DocumentNotEditableError,
    InvalidTransitionError,
    ValidationError,
)
from stock_kernel.models.movement import MovementKind
from stock_kernel.selectors.movement_selector import MovementSelector
from stock_modules.credit_notes.workflows import CreditNoteStatus


def _quantity(session, item) -> int:
    session.refresh(item)
    return item.quantity


@pytest.fixture
def sold_invoice(invoice_service, make_item, ctx):
    item = make_item(quantity=10)
    invoice = invoice_service.create_invoice(
        ctx,
        [
            CatalogLine(item.id, 4, Decimal("12")),
            FreeTextLine("Delivery", 1, Decimal("8")),
        ],
        customer_ref="C-3",
        status="PAYEE",
    )
    return invoice, item


class TestCreateCreditNote:
    def test_pending_credit_note_moves_nothing(
        self, session, credit_note_service, make_item, ctx, tenant
    ):
        item = make_item(quantity=2)
        credit_note = credit_note_service.create_credit_note(
            ctx, "Damaged in transit", [CatalogLine(item.id, 1, Decimal("5"))]
        )
        assert credit_note.number == "AV-0001"
        assert credit_note.status == CreditNoteStatus.EN_ATTENTE.value
        assert credit_note.reason == "Damaged in transit"
        assert MovementSelector(session).count_for_document(tenant.id, "AV-0001") == 0
        assert _quantity(session, item) == 2

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_reason_required(self, credit_note_service, make_item, ctx, reason):
        item = make_item()
        with pytest.raises(ValidationError) as exc_info:
            credit_note_service.create_credit_note(
                ctx, reason, [CatalogLine(item.id, 1, Decimal("5"))]
            )
        assert exc_info.value.field == "reason"

    def test_draft_invoice_cannot_be_credited(
        self, credit_note_service, invoice_service, make_item, ctx
    ):
        item = make_item(quantity=5)
        draft = invoice_service.create_invoice(
            ctx, [CatalogLine(item.id, 1, Decimal("5"))], status="BROUILLON"
        )
        with pytest.raises(ValidationError) as exc_info:
            credit_note_service.create_credit_note_from_invoice(ctx, draft.id, "Return")
        assert exc_info.value.field == "invoice_id"

    def test_foreign_invoice_rejected(
        self, credit_note_service, invoice_service, make_item, ctx, other_ctx
    ):
        foreign_item = make_item(quantity=5, context=other_ctx)
        foreign_invoice = invoice_service.create_invoice(
            other_ctx, [CatalogLine(foreign_item.id, 1, Decimal("5"))]
        )

        with pytest.raises(CrossTenantAccessError):
            credit_note_service.create_credit_note_from_invoice(
                ctx, foreign_invoice.id, "Return"
            )

    def test_from_invoice_copies_lines(self, credit_note_service, sold_invoice, ctx):
        invoice, _ = sold_invoice
        credit_note = credit_note_service.create_credit_note_from_invoice(
            ctx, invoice.id, "Customer changed mind"
        )
        assert credit_note.invoice_id == invoice.id
        assert credit_note.customer_ref == "C-3"
        assert credit_note.total == invoice.total
        assert [line.return_to_stock for line in credit_note.lines] == [True, False]


class TestValidateCreditNote:
    def test_only_flagged_lines_return(
        self, session, credit_note_service, make_item, ctx, tenant
    ):
        flagged = make_item(quantity=1)
        unflagged = make_item(quantity=1)
        credit_note = credit_note_service.create_credit_note(
            ctx,
            "Partial return",
            [
                CatalogLine(flagged.id, 3, Decimal("10"), return_to_stock=True),
                CatalogLine(unflagged.id, 2, Decimal("10"), return_to_stock=False),
                FreeTextLine("Goodwill", 1, Decimal("5")),
            ],
        )

        validated = credit_note_service.validate_credit_note(ctx, credit_note.id)

        assert validated.status == "VALIDE"
        assert validated.validated_at is not None
        movements = MovementSelector(session).list_movements(
            tenant.id, document_ref=credit_note.number
        )
        assert [(m.item_id, m.kind, m.quantity_delta) for m in movements] == [
            (flagged.id, MovementKind.RETURN, 3)
        ]
        assert _quantity(session, flagged) == 4
        assert _quantity(session, unflagged) == 1

    def test_validation_returns_invoice_goods(
        self, session, credit_note_service, invoice_service, sold_invoice, ctx
    ):
        invoice, item = sold_invoice
        assert _quantity(session, item) == 6
        credit_note = credit_note_service.create_credit_note_from_invoice(
            ctx, invoice.id, "Return"
        )
        credit_note_service.validate_credit_note(ctx, credit_note.id)
        assert _quantity(session, item) == 10

        with pytest.raises(ValidationError):
            invoice_service.update_invoice_status(ctx, invoice.id, "ANNULEE")
        assert _quantity(session, item) == 10

    def test_invoice_goods_credited_back_once(
        self, session, credit_note_service, sold_invoice, ctx
    ):
        invoice, item = sold_invoice
        first = credit_note_service.create_credit_note_from_invoice(ctx, invoice.id, "Return")
        second = credit_note_service.create_credit_note_from_invoice(ctx, invoice.id, "Again")
        credit_note_service.validate_credit_note(ctx, first.id)

        with pytest.raises(ValidationError) as exc_info:
            credit_note_service.validate_credit_note(ctx, second.id)
        assert exc_info.value.field == "lines"
        assert exc_info.value.line_index == 0
        assert credit_note_service.get(ctx, second.id).status == "EN_ATTENTE"
        assert _quantity(session, item) == 10

    def test_partial_credits_up_to_quantity_sold(
        self, session, credit_note_service, sold_invoice, make_item, ctx
    ):
        invoice, item = sold_invoice

        def credit(quantity, credited_item=item):
            return credit_note_service.create_credit_note(
                ctx,
                "Partial return",
                [CatalogLine(credited_item.id, quantity, Decimal("12"))],
                invoice_id=invoice.id,
            )

        credit_note_service.validate_credit_note(ctx, credit(3).id)
        credit_note_service.validate_credit_note(ctx, credit(1).id)
        with pytest.raises(ValidationError):
            credit_note_service.validate_credit_note(ctx, credit(1).id)
        never_sold = make_item(quantity=0)
        with pytest.raises(ValidationError):
            credit_note_service.validate_credit_note(ctx, credit(1, never_sold).id)
        assert _quantity(session, item) == 10
        assert _quantity(session, never_sold) == 0

    def test_cancelled_invoice_blocks_validation(
        self, session, credit_note_service, invoice_service, sold_invoice, ctx
    ):
        invoice, item = sold_invoice
        credit_note = credit_note_service.create_credit_note_from_invoice(
            ctx, invoice.id, "Return"
        )
        invoice_service.update_invoice_status(ctx, invoice.id, "ANNULEE")

        with pytest.raises(ValidationError):
            credit_note_service.validate_credit_note(ctx, credit_note.id)
        assert credit_note_service.get(ctx, credit_note.id).status == "EN_ATTENTE"
        assert _quantity(session, item) == 10

    def test_refund_after_validation(self, credit_note_service, make_item, ctx):
        item = make_item()
        credit_note = credit_note_service.create_credit_note(
            ctx, "Refund", [CatalogLine(item.id, 1, Decimal("5"))]
        )
        credit_note_service.validate_credit_note(ctx, credit_note.id)
        refunded = credit_note_service.mark_credit_note_refunded(ctx, credit_note.id)
        assert refunded.status == "REMBOURSE"
        assert refunded.refunded_at is not None

    def test_status_by_name(self, session, credit_note_service, make_item, ctx):
        item = make_item(quantity=2)
        credit_note = credit_note_service.create_credit_note(
            ctx, "Return", [CatalogLine(item.id, 3, Decimal("5"))]
        )
        validated = credit_note_service.update_credit_note_status(
            ctx, credit_note.id, "VALIDE"
        )
        assert validated.validated_at is not None
        assert _quantity(session, item) == 5
        refunded = credit_note_service.update_credit_note_status(
            ctx, credit_note.id, CreditNoteStatus.REMBOURSE
        )
        assert refunded.status == "REMBOURSE"

    def test_refund_requires_validation(self, credit_note_service, make_item, ctx):
        item = make_item()
        credit_note = credit_note_service.create_credit_note(
            ctx, "Refund", [CatalogLine(item.id, 1, Decimal("5"))]
        )
        with pytest.raises(InvalidTransitionError):
            credit_note_service.mark_credit_note_refunded(ctx, credit_note.id)


class TestDeleteCreditNote:
    def test_delete_pending(self, credit_note_service, make_item, ctx):
        item = make_item()
        credit_note = credit_note_service.create_credit_note(
            ctx, "Typo", [CatalogLine(item.id, 1, Decimal("5"))]
        )
        credit_note_service.delete_credit_note(ctx, credit_note.id)

    def test_validated_cannot_be_deleted(self, credit_note_service, make_item, ctx):
        item = make_item()
        credit_note = credit_note_service.create_credit_note(
            ctx, "Return", [CatalogLine(item.id, 1, Decimal("5"))]
        )
        credit_note_service.validate_credit_note(ctx, credit_note.id)
        with pytest.raises(DocumentNotEditableError):
            credit_note_service.delete_credit_note(ctx, credit_note.id)
