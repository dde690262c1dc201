"""
Purchase tests.

Stock comes in at creation, one INBOUND movement per line; cancelling
reverses it, and is refused when the received goods are gone.
"""

from decimal import Decimal

import pytest

from stock_kernel.domain.lines import CatalogLine, FreeTextLine
from stock_kernel.exceptions import (
    CrossTenantAccessError,
    DocumentHasMovementsError,
    InsufficientStockError,
    InvalidTransitionError,
    ValidationError,
)
from stock_kernel.models.movement import MovementKind
from stock_kernel.selectors.movement_selector import MovementSelector
from stock_kernel.services.sequence_service import DocumentType, SequenceService
from stock_modules.purchasing.workflows import PurchaseStatus


def _quantity(session, item) -> int:
    session.refresh(item)
    return item.quantity


class TestCreatePurchase:
    def test_purchase_adds_stock(self, session, purchase_service, make_item, ctx, tenant):
        item = make_item(quantity=5)

        purchase = purchase_service.create_purchase(
            ctx, [CatalogLine(item.id, 10, Decimal("4.50"))], supplier_ref="ACME"
        )

        assert purchase.number == "P-0001"
        assert purchase.status == PurchaseStatus.PAYEE.value
        assert purchase.total == Decimal("45.00")
        assert _quantity(session, item) == 15

        movements = MovementSelector(session).list_movements(
            tenant.id, document_ref="P-0001"
        )
        assert len(movements) == 1
        assert movements[0].kind is MovementKind.INBOUND
        assert movements[0].quantity_before == 5
        assert movements[0].quantity_after == 15

    def test_one_movement_per_line(self, session, purchase_service, make_item, ctx, tenant):
        a, b = make_item(), make_item()
        purchase_service.create_purchase(
            ctx,
            [
                CatalogLine(a.id, 2, Decimal("1")),
                CatalogLine(b.id, 3, Decimal("1")),
                CatalogLine(a.id, 4, Decimal("1")),
            ],
        )
        assert MovementSelector(session).count_for_document(tenant.id, "P-0001") == 3
        assert _quantity(session, a) == 6
        assert _quantity(session, b) == 3

    def test_numbers_increase(self, purchase_service, make_item, ctx):
        item = make_item()
        numbers = [
            purchase_service.create_purchase(
                ctx, [CatalogLine(item.id, 1, Decimal("1"))]
            ).number
            for _ in range(3)
        ]
        assert numbers == ["P-0001", "P-0002", "P-0003"]

    @pytest.mark.parametrize("status", ["EN_ATTENTE", "PAYEE"])
    def test_every_creation_state_receives_stock(
        self, session, purchase_service, make_item, ctx, tenant, status
    ):
        item = make_item()
        purchase = purchase_service.create_purchase(
            ctx, [CatalogLine(item.id, 2, Decimal("1"))], status=status
        )
        assert purchase.status == status
        movements = MovementSelector(session).list_movements(
            tenant.id, document_ref=purchase.number
        )
        assert [(m.kind, m.quantity_delta) for m in movements] == [(MovementKind.INBOUND, 2)]
        assert _quantity(session, item) == 2

    def test_cannot_be_created_cancelled(self, purchase_service, make_item, ctx):
        item = make_item()
        with pytest.raises(ValidationError) as exc_info:
            purchase_service.create_purchase(
                ctx, [CatalogLine(item.id, 1, Decimal("1"))], status="ANNULEE"
            )
        assert exc_info.value.field == "status"

    def test_free_text_line_rejected(self, purchase_service, make_item, ctx):
        item = make_item()
        with pytest.raises(ValidationError) as exc_info:
            purchase_service.create_purchase(
                ctx,
                [CatalogLine(item.id, 1, Decimal("1")), FreeTextLine("Freight", 1, Decimal("9"))],
            )
        assert exc_info.value.line_index == 1

    def test_foreign_item_consumes_no_number(
        self, session, purchase_service, make_item, ctx, other_ctx, tenant, config
    ):
        foreign = make_item(context=other_ctx)
        with pytest.raises(CrossTenantAccessError):
            purchase_service.create_purchase(ctx, [CatalogLine(foreign.id, 1, Decimal("1"))])
        sequences = SequenceService(session, config.numbering)
        assert sequences.current_value(tenant.id, DocumentType.PURCHASE) == 0


class TestPurchaseStatus:
    def test_pay_pending_purchase_moves_nothing(
        self, session, purchase_service, make_item, ctx, tenant
    ):
        item = make_item()
        purchase = purchase_service.create_purchase(
            ctx, [CatalogLine(item.id, 4, Decimal("1"))], status="EN_ATTENTE"
        )
        purchase_service.update_purchase_status(ctx, purchase.id, "PAYEE")
        assert MovementSelector(session).count_for_document(tenant.id, purchase.number) == 1
        assert _quantity(session, item) == 4

    def test_cancel_reverses_stock(self, session, purchase_service, make_item, ctx, tenant):
        item = make_item(quantity=5)
        purchase = purchase_service.create_purchase(
            ctx, [CatalogLine(item.id, 10, Decimal("1"))]
        )

        cancelled = purchase_service.update_purchase_status(ctx, purchase.id, "ANNULEE")

        assert cancelled.status == "ANNULEE"
        assert _quantity(session, item) == 5
        reversal = MovementSelector(session).list_movements(
            tenant.id, document_ref=purchase.number, kind=MovementKind.OUTBOUND
        )
        assert [m.quantity_delta for m in reversal] == [-10]

    def test_cancel_refused_when_goods_consumed(
        self, session, purchase_service, item_service, make_item, ctx
    ):
        item = make_item(quantity=5)
        purchase = purchase_service.create_purchase(
            ctx, [CatalogLine(item.id, 10, Decimal("1"))]
        )
        item_service.adjust_stock(ctx, item.id, MovementKind.OUTBOUND, -12, "Counter sale")

        with pytest.raises(InsufficientStockError):
            purchase_service.update_purchase_status(ctx, purchase.id, "ANNULEE")

        assert purchase_service.get(ctx, purchase.id).status == "PAYEE"
        assert _quantity(session, item) == 3

    def test_cancelled_purchase_is_terminal(self, purchase_service, make_item, ctx):
        item = make_item()
        purchase = purchase_service.create_purchase(
            ctx, [CatalogLine(item.id, 1, Decimal("1"))]
        )
        purchase_service.update_purchase_status(ctx, purchase.id, "ANNULEE")
        with pytest.raises(InvalidTransitionError):
            purchase_service.update_purchase_status(ctx, purchase.id, "PAYEE")


class TestDeletePurchase:
    def test_purchase_with_movements_cannot_be_deleted(
        self, purchase_service, make_item, ctx
    ):
        item = make_item()
        purchase = purchase_service.create_purchase(
            ctx, [CatalogLine(item.id, 2, Decimal("1"))]
        )
        with pytest.raises(DocumentHasMovementsError) as exc_info:
            purchase_service.delete_purchase(ctx, purchase.id)
        assert exc_info.value.movement_count == 1
