"""
Item service tests.

Items start at zero; opening stock and manual changes are ledger
movements.  Manual OUTBOUND/TRANSFER never go below zero.
"""

from decimal import Decimal

import pytest

from stock_kernel.exceptions import (
    InsufficientStockError,
    MovementSignError,
    ValidationError,
)
from stock_kernel.models.movement import MovementKind
from stock_kernel.selectors.item_selector import ItemSelector
from stock_kernel.selectors.movement_selector import MovementSelector


class TestCreateItem:
    def test_opening_stock_is_a_movement(self, session, make_item, tenant):
        item = make_item(quantity=12, reference="BRK-01")
        assert item.quantity == 12
        assert item.ledger_version == 1

        movements = MovementSelector(session).list_movements(tenant.id, item_id=item.id)
        assert len(movements) == 1
        assert movements[0].kind is MovementKind.ADJUSTMENT
        assert movements[0].quantity_before == 0
        assert movements[0].quantity_after == 12
        assert movements[0].document_ref == "BRK-01"

    def test_no_opening_stock_no_movement(self, session, make_item, tenant):
        item = make_item()
        assert item.quantity == 0
        assert MovementSelector(session).list_movements(tenant.id, item_id=item.id) == []

    def test_reference_unique_per_tenant(self, make_item):
        make_item(reference="DUP")
        with pytest.raises(ValidationError) as exc_info:
            make_item(reference="DUP")
        assert exc_info.value.field == "reference"

    def test_same_reference_in_two_tenants(self, make_item, other_ctx):
        mine = make_item(reference="SHARED")
        theirs = make_item(reference="SHARED", context=other_ctx)
        assert mine.id != theirs.id

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"reference": " "}, "reference"),
            ({"name": ""}, "name"),
            ({"sale_price": Decimal("-1")}, "sale_price"),
            ({"cost_price": Decimal("-1")}, "cost_price"),
            ({"reorder_threshold": -1}, "reorder_threshold"),
            ({"opening_quantity": -4}, "opening_quantity"),
        ],
    )
    def test_validation(self, item_service, ctx, kwargs, field):
        args = {
            "reference": "R-1",
            "name": "Rotor",
            "sale_price": Decimal("10"),
            **kwargs,
        }
        with pytest.raises(ValidationError) as exc_info:
            item_service.create_item(ctx, **args)
        assert exc_info.value.field == field


class TestAdjustStock:
    def test_manual_adjustment_either_sign(self, item_service, make_item, ctx):
        item = make_item(quantity=3)
        movement = item_service.adjust_stock(
            ctx, item.id, MovementKind.ADJUSTMENT, -5, "Broken in storage"
        )
        assert movement.quantity_after == -2

    def test_manual_outbound_cannot_go_negative(
        self, session, item_service, make_item, ctx, tenant
    ):
        item = make_item(quantity=3)
        with pytest.raises(InsufficientStockError):
            item_service.adjust_stock(ctx, item.id, "outbound", -4, "Counter sale")
        assert ItemSelector(session).get(tenant.id, item.id).quantity == 3
        assert len(MovementSelector(session).list_movements(tenant.id, item_id=item.id)) == 1

    def test_transfer_out(self, item_service, make_item, ctx):
        item = make_item(quantity=3)
        movement = item_service.adjust_stock(
            ctx, item.id, MovementKind.TRANSFER, -3, "To workshop"
        )
        assert movement.quantity_after == 0

    def test_reason_required(self, item_service, make_item, ctx):
        item = make_item(quantity=3)
        with pytest.raises(ValidationError) as exc_info:
            item_service.adjust_stock(ctx, item.id, MovementKind.ADJUSTMENT, 1, " ")
        assert exc_info.value.field == "reason"

    def test_sign_checked(self, item_service, make_item, ctx):
        item = make_item(quantity=3)
        with pytest.raises(MovementSignError):
            item_service.adjust_stock(ctx, item.id, MovementKind.RETURN, -1, "oops")


class TestItemQueries:
    def test_low_stock(self, session, make_item, tenant):
        make_item(quantity=10, reference="OK", reorder_threshold=5)
        low = make_item(quantity=2, reference="LOW", reorder_threshold=5)
        at = make_item(quantity=5, reference="AT", reorder_threshold=5)

        result = ItemSelector(session).low_stock(tenant.id)
        assert [r.reference for r in result] == ["LOW", "AT"]
        assert result[0].missing == 3
        assert low.is_low_stock and at.is_low_stock

    def test_deactivated_item_hidden(self, session, item_service, make_item, ctx, tenant):
        item = make_item(quantity=0, reorder_threshold=2)
        item_service.deactivate_item(ctx, item.id)
        selector = ItemSelector(session)
        assert item.id not in {i.id for i in selector.active_items(tenant.id)}
        assert selector.low_stock(tenant.id) == []
        assert selector.get(tenant.id, item.id).is_active is False
