"""
Stock Ledger tests.

Every quantity change goes through ``StockLedger.apply``: one movement per
call, sign checked against the kind, before/after chained, tenant checked.
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from stock_kernel.exceptions import (
    CrossTenantAccessError,
    InsufficientStockError,
    MovementSignError,
    NotFoundError,
)
from stock_kernel.models.movement import MovementKind, StockMovement
from stock_kernel.selectors.movement_selector import MovementSelector
from stock_kernel.services.stock_ledger import StockLedger, StockRequirement, check_sign


@pytest.fixture
def ledger(session, deterministic_clock):
    return StockLedger(session, deterministic_clock)


def _movement_count(session, item_id) -> int:
    return session.execute(
        select(func.count(StockMovement.id)).where(StockMovement.item_id == item_id)
    ).scalar_one()


class TestCheckSign:
    @pytest.mark.parametrize(
        "kind, delta",
        [
            (MovementKind.INBOUND, -1),
            (MovementKind.RETURN, -3),
            (MovementKind.OUTBOUND, 2),
            (MovementKind.TRANSFER, 1),
            (MovementKind.ADJUSTMENT, 0),
            (MovementKind.INVENTORY_CORRECTION, 0),
        ],
    )
    def test_rejected(self, kind, delta):
        with pytest.raises(MovementSignError):
            check_sign(kind, delta)

    @pytest.mark.parametrize(
        "kind, delta",
        [
            (MovementKind.INBOUND, 4),
            (MovementKind.RETURN, 1),
            (MovementKind.OUTBOUND, -2),
            (MovementKind.TRANSFER, -1),
            (MovementKind.ADJUSTMENT, -7),
            (MovementKind.ADJUSTMENT, 7),
            (MovementKind.INVENTORY_CORRECTION, -3),
        ],
    )
    def test_accepted(self, kind, delta):
        check_sign(kind, delta)

    def test_non_integer_delta(self):
        with pytest.raises(MovementSignError):
            check_sign(MovementKind.INBOUND, 1.5)


class TestApply:
    def test_movement_records_before_and_after(
        self, ledger, make_item, tenant, test_actor_id
    ):
        item = make_item(quantity=5)
        movement = ledger.apply(
            item.id, tenant.id, MovementKind.INBOUND, 10,
            "Purchase P-0001", "P-0001", test_actor_id,
        )
        assert movement.quantity_before == 5
        assert movement.quantity_after == 15
        assert movement.quantity_delta == 10
        assert movement.kind == "inbound"
        assert movement.document_ref == "P-0001"
        assert ledger.lock_item(item.id, tenant.id).quantity == 15

    def test_versions_chain(self, ledger, make_item, tenant, test_actor_id):
        item = make_item(quantity=5)
        first = ledger.apply(
            item.id, tenant.id, MovementKind.OUTBOUND, -2, "sale", None, test_actor_id
        )
        second = ledger.apply(
            item.id, tenant.id, MovementKind.RETURN, 1, "return", None, test_actor_id
        )
        # Opening stock was version 1.
        assert (first.item_version, second.item_version) == (2, 3)
        assert second.quantity_before == first.quantity_after == 3
        assert second.quantity_after == 4

    def test_accepts_item_instance(self, ledger, make_item, tenant, test_actor_id):
        item = make_item()
        movement = ledger.apply(
            item, tenant.id, "adjustment", 3, "found", None, test_actor_id
        )
        assert movement.quantity_after == 3

    def test_sign_mismatch_writes_nothing(
        self, ledger, session, make_item, tenant, test_actor_id
    ):
        item = make_item(quantity=5)
        with pytest.raises(MovementSignError):
            ledger.apply(
                item.id, tenant.id, MovementKind.INBOUND, -5, "x", None, test_actor_id
            )
        assert _movement_count(session, item.id) == 1

    def test_negative_allowed_by_default(self, ledger, make_item, tenant, test_actor_id):
        item = make_item(quantity=2)
        movement = ledger.apply(
            item.id, tenant.id, MovementKind.ADJUSTMENT, -5, "shrinkage", None,
            test_actor_id,
        )
        assert movement.quantity_after == -3

    def test_negative_refused_when_asked(
        self, ledger, make_item, tenant, test_actor_id
    ):
        item = make_item(quantity=2)
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.apply(
                item.id, tenant.id, MovementKind.OUTBOUND, -3, "sale", None,
                test_actor_id, allow_negative=False,
            )
        assert exc_info.value.available == 2
        assert exc_info.value.requested == 3
        assert exc_info.value.shortfall == 1

    def test_other_tenant_item(self, ledger, make_item, other_ctx, tenant, test_actor_id):
        foreign = make_item(quantity=4, context=other_ctx)
        with pytest.raises(CrossTenantAccessError):
            ledger.apply(
                foreign.id, tenant.id, MovementKind.INBOUND, 1, "x", None, test_actor_id
            )

    def test_other_tenant_item_instance(
        self, ledger, make_item, other_ctx, tenant, test_actor_id
    ):
        foreign = make_item(quantity=4, context=other_ctx)
        with pytest.raises(CrossTenantAccessError):
            ledger.apply(
                foreign, tenant.id, MovementKind.INBOUND, 1, "x", None, test_actor_id
            )

    def test_unknown_item(self, ledger, tenant, test_actor_id):
        with pytest.raises(NotFoundError):
            ledger.apply(
                uuid4(), tenant.id, MovementKind.INBOUND, 1, "x", None, test_actor_id
            )


class TestCheckAvailable:
    def test_lines_for_same_item_are_summed(self, ledger, make_item, tenant):
        item = make_item(quantity=5)
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.check_available(
                [StockRequirement(item.id, 3), StockRequirement(item.id, 3)],
                tenant.id,
            )
        assert exc_info.value.requested == 6
        assert exc_info.value.available == 5

    def test_every_offender_reported(self, ledger, make_item, tenant):
        short_a = make_item(quantity=1, reference="A")
        enough = make_item(quantity=10, reference="B")
        short_c = make_item(quantity=0, reference="C")
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.check_available(
                [
                    StockRequirement(short_a.id, 2),
                    StockRequirement(enough.id, 2),
                    StockRequirement(short_c.id, 1),
                ],
                tenant.id,
            )
        references = {s[1] for s in exc_info.value.shortfalls}
        assert references == {"A", "C"}

    def test_returns_locked_items(self, ledger, make_item, tenant):
        item = make_item(quantity=5)
        locked = ledger.check_available([StockRequirement(item.id, 5)], tenant.id)
        assert locked[item.id].quantity == 5


class TestMovementSelector:
    def test_conservation_holds_after_mixed_movements(
        self, ledger, session, make_item, tenant, test_actor_id
    ):
        item = make_item(quantity=10)
        for kind, delta in [
            (MovementKind.OUTBOUND, -4),
            (MovementKind.RETURN, 1),
            (MovementKind.INVENTORY_CORRECTION, -2),
        ]:
            ledger.apply(item.id, tenant.id, kind, delta, "r", None, test_actor_id)

        report = MovementSelector(session).verify_conservation(tenant.id, item.id)
        assert report.holds
        assert report.quantity_on_hand == report.movement_total == 5
        assert report.movement_count == 4

    def test_list_filters(self, ledger, session, make_item, tenant, test_actor_id):
        item = make_item(quantity=10)
        ledger.apply(item.id, tenant.id, "outbound", -1, "s", "F-0001", test_actor_id)
        ledger.apply(item.id, tenant.id, "outbound", -2, "s", "F-0002", test_actor_id)
        selector = MovementSelector(session)

        outbound = selector.list_movements(tenant.id, item_id=item.id, kind="outbound")
        assert [m.quantity_delta for m in outbound] == [-2, -1]
        assert len(selector.list_movements(tenant.id, document_ref="F-0001")) == 1
        assert len(selector.list_movements(tenant.id, limit=1)) == 1
        assert selector.count_for_document(tenant.id, "F-0002") == 1

    def test_other_tenant_sees_nothing(
        self, ledger, session, make_item, tenant, other_tenant
    ):
        item = make_item(quantity=10)
        assert MovementSelector(session).list_movements(other_tenant.id) == []
        assert MovementSelector(session).list_movements(tenant.id, item_id=item.id)

    def test_get_movement_scoped_by_tenant(
        self, ledger, session, make_item, tenant, other_tenant, test_actor_id
    ):
        item = make_item(quantity=3)
        movement = ledger.apply(
            item.id, tenant.id, MovementKind.OUTBOUND, -1, "s", "F-0009", test_actor_id
        )
        selector = MovementSelector(session)

        record = selector.get_movement(tenant.id, movement.id)
        assert (record.quantity_before, record.quantity_after) == (3, 2)
        assert record.document_ref == "F-0009"
        assert selector.get_movement(other_tenant.id, movement.id) is None
