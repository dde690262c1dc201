"""
Property: quantity-on-hand always equals the sum of the item's movements.

Random sequences of manual movements, some of them refused for
insufficient stock, must leave an unbroken movement chain whose total is
the cached quantity.
"""

import pytest

hypothesis = pytest.importorskip("hypothesis")

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from stock_kernel.exceptions import InsufficientStockError
from stock_kernel.models.movement import MovementKind
from stock_kernel.selectors.movement_selector import MovementSelector

_SIGNED = {
    MovementKind.INBOUND: 1,
    MovementKind.RETURN: 1,
    MovementKind.OUTBOUND: -1,
    MovementKind.TRANSFER: -1,
}

_NO_NEGATIVE = (MovementKind.OUTBOUND, MovementKind.TRANSFER)

movement_ops = st.lists(
    st.tuples(
        st.sampled_from(
            [
                MovementKind.INBOUND,
                MovementKind.OUTBOUND,
                MovementKind.ADJUSTMENT,
                MovementKind.RETURN,
                MovementKind.TRANSFER,
            ]
        ),
        st.integers(min_value=1, max_value=25),
        st.booleans(),
    ),
    max_size=15,
)


class TestConservationProperty:
    @given(opening=st.integers(min_value=0, max_value=30), ops=movement_ops)
    @settings(
        max_examples=40,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_quantity_equals_movement_sum(
        self, session, item_service, make_item, ctx, tenant, opening, ops
    ):
        item = make_item(quantity=opening)
        expected = opening
        applied = 1 if opening else 0

        for kind, magnitude, negative in ops:
            sign = _SIGNED.get(kind, -1 if negative else 1)
            delta = sign * magnitude
            if kind in _NO_NEGATIVE and expected + delta < 0:
                with pytest.raises(InsufficientStockError):
                    item_service.adjust_stock(ctx, item.id, kind, delta, "property")
                continue
            item_service.adjust_stock(ctx, item.id, kind, delta, "property")
            expected += delta
            applied += 1

        report = MovementSelector(session).verify_conservation(tenant.id, item.id)
        assert report.holds
        assert report.quantity_on_hand == expected
        assert report.movement_count == applied
