from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from ecomarket_orders.domain.models import (
    ALLOWED_TRANSITIONS, Order, OrderItem, OrderStatus, UserProfile, InventorySnapshot,
)


def make_order(**overrides):
    order = Order.place(
        user_id=1,
        shipping_address_id=10,
        items=[
            OrderItem(product_id=1, quantity=2, unit_price=Decimal("10000")),
            OrderItem(product_id=2, quantity=3, unit_price=Decimal("1.50")),
        ],
        shipping_cost=Decimal("5990"),
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    return order.model_copy(update=overrides)


class TestOrderTotals:
    def test_place_computes_totals(self):
        order = make_order()

        assert order.subtotal == Decimal("20004.50")
        assert order.total_amount == Decimal("25994.50")
        assert order.status == OrderStatus.PENDING_PAYMENT

    def test_inconsistent_total_rejected(self):
        with pytest.raises(ValidationError):
            Order(
                user_id=1, shipping_address_id=1, created_at=datetime.now(timezone.utc),
                subtotal=Decimal("100"), shipping_cost=Decimal("10"), total_amount=Decimal("100"),
                items=[OrderItem(product_id=1, quantity=1, unit_price=Decimal("100"))],
            )

    def test_subtotal_must_match_items(self):
        with pytest.raises(ValidationError):
            Order(
                user_id=1, shipping_address_id=1, created_at=datetime.now(timezone.utc),
                subtotal=Decimal("90"), shipping_cost=Decimal("10"), total_amount=Decimal("100"),
                items=[OrderItem(product_id=1, quantity=1, unit_price=Decimal("100"))],
            )

    def test_item_quantity_positive(self):
        with pytest.raises(ValidationError):
            OrderItem(product_id=1, quantity=0, unit_price=Decimal("1"))


class TestStatusGraph:
    def test_terminal_states(self):
        assert ALLOWED_TRANSITIONS[OrderStatus.DELIVERED] == frozenset()
        assert ALLOWED_TRANSITIONS[OrderStatus.CANCELLED] == frozenset()

    def test_forward_path(self):
        assert make_order().can_transition_to(OrderStatus.CONFIRMED)
        assert not make_order().can_transition_to(OrderStatus.SHIPPED)
        assert not make_order(status=OrderStatus.DELIVERED).can_transition_to(OrderStatus.CONFIRMED)

    @pytest.mark.parametrize("status,payment_id,expected", [
        (OrderStatus.PENDING_PAYMENT, None, False),
        (OrderStatus.PENDING_PAYMENT, 5, True),
        (OrderStatus.CONFIRMED, 5, True),
        (OrderStatus.SHIPPED, 5, True),
        (OrderStatus.DELIVERED, 5, False),
        (OrderStatus.CANCELLED, 5, False),
    ])
    def test_holds_stock(self, status, payment_id, expected):
        assert make_order(status=status, payment_transaction_id=payment_id).holds_stock() is expected

    def test_can_resume_payment(self):
        assert make_order().can_resume_payment()
        assert not make_order(payment_transaction_id=3).can_resume_payment()
        assert not make_order(status=OrderStatus.CANCELLED).can_resume_payment()


class TestCollaboratorRecords:
    def test_user_profile_from_camel_case(self):
        user = UserProfile(**{"id": 1, "firstName": "Ana", "defaultAddressId": None})
        assert user.first_name == "Ana"
        assert user.default_address_id is None

    def test_inventory_snapshot(self):
        snapshot = InventorySnapshot(**{"productId": 1, "availableQuantity": 4, "location": "SCL"})
        assert snapshot.available_quantity == 4
