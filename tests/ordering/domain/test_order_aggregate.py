"""Tests for the Order aggregate — placement snapshot and the status state machine."""

from datetime import UTC, datetime

import pytest
from storeflow.errors import InvalidStateError, InvalidTransitionError
from storeflow.ordering.events import (
    OrderCancelled,
    OrderDelivered,
    OrderPlaced,
    OrderShipped,
    OrderStatusChanged,
)
from storeflow.ordering.order import Order, OrderStatus, generate_order_number

ADDRESS = {
    "address_line1": "123 Main St",
    "city": "Springfield",
    "postal_code": "62701",
    "country": "US",
}


def _make_order(**overrides):
    defaults = {
        "store_id": "store-001",
        "customer_id": "cust-001",
        "items_data": [
            {
                "product_id": "prod-001",
                "product_name": "Widget",
                "product_sku": "WID-1",
                "quantity": 2,
                "unit_price": 10.0,
            }
        ],
        "shipping_address": ADDRESS,
        "billing_address": None,
        "pricing": {"subtotal": 20.0, "tax_amount": 2.0, "shipping_amount": 9.99, "total_amount": 31.99},
    }
    defaults.update(overrides)
    return Order.place(**defaults)


def _advance(order, *statuses):
    for status in statuses:
        order.transition_to(status)
    return order


class TestPlace:
    def test_new_order_is_pending(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.order_number.startswith("ORD-")

    def test_items_are_snapshotted(self):
        order = _make_order()
        item = order.items[0]
        assert item.product_name == "Widget"
        assert item.product_sku == "WID-1"
        assert item.total_price == 20.0

    def test_billing_defaults_to_shipping(self):
        order = _make_order()
        assert order.billing_address.city == "Springfield"

    def test_raises_order_placed(self):
        order = _make_order()
        event = next(e for e in order._events if isinstance(e, OrderPlaced))
        assert event.total_amount == 31.99
        assert event.item_count == 1

    def test_order_number_format(self):
        number = generate_order_number(datetime(2024, 3, 5, tzinfo=UTC))
        assert number.startswith("ORD-20240305-")
        assert len(number.split("-")[-1]) == 8


class TestTransitions:
    def test_happy_path_to_delivered(self):
        order = _advance(
            _make_order(),
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        )
        assert order.status == OrderStatus.DELIVERED.value
        assert order.shipped_date is not None
        assert order.delivered_date is not None
        assert any(isinstance(e, OrderShipped) for e in order._events)
        assert any(isinstance(e, OrderDelivered) for e in order._events)

    def test_same_status_is_a_noop(self):
        order = _make_order()
        assert order.transition_to(OrderStatus.PENDING) is False
        assert not any(isinstance(e, OrderStatusChanged) for e in order._events)

    def test_skipping_states_is_rejected(self):
        order = _make_order()
        with pytest.raises(InvalidTransitionError):
            order.transition_to(OrderStatus.SHIPPED)
        assert order.status == OrderStatus.PENDING.value

    def test_delivered_is_terminal(self):
        order = _advance(
            _make_order(),
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        )
        with pytest.raises(InvalidTransitionError):
            order.transition_to(OrderStatus.PROCESSING)

    def test_shipped_date_is_stamped_once(self):
        order = _advance(_make_order(), OrderStatus.CONFIRMED, OrderStatus.PROCESSING)
        when = datetime(2024, 1, 2, tzinfo=UTC)
        order.mark_shipped(when=when)
        assert order.shipped_date == when

    def test_cancelled_target_requires_cancel(self):
        order = _make_order()
        with pytest.raises(InvalidStateError):
            order.transition_to(OrderStatus.CANCELLED)


class TestCancel:
    @pytest.mark.parametrize(
        "path",
        [
            (),
            (OrderStatus.CONFIRMED,),
            (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
        ],
    )
    def test_cancel_before_shipping(self, path):
        order = _advance(_make_order(), *path)
        order.cancel(reason="Customer request")
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Customer request"
        assert "Cancelled: Customer request" in order.notes
        assert any(isinstance(e, OrderCancelled) for e in order._events)

    def test_cannot_cancel_after_shipping(self):
        order = _advance(_make_order(), OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED)
        with pytest.raises(InvalidTransitionError):
            order.cancel(reason="Too late")

    def test_cannot_cancel_twice(self):
        order = _make_order()
        order.cancel(reason="First")
        with pytest.raises(InvalidStateError):
            order.cancel(reason="Second")
