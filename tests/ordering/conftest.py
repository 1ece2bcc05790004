"""Shared ordering fixtures — stocked products, carts and placed orders."""

import pytest
from storeflow.inventory.ledger import register_product_stock
from storeflow.ordering.lifecycle import mark_delivered, mark_shipped, update_status
from storeflow.ordering.order import OrderStatus
from storeflow.ordering.saga import create_order_from_cart

CUSTOMER = "cust-001"


@pytest.fixture()
def stocked(store_id, catalog):
    """prod-a: 10 units at 25.00, prod-b: 5 units at 10.00, prod-digital: untracked at 5.00."""
    register_product_stock(store_id, "prod-a", quantity=10, low_stock_threshold=2)
    register_product_stock(store_id, "prod-b", quantity=5, low_stock_threshold=2)
    register_product_stock(store_id, "prod-digital", quantity=0, track_inventory=False)
    catalog.add_product(store_id, "prod-a", "Alpha Widget", 25.0, sku="ALPHA-1")
    catalog.add_product(store_id, "prod-b", "Beta Widget", 10.0, sku="BETA-1")
    catalog.add_product(store_id, "prod-digital", "Gift Card", 5.0)


@pytest.fixture()
def make_cart(store_id, cart_provider):
    def _make_cart(cart_id="cart-001", items=None, customer_id=CUSTOMER, **overrides):
        if items is None:
            items = [
                {"product_id": "prod-a", "quantity": 2, "unit_price": 25.0},
                {"product_id": "prod-b", "quantity": 1, "unit_price": 10.0},
            ]
        cart_provider.add_cart(store_id, cart_id, customer_id, items, **overrides)
        return cart_id

    return _make_cart


@pytest.fixture()
def place_order(store_id, stocked, make_cart, shipping_address):
    def _place_order(cart_id="cart-001", items=None, **kwargs):
        make_cart(cart_id, items)
        return create_order_from_cart(
            store_id=store_id,
            cart_id=cart_id,
            customer_id=CUSTOMER,
            shipping_info=shipping_address,
            **kwargs,
        )

    return _place_order


@pytest.fixture()
def deliver():
    def _deliver(order, when=None):
        update_status(order.store_id, order.id, OrderStatus.CONFIRMED)
        update_status(order.store_id, order.id, OrderStatus.PROCESSING)
        mark_shipped(order.store_id, order.id)
        return mark_delivered(order.store_id, order.id, when=when)

    return _deliver
