"""Integration tests for the order and refund API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from storeflow.api import order_router, register_error_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def checkout(client, store_id, stocked, make_cart, shipping_address):
    def _checkout(cart_id="cart-001", customer_id="cust-001", **overrides):
        body = {"cart_id": cart_id, "customer_id": customer_id, "shipping_address": shipping_address}
        body.update(overrides)
        return client.post(f"/stores/{store_id}/orders", json=body)

    return _checkout


def _set_status(client, store_id, order_id, status):
    return client.put(f"/stores/{store_id}/orders/{order_id}/status", json={"status": status})


def _deliver(client, store_id, order_id):
    for status in ("Confirmed", "Processing"):
        assert _set_status(client, store_id, order_id, status).status_code == 200
    assert client.put(f"/stores/{store_id}/orders/{order_id}/ship").status_code == 200
    response = client.put(f"/stores/{store_id}/orders/{order_id}/deliver")
    assert response.status_code == 200
    return response.json()


class TestCheckoutAPI:
    def test_checkout_returns_201(self, checkout, make_cart):
        make_cart()
        response = checkout()

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "Pending"
        assert data["order_number"].startswith("ORD-")
        assert len(data["items"]) == 2
        assert data["total_amount"] == 75.99

    def test_missing_cart_returns_404(self, checkout):
        response = checkout(cart_id="missing")
        assert response.status_code == 404
        assert response.json()["error_type"] == "NotFoundError"

    def test_foreign_cart_returns_403(self, checkout, make_cart):
        make_cart(customer_id="cust-999")
        assert checkout().status_code == 403

    def test_insufficient_stock_returns_409(self, checkout, make_cart):
        make_cart(items=[{"product_id": "prod-b", "quantity": 50, "unit_price": 10.0}])
        response = checkout()
        assert response.status_code == 409
        assert response.json()["error_type"] == "InsufficientStockError"

    def test_invalid_address_returns_422(self, checkout, make_cart):
        make_cart()
        response = checkout(shipping_address={"city": "Springfield"})
        assert response.status_code == 422


class TestOrderLifecycleAPI:
    def test_get_order(self, client, store_id, checkout, make_cart):
        make_cart()
        order_id = checkout().json()["id"]

        response = client.get(f"/stores/{store_id}/orders/{order_id}")
        assert response.status_code == 200
        assert response.json()["id"] == order_id

    def test_get_order_from_other_store_returns_404(self, client, checkout, make_cart):
        make_cart()
        order_id = checkout().json()["id"]
        assert client.get(f"/stores/store-002/orders/{order_id}").status_code == 404

    def test_invalid_transition_returns_409(self, client, store_id, checkout, make_cart):
        make_cart()
        order_id = checkout().json()["id"]

        response = _set_status(client, store_id, order_id, "Shipped")

        assert response.status_code == 409
        assert response.json()["error_type"] == "InvalidTransitionError"
        assert client.get(f"/stores/{store_id}/orders/{order_id}").json()["status"] == "Pending"

    def test_deliver(self, client, store_id, checkout, make_cart):
        make_cart()
        order_id = checkout().json()["id"]

        data = _deliver(client, store_id, order_id)
        assert data["status"] == "Delivered"
        assert data["shipped_date"] is not None
        assert data["delivered_date"] is not None

    def test_cancel(self, client, store_id, checkout, make_cart):
        make_cart()
        order_id = checkout().json()["id"]

        response = client.put(f"/stores/{store_id}/orders/{order_id}/cancel", json={"reason": "Changed my mind"})
        assert response.status_code == 200
        assert response.json()["status"] == "Cancelled"

        again = client.put(f"/stores/{store_id}/orders/{order_id}/cancel", json={"reason": "Again"})
        assert again.status_code == 409


class TestRefundAPI:
    @pytest.fixture()
    def delivered_id(self, client, store_id, checkout, make_cart):
        make_cart()
        order_id = checkout().json()["id"]
        _deliver(client, store_id, order_id)
        return order_id

    def _refund(self, client, store_id, order_id, **body):
        body.setdefault("reason", "Damaged")
        return client.post(f"/stores/{store_id}/orders/{order_id}/refunds", json=body)

    def test_partial_refund_returns_201(self, client, store_id, delivered_id):
        response = self._refund(client, store_id, delivered_id, refund_type="Partial", amount=20.0)

        assert response.status_code == 201
        data = response.json()
        assert data["refund_amount"] == 20.0
        assert data["remaining_refundable"] == 55.99

    def test_refund_by_items(self, client, store_id, delivered_id):
        response = self._refund(
            client,
            store_id,
            delivered_id,
            refund_type="Partial",
            items=[{"product_id": "prod-a", "quantity": 2}],
        )
        assert response.status_code == 201
        assert response.json()["refund_amount"] == 50.0

    def test_over_refund_returns_409(self, client, store_id, delivered_id):
        self._refund(client, store_id, delivered_id, refund_type="Full")
        response = self._refund(client, store_id, delivered_id, refund_type="Partial", amount=1.0)
        assert response.status_code == 409

    def test_refund_on_pending_order_returns_409(self, client, store_id, checkout, make_cart):
        make_cart()
        order_id = checkout().json()["id"]
        response = self._refund(client, store_id, order_id, refund_type="Full")
        assert response.status_code == 409

    def test_list_and_process(self, client, store_id, delivered_id):
        refund_id = self._refund(client, store_id, delivered_id, refund_type="Partial", amount=10.0).json()["id"]

        listed = client.get(f"/stores/{store_id}/orders/{delivered_id}/refunds").json()
        assert [refund["id"] for refund in listed] == [refund_id]

        response = client.put(f"/stores/{store_id}/orders/{delivered_id}/refunds/{refund_id}/process", json={})
        assert response.status_code == 200
        assert response.json()["status"] == "Processed"
        assert response.json()["processed_amount"] == 10.0
