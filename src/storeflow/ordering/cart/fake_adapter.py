"""Fake cart provider — in-memory carts for testing and development."""

from datetime import UTC, datetime

from storeflow.ordering.cart.port import CartLine, CartProviderPort, CartSnapshot


class FakeCartProvider(CartProviderPort):
    """Holds carts in memory, keyed by store and cart id."""

    def __init__(self):
        self._carts = {}
        self.fail_on_clear = False
        self.cleared = []

    def configure(self, fail_on_clear: bool = False):
        """Configure the fake provider behavior for testing."""
        self.fail_on_clear = fail_on_clear

    def add_cart(
        self,
        store_id: str,
        cart_id: str,
        customer_id: str | None,
        items: list[dict],
        status: str = "Active",
        expires_at: datetime | None = None,
    ) -> None:
        self._carts[(str(store_id), str(cart_id))] = {
            "customer_id": customer_id,
            "items": [dict(item) for item in items],
            "status": status,
            "expires_at": expires_at,
        }

    def get_cart_by_id(self, store_id: str, cart_id: str) -> CartSnapshot | None:
        cart = self._carts.get((str(store_id), str(cart_id)))
        if cart is None:
            return None

        expires_at = cart["expires_at"]
        return CartSnapshot(
            cart_id=str(cart_id),
            customer_id=cart["customer_id"],
            status=cart["status"],
            is_active=cart["status"] == "Active",
            is_expired=expires_at is not None and expires_at <= datetime.now(UTC),
            items=tuple(
                CartLine(
                    product_id=str(item["product_id"]),
                    quantity=item["quantity"],
                    unit_price=item["unit_price"],
                )
                for item in cart["items"]
            ),
        )

    def clear_cart(self, store_id: str, cart_id: str) -> None:
        if self.fail_on_clear:
            raise ConnectionError("Cart service unavailable")
        cart = self._carts.get((str(store_id), str(cart_id)))
        if cart is not None:
            cart["items"] = []
        self.cleared.append(str(cart_id))
