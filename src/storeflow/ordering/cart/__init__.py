"""Cart provider abstraction — pluggable access to shopping carts."""

import os

_cart_provider_instance = None


def get_cart_provider():
    """Return the configured cart provider adapter (singleton).

    Uses FakeCartProvider by default. In production, configure via
    CART_PROVIDER environment variable.
    """
    global _cart_provider_instance
    if _cart_provider_instance is None:
        adapter = os.environ.get("CART_PROVIDER", "fake")
        if adapter == "fake":
            from storeflow.ordering.cart.fake_adapter import FakeCartProvider

            _cart_provider_instance = FakeCartProvider()
        else:
            raise ValueError(f"Unknown cart provider adapter: {adapter}")
    return _cart_provider_instance


def reset_cart_provider():
    """Reset the cart provider singleton (useful for testing)."""
    global _cart_provider_instance
    _cart_provider_instance = None
