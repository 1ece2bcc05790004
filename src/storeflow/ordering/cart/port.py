"""Cart provider port — abstract interface to the shopping cart service.

The fulfillment saga only needs a read-only snapshot of a cart and a way to
clear it once the order exists. Carts themselves are owned elsewhere.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    unit_price: float


@dataclass(frozen=True)
class CartSnapshot:
    """Point-in-time view of a cart as seen by the saga."""

    cart_id: str
    customer_id: str | None
    status: str
    is_active: bool
    is_expired: bool
    items: tuple[CartLine, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.items


class CartProviderPort(ABC):
    """Abstract interface for cart provider adapters."""

    @abstractmethod
    def get_cart_by_id(self, store_id: str, cart_id: str) -> CartSnapshot | None:
        """Return a snapshot of the cart, or None if it does not exist."""
        ...

    @abstractmethod
    def clear_cart(self, store_id: str, cart_id: str) -> None:
        """Empty the cart after a successful checkout."""
        ...
