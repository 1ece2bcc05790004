"""Catalog lookup port — abstract read-only access to product details."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProductDetails:
    product_id: str
    name: str
    sku: str | None
    price: float


class CatalogLookupPort(ABC):
    """Abstract interface for catalog lookup adapters."""

    @abstractmethod
    def get_product(self, store_id: str, product_id: str) -> ProductDetails | None:
        """Return the product's current details, or None if it does not exist."""
        ...
