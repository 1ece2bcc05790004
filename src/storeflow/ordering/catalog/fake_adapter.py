"""Fake catalog — in-memory product details for testing and development."""

from storeflow.ordering.catalog.port import CatalogLookupPort, ProductDetails


class FakeCatalog(CatalogLookupPort):
    def __init__(self):
        self._products = {}

    def add_product(self, store_id: str, product_id: str, name: str, price: float, sku: str | None = None):
        self._products[(str(store_id), str(product_id))] = ProductDetails(
            product_id=str(product_id),
            name=name,
            sku=sku,
            price=price,
        )

    def get_product(self, store_id: str, product_id: str) -> ProductDetails | None:
        return self._products.get((str(store_id), str(product_id)))
