"""Catalog lookup abstraction — read-only product details for order snapshots."""

import os

_catalog_instance = None


def get_catalog():
    """Return the configured catalog lookup adapter (singleton).

    Uses FakeCatalog by default. In production, configure via
    CATALOG_LOOKUP environment variable.
    """
    global _catalog_instance
    if _catalog_instance is None:
        adapter = os.environ.get("CATALOG_LOOKUP", "fake")
        if adapter == "fake":
            from storeflow.ordering.catalog.fake_adapter import FakeCatalog

            _catalog_instance = FakeCatalog()
        else:
            raise ValueError(f"Unknown catalog lookup adapter: {adapter}")
    return _catalog_instance


def reset_catalog():
    """Reset the catalog singleton (useful for testing)."""
    global _catalog_instance
    _catalog_instance = None
