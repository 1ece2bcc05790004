"""Concurrent reservations against the same product never oversell."""

from concurrent.futures import ThreadPoolExecutor

from storeflow.domain import storeflow
from storeflow.errors import InsufficientStockError
from storeflow.inventory.ledger import (
    available_stock,
    get_product_stock,
    record_adjustment,
    register_product_stock,
)
from storeflow.inventory.reserving import create_reservation, total_reserved
from storeflow.inventory.stock import AdjustmentType


def _reserve(store_id, index):
    with storeflow.domain_context():
        try:
            create_reservation(store_id, f"res-{index}", "prod-001", 1)
            return True
        except InsufficientStockError:
            return False


def _decrease(store_id, index):
    with storeflow.domain_context():
        try:
            record_adjustment(
                store_id,
                "prod-001",
                AdjustmentType.DECREASE,
                1,
                reason=f"Sale {index}",
                adjusted_by="pos",
            )
            return True
        except InsufficientStockError:
            return False


class TestConcurrentReservations:
    def test_only_available_units_are_reserved(self, store_id):
        register_product_stock(store_id, "prod-001", quantity=5)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda index: _reserve(store_id, index), range(12)))

        assert results.count(True) == 5
        assert total_reserved(store_id, "prod-001") == 5
        assert available_stock(store_id, "prod-001") == 0


class TestConcurrentAdjustments:
    def test_decrements_are_serialized(self, store_id):
        register_product_stock(store_id, "prod-001", quantity=10)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda index: _decrease(store_id, index), range(15)))

        assert results.count(True) == 10
        assert get_product_stock(store_id, "prod-001").quantity == 0
