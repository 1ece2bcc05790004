"""Tests for the per-key lock registry."""

import threading

from storeflow.inventory.locking import (
    _ordered,
    hold,
    hold_products,
    order_key,
    product_key,
    reservation_key,
)


class TestLockOrdering:
    def test_orders_before_products_before_reservations(self):
        keys = [
            reservation_key("s", "r1"),
            product_key("s", "p1"),
            order_key("s", "o1"),
        ]
        assert [key[0] for key in _ordered(keys)] == ["order", "product", "reservation"]

    def test_duplicate_keys_collapse(self):
        assert len(_ordered([product_key("s", "p1"), product_key("s", "p1")])) == 1

    def test_keys_are_store_scoped(self):
        assert product_key("store-a", "p1") != product_key("store-b", "p1")


class TestHold:
    def test_hold_is_reentrant(self):
        with hold(product_key("s", "p1")):
            with hold_products("s", ["p1", "p2"]):
                pass

    def test_hold_excludes_other_threads(self):
        entered = threading.Event()
        release = threading.Event()
        acquired_by_other = []

        def holder():
            with hold(product_key("s", "p1")):
                entered.set()
                release.wait(timeout=5)

        def contender():
            with hold(product_key("s", "p1")):
                acquired_by_other.append(release.is_set())

        first = threading.Thread(target=holder)
        first.start()
        entered.wait(timeout=5)

        second = threading.Thread(target=contender)
        second.start()
        second.join(timeout=0.2)
        assert acquired_by_other == []

        release.set()
        first.join(timeout=5)
        second.join(timeout=5)
        assert acquired_by_other == [True]
