"""Per-key locks serializing writes to one product, reservation or order.

Ledger mutations are read-modify-write cycles on a product's quantity, and
reservation transitions are compare-and-set on a reservation's status. Both
are executed as Protean commands, each in its own unit of work; holding the
key's lock around ``current_domain.process(...)`` makes the read, the check
and the commit one critical section per key.

Lock order is orders, then products, then reservations; keys of the same kind
are acquired in sorted order, so multi-key holders never deadlock.
"""

import threading
from contextlib import ExitStack, contextmanager

_ORDER = "order"
_PRODUCT = "product"
_RESERVATION = "reservation"

_registry_lock = threading.Lock()
_locks: dict[tuple, threading.RLock] = {}


def product_key(store_id, product_id) -> tuple:
    return (_PRODUCT, str(store_id), str(product_id))


def reservation_key(store_id, reservation_id) -> tuple:
    return (_RESERVATION, str(store_id), str(reservation_id))


def order_key(store_id, order_id) -> tuple:
    return (_ORDER, str(store_id), str(order_id))


def _lock_for(key: tuple) -> threading.RLock:
    with _registry_lock:
        lock = _locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _locks[key] = lock
        return lock


def _ordered(keys) -> list[tuple]:
    # "order" < "product" < "reservation", so orders lock first and reservations last
    return sorted(set(keys))


@contextmanager
def hold(*keys):
    """Acquire the locks for all ``keys`` in a deadlock-free order."""
    with ExitStack() as stack:
        for key in _ordered(keys):
            lock = _lock_for(key)
            lock.acquire()
            stack.callback(lock.release)
        yield


def hold_products(store_id, product_ids):
    return hold(*(product_key(store_id, product_id) for product_id in product_ids))


def reset_locks():
    """Forget all known locks (useful for testing)."""
    with _registry_lock:
        _locks.clear()
