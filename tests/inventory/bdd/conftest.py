"""Shared BDD fixtures and step definitions for inventory scenarios."""

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from pytest_bdd import given, parsers, then
from storeflow.inventory.adjustment import adjustments_for_reference
from storeflow.inventory.ledger import available_stock, get_product_stock, register_product_stock
from storeflow.inventory.reserving import create_reservation, get_reservation

STORE = "store-bdd"
PRODUCT = "prod-001"


@pytest.fixture()
def outcome():
    """Holds the error raised by the last When step, if any."""
    return {"error": None}


@pytest.fixture()
def attempt(outcome):
    """Run an action, recording a rejected request instead of raising."""

    def _attempt(action, *args, **kwargs):
        try:
            return action(*args, **kwargs)
        except (ValidationError, ObjectNotFoundError) as exc:
            outcome["error"] = exc
            return None

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('product "{product_id}" has {quantity:d} units on hand'))
def _(product_id, quantity):
    register_product_stock(STORE, product_id, quantity=quantity, low_stock_threshold=2)


@given(parsers.cfparse('{quantity:d} units were reserved as "{reservation_id}"'))
def _(quantity, reservation_id):
    create_reservation(STORE, reservation_id, PRODUCT, quantity)


@given(parsers.cfparse('{quantity:d} units were reserved as "{reservation_id}" for {minutes:d} minute'))
def _(quantity, reservation_id, minutes):
    create_reservation(STORE, reservation_id, PRODUCT, quantity, ttl_minutes=minutes)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("{quantity:d} units are available"))
def _(quantity):
    assert available_stock(STORE, PRODUCT) == quantity


@then(parsers.cfparse("{quantity:d} units are on hand"))
def _(quantity):
    assert get_product_stock(STORE, PRODUCT).quantity == quantity


@then(parsers.cfparse('the request is rejected with "{error_type}"'))
def _(outcome, error_type):
    assert outcome["error"] is not None
    assert type(outcome["error"]).__name__ == error_type


@then(parsers.cfparse('reservation "{reservation_id}" is "{status}"'))
def _(reservation_id, status):
    assert get_reservation(STORE, reservation_id).status == status


@then(parsers.re(r'the ledger has (?P<count>\d+) rows? for reference "(?P<reference>[^"]+)"'))
def _(count, reference):
    assert len(adjustments_for_reference(STORE, reference)) == int(count)
