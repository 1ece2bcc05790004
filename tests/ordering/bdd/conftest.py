"""Shared BDD fixtures and step definitions for ordering scenarios."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from pytest_bdd import given, parsers, then
from storeflow.errors import FulfillmentError
from storeflow.inventory.ledger import get_product_stock
from storeflow.inventory.reservation import StockReservation
from storeflow.ordering.lifecycle import get_order
from storeflow.ordering.refunding import remaining_refundable


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
        except (ValidationError, ObjectNotFoundError, FulfillmentError) as exc:
            outcome["error"] = exc
            return None

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the catalog is stocked")
def _(stocked):
    pass


@given(parsers.cfparse('a cart with {quantity:d} units of "{product_id}"'))
def _(make_cart, catalog, store_id, quantity, product_id):
    price = catalog.get_product(store_id, product_id).price
    make_cart(items=[{"product_id": product_id, "quantity": quantity, "unit_price": price}])


@given("a placed order", target_fixture="order")
def _(place_order):
    return place_order()


@given("a delivered order", target_fixture="order")
def _(place_order, deliver):
    return deliver(place_order())


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the request is rejected with "{error_type}"'))
def _(outcome, error_type):
    assert outcome["error"] is not None
    assert type(outcome["error"]).__name__ == error_type


@then(parsers.cfparse('"{product_id}" has {quantity:d} units on hand'))
def _(store_id, product_id, quantity):
    assert get_product_stock(store_id, product_id).quantity == quantity


@then(parsers.cfparse('every reservation is "{status}"'))
def _(store_id, status):
    reservations = current_domain.repository_for(StockReservation).for_store(store_id)
    assert reservations
    assert {r.status for r in reservations} == {status}


@then("no reservation exists")
def _(store_id):
    assert current_domain.repository_for(StockReservation).for_store(store_id) == []


@then(parsers.cfparse('the order is "{status}"'))
def _(store_id, order, status):
    assert get_order(store_id, order.id).status == status


@then(parsers.cfparse("{amount:f} remains refundable"))
def _(store_id, order, amount):
    assert remaining_refundable(store_id, order.id) == pytest.approx(amount)
