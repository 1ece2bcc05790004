"""Order Fulfillment Saga — converts a shopping cart into a committed order.

Coordinates the cart provider, the stock ledger, the reservation store and
order persistence. There is no transaction spanning all of them; instead each
step is one atomic operation and earlier steps are compensated when a later
one fails.

Flow:
    1. Validate cart      → NotFound / Unauthorized / InvalidState, no side effects
    2. Stock check        → InsufficientStock before any hold exists
    3. Reserve each line  → on failure release every hold of this attempt
    4. Persist order      → on failure release every hold of this attempt
    5. Confirm + DECREASE → per line, under the product lock; failures are
                            logged and the order is kept
    6. Clear cart         → best effort, logged only

Lines for the same product are held together as one reservation with the id
``ORDER-<attempt id>-<product id>``; a retry must use a fresh attempt, which
gets a fresh attempt id.
"""

import json
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storeflow.errors import (
    FulfillmentError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from storeflow.inventory.ledger import get_product_stock, has_sufficient_stock, record_adjustment
from storeflow.inventory.locking import hold_products
from storeflow.inventory.reserving import confirm_reservation, create_reservation, release_reservation
from storeflow.inventory.stock import AdjustmentType
from storeflow.ordering.cart import get_cart_provider
from storeflow.ordering.catalog import get_catalog
from storeflow.ordering.lifecycle import get_order
from storeflow.ordering.order import generate_order_number
from storeflow.ordering.placement import PlaceOrder
from storeflow.ordering.pricing import calculate_pricing

logger = structlog.get_logger(__name__)

# Failures the saga reports as-is; anything else becomes a FulfillmentError
_CLASSIFIED = (ValidationError, ObjectNotFoundError)


def _quantities_by_product(cart) -> dict:
    """Total quantity per product; a cart may list one product on several lines."""
    quantities = {}
    for line in cart.items:
        product_id = str(line.product_id)
        quantities[product_id] = quantities.get(product_id, 0) + line.quantity
    return quantities


class OrderFulfillmentSaga:
    """One saga instance may run many attempts; each attempt is independent."""

    def __init__(self, cart_provider=None, catalog=None):
        self.cart_provider = cart_provider or get_cart_provider()
        self.catalog = catalog or get_catalog()

    def create_order_from_cart(
        self,
        store_id,
        cart_id,
        customer_id,
        shipping_info,
        billing_info=None,
        clear_cart_after=True,
        notes=None,
        reserved_by="system",
    ):
        attempt_id = uuid4().hex[:12].upper()
        log = logger.bind(store_id=str(store_id), cart_id=str(cart_id), attempt_id=attempt_id)
        log.info("Creating order from cart", customer_id=str(customer_id))

        try:
            # Steps 1-2 have no side effects to undo
            cart = self._validate_cart(store_id, cart_id, customer_id)
            self._check_stock(store_id, cart)

            reservations = []
            try:
                self._reserve(store_id, cart, attempt_id, reserved_by, reservations)
                order_id = self._persist_order(store_id, cart, customer_id, shipping_info, billing_info, notes)
            except Exception:
                self._release_all(store_id, reservations, reason=f"Checkout attempt {attempt_id} failed")
                raise
        except _CLASSIFIED as exc:
            log.info("Order creation rejected", error_type=type(exc).__name__, error=str(exc))
            raise
        except Exception as exc:
            log.exception("Order creation failed unexpectedly")
            raise FulfillmentError("Order creation failed", cause=exc) from exc

        order = get_order(store_id, order_id)
        self._confirm_all(store_id, reservations, order.order_number, reserved_by, log)

        if clear_cart_after:
            self._clear_cart(store_id, cart_id, log)

        log.info(
            "Order created from cart",
            order_id=str(order.id),
            order_number=order.order_number,
            total_amount=order.total_amount,
        )
        return order

    # -------------------------------------------------------------------
    # Step 1: validate cart
    # -------------------------------------------------------------------
    def _validate_cart(self, store_id, cart_id, customer_id):
        cart = self.cart_provider.get_cart_by_id(store_id, cart_id)
        if cart is None:
            raise NotFoundError({"cart_id": [f"Cart {cart_id} not found"]})
        if str(cart.customer_id) != str(customer_id):
            raise UnauthorizedError({"cart_id": [f"Cart {cart_id} does not belong to customer {customer_id}"]})
        if not cart.is_active:
            raise InvalidStateError({"cart_id": [f"Cart {cart_id} is not active ({cart.status})"]})
        if cart.is_expired:
            raise InvalidStateError({"cart_id": [f"Cart {cart_id} has expired"]})
        if cart.is_empty:
            raise InvalidStateError({"cart_id": [f"Cart {cart_id} is empty"]})
        return cart

    # -------------------------------------------------------------------
    # Step 2: stock check (fail fast)
    # -------------------------------------------------------------------
    def _check_stock(self, store_id, cart):
        for product_id, quantity in _quantities_by_product(cart).items():
            if not has_sufficient_stock(store_id, product_id, quantity):
                raise InsufficientStockError(
                    {"quantity": [f"Insufficient stock for product {product_id}: {quantity} requested"]}
                )

    # -------------------------------------------------------------------
    # Step 3: reserve
    # -------------------------------------------------------------------
    def _reserve(self, store_id, cart, attempt_id, reserved_by, reservations):
        for product_id, quantity in _quantities_by_product(cart).items():
            reservation = create_reservation(
                store_id=store_id,
                reservation_id=f"ORDER-{attempt_id}-{product_id}",
                product_id=product_id,
                quantity=quantity,
                reserved_by=reserved_by,
                reference=attempt_id,
                notes=f"Checkout of cart {cart.cart_id}",
            )
            reservations.append(reservation)

    def _release_all(self, store_id, reservations, reason):
        for reservation in reservations:
            try:
                release_reservation(store_id, reservation.reservation_id, reason=reason)
            except Exception:
                # Keep compensating; an unreleased hold is reclaimed by the expiry sweep
                logger.exception(
                    "Failed to release reservation during rollback",
                    reservation_id=reservation.reservation_id,
                )

    # -------------------------------------------------------------------
    # Step 4: persist order
    # -------------------------------------------------------------------
    def _snapshot_items(self, store_id, cart):
        items = []
        for line in cart.items:
            product = self.catalog.get_product(store_id, line.product_id)
            items.append(
                {
                    "product_id": line.product_id,
                    "product_name": product.name if product else str(line.product_id),
                    "product_sku": product.sku if product else None,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                }
            )
        return items

    def _persist_order(self, store_id, cart, customer_id, shipping_info, billing_info, notes):
        items = self._snapshot_items(store_id, cart)
        pricing = calculate_pricing(items, notes)
        return current_domain.process(
            PlaceOrder(
                store_id=store_id,
                customer_id=customer_id,
                order_number=generate_order_number(),
                items=json.dumps(items),
                shipping_address=json.dumps(shipping_info),
                billing_address=json.dumps(billing_info) if billing_info else None,
                subtotal=pricing.subtotal,
                tax_amount=pricing.tax_amount,
                shipping_amount=pricing.shipping_amount,
                discount_amount=pricing.discount_amount,
                total_amount=pricing.total_amount,
                currency=pricing.currency,
                notes=notes,
            ),
            asynchronous=False,
        )

    # -------------------------------------------------------------------
    # Step 5: confirm reservations and decrement stock
    # -------------------------------------------------------------------
    def _confirm_all(self, store_id, reservations, order_number, adjusted_by, log):
        for reservation in reservations:
            # Holding the product lock across confirm + DECREASE keeps the
            # confirmed units from briefly reappearing as available stock.
            with hold_products(store_id, [reservation.product_id]):
                try:
                    confirm_reservation(store_id, reservation.reservation_id)
                    if get_product_stock(store_id, reservation.product_id).track_inventory:
                        record_adjustment(
                            store_id=store_id,
                            product_id=reservation.product_id,
                            adjustment_type=AdjustmentType.DECREASE,
                            quantity=reservation.quantity,
                            reason=f"Order fulfillment: {order_number}",
                            reference=order_number,
                            adjusted_by=adjusted_by,
                        )
                except _CLASSIFIED as exc:
                    log.warning(
                        "Failed to confirm reservation for order",
                        order_number=order_number,
                        reservation_id=reservation.reservation_id,
                        error=str(exc),
                    )
                except Exception:
                    # The order is already committed; remaining lines must still be confirmed
                    log.exception(
                        "Unexpected error confirming reservation for order",
                        order_number=order_number,
                        reservation_id=reservation.reservation_id,
                    )

    # -------------------------------------------------------------------
    # Step 6: clear cart
    # -------------------------------------------------------------------
    def _clear_cart(self, store_id, cart_id, log):
        try:
            self.cart_provider.clear_cart(store_id, cart_id)
        except Exception as exc:
            log.warning("Failed to clear cart after order creation", error=str(exc))


def create_order_from_cart(
    store_id,
    cart_id,
    customer_id,
    shipping_info,
    billing_info=None,
    clear_cart_after=True,
    notes=None,
    reserved_by="system",
):
    return OrderFulfillmentSaga().create_order_from_cart(
        store_id=store_id,
        cart_id=cart_id,
        customer_id=customer_id,
        shipping_info=shipping_info,
        billing_info=billing_info,
        clear_cart_after=clear_cart_after,
        notes=notes,
        reserved_by=reserved_by,
    )
