"""Order aggregate (CQRS) — a committed order and its lifecycle.

An Order is created exactly once, at the end of a successful fulfillment saga
run, and is mutated only by the lifecycle commands afterwards. Line items
freeze the product name, SKU and price at checkout time so later catalog
edits never alter historical orders.

State Machine:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    PENDING / CONFIRMED / PROCESSING → CANCELLED
    DELIVERED and CANCELLED are terminal.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from storeflow.domain import storeflow
from storeflow.errors import InvalidStateError, InvalidTransitionError, NotFoundError
from storeflow.ordering.events import (
    OrderCancelled,
    OrderDelivered,
    OrderPlaced,
    OrderShipped,
    OrderStatusChanged,
)
from storeflow.utils.queries import fetch_all


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


def generate_order_number(now=None):
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d}-{uuid4().hex[:8].upper()}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storeflow.value_object(part_of="Order")
class Address:
    """A shipping or billing address captured at checkout time.

    Once recorded on an Order, the address is immutable — it represents where
    the order was shipped, regardless of later changes on the customer.
    """

    first_name = String(max_length=100)
    last_name = String(max_length=100)
    company = String(max_length=255)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state_province = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=50)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storeflow.entity(part_of="Order")
class OrderItem:
    """A line item snapshot: product identity, name, SKU and price at checkout."""

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    product_sku = String(max_length=100)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storeflow.aggregate
class Order:
    store_id = Identifier(required=True)
    order_number = String(required=True, max_length=50)
    customer_id = Identifier(required=True)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    subtotal = Float(default=0.0)
    tax_amount = Float(default=0.0)
    shipping_amount = Float(default=0.0)
    discount_amount = Float(default=0.0)
    total_amount = Float(default=0.0)
    currency = String(max_length=3, default="USD")
    notes = Text()
    order_date = DateTime()
    shipped_date = DateTime()
    delivered_date = DateTime()
    cancelled_at = DateTime()
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        store_id,
        customer_id,
        items_data,
        shipping_address,
        billing_address,
        pricing,
        notes=None,
        order_number=None,
    ):
        """Create a PENDING order from checkout data.

        Args:
            items_data: List of dicts with product_id, product_name,
                        product_sku, quantity, unit_price.
            shipping_address: Address dict.
            billing_address: Address dict, or None to reuse the shipping address.
            pricing: Dict with subtotal, tax_amount, shipping_amount,
                     discount_amount, total_amount, currency.
        """
        now = datetime.now(UTC)
        order = cls(
            store_id=store_id,
            order_number=order_number or generate_order_number(now),
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            shipping_address=Address(**shipping_address),
            billing_address=Address(**(billing_address or shipping_address)),
            subtotal=pricing.get("subtotal", 0.0),
            tax_amount=pricing.get("tax_amount", 0.0),
            shipping_amount=pricing.get("shipping_amount", 0.0),
            discount_amount=pricing.get("discount_amount", 0.0),
            total_amount=pricing.get("total_amount", 0.0),
            currency=pricing.get("currency", "USD"),
            notes=notes,
            order_date=now,
            created_at=now,
            updated_at=now,
        )
        for item in items_data:
            order.add_items(
                OrderItem(
                    product_id=item["product_id"],
                    product_name=item.get("product_name") or str(item["product_id"]),
                    product_sku=item.get("product_sku"),
                    quantity=item["quantity"],
                    unit_price=item["unit_price"],
                    total_price=round(item["unit_price"] * item["quantity"], 2),
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                store_id=str(store_id),
                order_number=order.order_number,
                customer_id=str(customer_id),
                item_count=len(items_data),
                total_amount=order.total_amount,
                currency=order.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(
                {"status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )

    def _change_status(self, target_status, now):
        previous = self.status
        self.status = target_status.value
        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                store_id=str(self.store_id),
                order_number=self.order_number,
                previous_status=previous,
                new_status=target_status.value,
                changed_at=now,
            )
        )

    def transition_to(self, target_status, when=None):
        """Move to ``target_status``; returns False if already there.

        Cancellation has its own entry point (``cancel``) because it carries
        a reason and restores stock.
        """
        target_status = OrderStatus(target_status)
        if OrderStatus(self.status) == target_status:
            return False
        if target_status == OrderStatus.CANCELLED:
            raise InvalidStateError({"status": ["Use cancel() to cancel an order"]})

        self._assert_can_transition(target_status)
        now = datetime.now(UTC)
        self._change_status(target_status, now)

        if target_status == OrderStatus.SHIPPED and self.shipped_date is None:
            self.shipped_date = when or now
            self.raise_(
                OrderShipped(
                    order_id=str(self.id),
                    store_id=str(self.store_id),
                    order_number=self.order_number,
                    shipped_at=self.shipped_date,
                )
            )
        elif target_status == OrderStatus.DELIVERED and self.delivered_date is None:
            self.delivered_date = when or now
            self.raise_(
                OrderDelivered(
                    order_id=str(self.id),
                    store_id=str(self.store_id),
                    order_number=self.order_number,
                    delivered_at=self.delivered_date,
                )
            )
        return True

    def mark_shipped(self, when=None):
        return self.transition_to(OrderStatus.SHIPPED, when=when)

    def mark_delivered(self, when=None):
        return self.transition_to(OrderStatus.DELIVERED, when=when)

    def cancel(self, reason):
        current = OrderStatus(self.status)
        if current == OrderStatus.CANCELLED:
            raise InvalidStateError({"status": [f"Order {self.order_number} is already cancelled"]})
        self._assert_can_transition(OrderStatus.CANCELLED)

        now = datetime.now(UTC)
        self._change_status(OrderStatus.CANCELLED, now)
        self.cancelled_at = now
        self.cancellation_reason = reason
        self.notes = f"{self.notes}\nCancelled: {reason}" if self.notes else f"Cancelled: {reason}"

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                store_id=str(self.store_id),
                order_number=self.order_number,
                previous_status=current.value,
                reason=reason,
                cancelled_at=now,
            )
        )


@storeflow.repository(part_of=Order)
class OrderRepository:
    def get_for_store(self, store_id, order_id) -> Order:
        try:
            order = self.get(order_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError({"order_id": [f"Order {order_id} not found"]}) from exc
        if str(order.store_id) != str(store_id):
            raise NotFoundError({"order_id": [f"Order {order_id} not found"]})
        return order

    def find_by_order_number(self, store_id, order_number) -> Order | None:
        results = self._dao.query.filter(store_id=str(store_id), order_number=order_number).all().items
        return self.get(results[0].id) if results else None

    def for_customer(self, store_id, customer_id) -> list[Order]:
        orders = fetch_all(self._dao.query.filter(store_id=str(store_id), customer_id=str(customer_id)))
        return sorted(orders, key=lambda order: order.created_at, reverse=True)
