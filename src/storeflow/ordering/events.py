"""Domain events for the Order and Refund aggregates."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storeflow.domain import storeflow


# ---------------------------------------------------------------------------
# Order events
# ---------------------------------------------------------------------------
@storeflow.event(part_of="Order")
class OrderPlaced:
    """An order was persisted from a validated, reserved cart."""

    __version__ = 1

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    item_count = Integer(required=True)
    total_amount = Float(required=True)
    currency = String(default="USD")
    placed_at = DateTime(required=True)


@storeflow.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@storeflow.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    order_number = String(required=True)
    shipped_at = DateTime(required=True)


@storeflow.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    order_number = String(required=True)
    delivered_at = DateTime(required=True)


@storeflow.event(part_of="Order")
class OrderCancelled:
    """An order was cancelled; its stock is restored by the lifecycle service."""

    __version__ = 1

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    reason = String(required=True)
    cancelled_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Refund events
# ---------------------------------------------------------------------------
@storeflow.event(part_of="Refund")
class RefundRequested:
    __version__ = 1

    refund_id = Identifier(required=True)
    store_id = Identifier(required=True)
    refund_number = String(required=True)
    order_id = Identifier(required=True)
    refund_type = String(required=True)
    refund_amount = Float(required=True)
    reason = String(required=True)
    requested_at = DateTime(required=True)


@storeflow.event(part_of="Refund")
class RefundProcessed:
    __version__ = 1

    refund_id = Identifier(required=True)
    store_id = Identifier(required=True)
    refund_number = String(required=True)
    order_id = Identifier(required=True)
    processed_amount = Float(required=True)
    processed_at = DateTime(required=True)
