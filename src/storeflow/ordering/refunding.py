"""Refund calculator — commands, handler and the public refund operations.

Refunds are allowed for DELIVERED orders within 30 days of delivery, and for
CANCELLED orders. A FULL refund is the order total; a PARTIAL refund is
either an explicit amount or the sum over the refunded lines. The amount may
never exceed what remains refundable after earlier refunds.
"""

import json
from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from storeflow.domain import storeflow
from storeflow.errors import InvalidStateError
from storeflow.inventory.locking import hold, order_key
from storeflow.ordering.order import Order, OrderStatus
from storeflow.ordering.refund import Refund, RefundType
from storeflow.utils.queries import as_utc

logger = structlog.get_logger(__name__)

REFUND_WINDOW_DAYS = 30

_REFUNDABLE_STATES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


@storeflow.command(part_of="Refund")
class RequestRefund:
    store_id = Identifier(required=True)
    order_id = Identifier(required=True)
    refund_type = String(required=True, choices=RefundType)
    amount = Float()
    items = Text()  # JSON: list of {order_item_id | product_id, quantity, unit_price?, refund_amount?}
    reason = String(required=True, max_length=500)
    refund_method = String(max_length=50)
    notes = Text()
    as_of = DateTime()


@storeflow.command(part_of="Refund")
class ProcessRefund:
    store_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    processed_amount = Float()


@storeflow.command_handler(part_of=Refund)
class RefundHandler:
    @handle(RequestRefund)
    def request_refund(self, command):
        order = current_domain.repository_for(Order).get_for_store(command.store_id, command.order_id)
        _assert_refundable(order, as_utc(command.as_of) or datetime.now(UTC))

        items_data = _resolve_items(order, json.loads(command.items) if command.items else [])
        amount = _refund_amount(order, RefundType(command.refund_type), command.amount, items_data)

        remaining = remaining_refundable(order.store_id, order.id, order=order)
        if amount > remaining + 0.005:
            raise InvalidStateError(
                {"amount": [f"Refund amount {amount:.2f} exceeds remaining refundable amount {remaining:.2f}"]}
            )

        refund = Refund.request(
            order=order,
            refund_type=command.refund_type,
            refund_amount=amount,
            reason=command.reason,
            items_data=items_data,
            refund_method=command.refund_method,
            notes=command.notes,
        )
        current_domain.repository_for(Refund).add(refund)
        return str(refund.id)

    @handle(ProcessRefund)
    def process_refund(self, command):
        repo = current_domain.repository_for(Refund)
        refund = repo.get_for_store(command.store_id, command.refund_id)
        refund.process(processed_amount=command.processed_amount)
        repo.add(refund)


def _assert_refundable(order, as_of):
    status = OrderStatus(order.status)
    if status not in _REFUNDABLE_STATES:
        raise InvalidStateError(
            {"status": [f"Order {order.order_number} is {status.value}; only delivered or cancelled orders can be refunded"]}
        )
    if status == OrderStatus.DELIVERED and order.delivered_date is not None:
        deadline = as_utc(order.delivered_date) + timedelta(days=REFUND_WINDOW_DAYS)
        if as_of > deadline:
            raise InvalidStateError(
                {"status": [f"Refund window of {REFUND_WINDOW_DAYS} days after delivery has elapsed"]}
            )


def _resolve_items(order, requested_items):
    """Match requested lines to order lines and fill in prices and amounts."""
    resolved = []
    for requested in requested_items:
        line = next(
            (
                item
                for item in order.items
                if (requested.get("order_item_id") and str(item.id) == str(requested["order_item_id"]))
                or (requested.get("product_id") and str(item.product_id) == str(requested["product_id"]))
            ),
            None,
        )
        if line is None:
            raise ValidationError({"items": [f"Item {requested} is not part of order {order.order_number}"]})

        quantity = requested.get("quantity") or 0
        if quantity < 1 or quantity > line.quantity:
            raise ValidationError({"items": [f"Refund quantity for {line.product_id} must be between 1 and {line.quantity}"]})

        unit_price = requested.get("unit_price")
        if unit_price is None:
            unit_price = line.unit_price
        refund_amount = requested.get("refund_amount")
        if refund_amount is None:
            refund_amount = round(unit_price * quantity, 2)

        resolved.append(
            {
                "order_item_id": str(line.id),
                "product_id": str(line.product_id),
                "quantity": quantity,
                "unit_price": unit_price,
                "refund_amount": refund_amount,
            }
        )
    return resolved


def _refund_amount(order, refund_type, amount, items_data):
    if refund_type == RefundType.FULL:
        refund_amount = order.total_amount
    elif amount is not None:
        refund_amount = amount
    elif items_data:
        refund_amount = sum(item["refund_amount"] for item in items_data)
    else:
        raise ValidationError({"amount": ["Cannot determine refund amount"]})

    refund_amount = round(refund_amount, 2)
    if refund_amount <= 0:
        raise ValidationError({"amount": ["Refund amount must be positive"]})
    return refund_amount


# ---------------------------------------------------------------------------
# Public refund operations
# ---------------------------------------------------------------------------
def remaining_refundable(store_id, order_id, order=None) -> float:
    """Order total minus everything already refunded against it."""
    if order is None:
        order = current_domain.repository_for(Order).get_for_store(store_id, order_id)
    refunded = sum(refund.refund_amount for refund in get_order_refunds(store_id, order_id))
    return round(max(order.total_amount - refunded, 0.0), 2)


def create_refund(
    store_id,
    order_id,
    refund_type,
    reason,
    amount=None,
    items=None,
    refund_method=None,
    notes=None,
    as_of=None,
) -> Refund:
    refund_type = RefundType(refund_type)
    with hold(order_key(store_id, order_id)):
        refund_id = current_domain.process(
            RequestRefund(
                store_id=store_id,
                order_id=order_id,
                refund_type=refund_type.value,
                amount=amount,
                items=json.dumps(items) if items else None,
                reason=reason,
                refund_method=refund_method,
                notes=notes,
                as_of=as_of,
            ),
            asynchronous=False,
        )

    refund = find_refund(store_id, refund_id)
    logger.info(
        "Refund requested",
        store_id=str(store_id),
        order_id=str(order_id),
        refund_number=refund.refund_number,
        refund_type=refund_type.value,
        refund_amount=refund.refund_amount,
    )
    return refund


def process_refund(store_id, refund_id, processed_amount=None) -> Refund:
    current_domain.process(
        ProcessRefund(store_id=store_id, refund_id=refund_id, processed_amount=processed_amount),
        asynchronous=False,
    )
    refund = find_refund(store_id, refund_id)
    logger.info("Refund processed", refund_number=refund.refund_number, processed_amount=refund.processed_amount)
    return refund


def get_order_refunds(store_id, order_id) -> list[Refund]:
    return current_domain.repository_for(Refund).for_order(store_id, order_id)


def find_refund(store_id, refund_id) -> Refund:
    return current_domain.repository_for(Refund).get_for_store(store_id, refund_id)


def find_refund_by_number(store_id, refund_number) -> Refund | None:
    return current_domain.repository_for(Refund).find_by_refund_number(store_id, refund_number)
