"""Order lifecycle — status commands, handler, and the public lifecycle operations.

Status changes are persisted by commands, one unit of work each, under the
order's lock. Cancellation then restores stock with one compensating INCREASE
per order line, each referencing the order number. Restocking happens after
the cancellation is committed; a failed restock is logged and does not undo
the cancellation.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from storeflow.domain import storeflow
from storeflow.inventory.adjustment import adjustments_for_reference
from storeflow.inventory.ledger import record_adjustment
from storeflow.inventory.locking import hold, order_key
from storeflow.inventory.stock import AdjustmentType, ProductStock
from storeflow.ordering.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@storeflow.command(part_of="Order")
class ChangeOrderStatus:
    store_id = Identifier(required=True)
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    changed_at = DateTime()


@storeflow.command(part_of="Order")
class CancelOrder:
    store_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@storeflow.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(ChangeOrderStatus)
    def change_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_for_store(command.store_id, command.order_id)
        changed = order.transition_to(command.status, when=command.changed_at)
        if changed:
            repo.add(order)
        return changed

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_for_store(command.store_id, command.order_id)
        order.cancel(reason=command.reason)
        repo.add(order)


# ---------------------------------------------------------------------------
# Public lifecycle operations
# ---------------------------------------------------------------------------
def get_order(store_id, order_id) -> Order:
    return current_domain.repository_for(Order).get_for_store(store_id, order_id)


def find_order_by_number(store_id, order_number) -> Order | None:
    return current_domain.repository_for(Order).find_by_order_number(store_id, order_number)


def orders_for_customer(store_id, customer_id) -> list[Order]:
    return current_domain.repository_for(Order).for_customer(store_id, customer_id)


def _change_status(store_id, order_id, status, when=None) -> bool:
    with hold(order_key(store_id, order_id)):
        return current_domain.process(
            ChangeOrderStatus(
                store_id=store_id,
                order_id=order_id,
                status=OrderStatus(status).value,
                changed_at=when,
            ),
            asynchronous=False,
        )


def update_status(store_id, order_id, new_status, adjusted_by="system") -> Order:
    """Move an order along the state machine.

    Requesting the current status is a no-op. Disallowed edges raise
    ``InvalidTransitionError`` and leave the order unchanged. CANCELLED is
    routed through ``cancel_order`` so that stock is restored.
    """
    new_status = OrderStatus(new_status)
    if new_status == OrderStatus.CANCELLED:
        order = get_order(store_id, order_id)
        if OrderStatus(order.status) == OrderStatus.CANCELLED:
            return order
        return cancel_order(store_id, order_id, reason="Status changed to Cancelled", adjusted_by=adjusted_by)

    if _change_status(store_id, order_id, new_status):
        logger.info(
            "Order status updated",
            store_id=str(store_id),
            order_id=str(order_id),
            status=new_status.value,
        )
    return get_order(store_id, order_id)


def mark_shipped(store_id, order_id, when=None) -> Order:
    """Mark SHIPPED and stamp the shipped date; a no-op if already shipped."""
    _change_status(store_id, order_id, OrderStatus.SHIPPED, when=when)
    return get_order(store_id, order_id)


def mark_delivered(store_id, order_id, when=None) -> Order:
    """Mark DELIVERED and stamp the delivered date; a no-op if already delivered."""
    _change_status(store_id, order_id, OrderStatus.DELIVERED, when=when)
    return get_order(store_id, order_id)


def cancel_order(store_id, order_id, reason, adjusted_by="system") -> Order:
    """Cancel an order and restore the stock its lines consumed.

    Raises ``InvalidStateError`` if the order is already cancelled and
    ``InvalidTransitionError`` once it has shipped.
    """
    with hold(order_key(store_id, order_id)):
        current_domain.process(
            CancelOrder(store_id=store_id, order_id=order_id, reason=reason),
            asynchronous=False,
        )

    order = get_order(store_id, order_id)
    logger.info(
        "Order cancelled",
        store_id=str(store_id),
        order_id=str(order_id),
        order_number=order.order_number,
        reason=reason,
    )
    restock_order(order, adjusted_by=adjusted_by)
    return order


def _outstanding_decrease(store_id, order_number, product_id) -> int:
    """Units of ``product_id`` taken for this order and not yet given back."""
    outstanding = 0
    for row in adjustments_for_reference(store_id, order_number):
        if str(row.product_id) != str(product_id):
            continue
        if row.adjustment_type == AdjustmentType.DECREASE.value:
            outstanding += row.quantity
        elif row.adjustment_type == AdjustmentType.INCREASE.value:
            outstanding -= row.quantity
    return max(outstanding, 0)


def restock_order(order, adjusted_by="system") -> int:
    """Issue one compensating INCREASE per order line; returns units restored.

    Lines whose product does not track inventory, or whose decrement never
    reached the ledger, are skipped.
    """
    stock_repo = current_domain.repository_for(ProductStock)
    restored = 0
    for item in order.items:
        stock = stock_repo.find_for_product(order.store_id, item.product_id)
        if stock is None or not stock.track_inventory:
            continue

        quantity = min(item.quantity, _outstanding_decrease(order.store_id, order.order_number, item.product_id))
        if quantity <= 0:
            continue

        try:
            record_adjustment(
                store_id=order.store_id,
                product_id=item.product_id,
                adjustment_type=AdjustmentType.INCREASE,
                quantity=quantity,
                reason=f"Order cancellation: {order.order_number}",
                reference=order.order_number,
                adjusted_by=adjusted_by,
                notes=f"Restocked at {datetime.now(UTC).isoformat()}",
            )
            restored += quantity
        except (ValidationError, ObjectNotFoundError) as exc:
            logger.warning(
                "Failed to restore stock for cancelled order",
                order_number=order.order_number,
                product_id=str(item.product_id),
                quantity=quantity,
                error=str(exc),
            )
    return restored
