"""FastAPI routes for storeflow — orders, refunds, inventory and reservations.

Every route is scoped to a store through the ``{store_id}`` path segment.
Routes call the public operations of the domain modules, which wrap the
Protean commands with the per-key locks they need.
"""

from fastapi import APIRouter

from storeflow.api.schemas import (
    AdjustmentResponse,
    BulkUpdateRequest,
    CancelOrderRequest,
    CheckoutRequest,
    CreateRefundRequest,
    CreateReservationRequest,
    ExpireReservationsRequest,
    ExtendReservationRequest,
    LowStockAlertResponse,
    OrderItemResponse,
    OrderResponse,
    ProcessRefundRequest,
    ProductStockResponse,
    RecordAdjustmentRequest,
    RefundResponse,
    RegisterStockRequest,
    ReleaseReservationRequest,
    ReleaseResponse,
    ReservationResponse,
    SweepResponse,
    UpdateOrderStatusRequest,
    UpdateStockLevelRequest,
)
from storeflow.inventory import alerts, ledger, reserving
from storeflow.inventory.adjustment import adjustment_history
from storeflow.inventory.expiry import expire_sweep
from storeflow.ordering import lifecycle, refunding
from storeflow.ordering.saga import create_order_from_cart


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------
def _order_response(order) -> OrderResponse:
    return OrderResponse(
        id=str(order.id),
        store_id=str(order.store_id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        status=order.status,
        items=[
            OrderItemResponse(
                id=str(item.id),
                product_id=str(item.product_id),
                product_name=item.product_name,
                product_sku=item.product_sku,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
            )
            for item in order.items
        ],
        subtotal=order.subtotal,
        tax_amount=order.tax_amount,
        shipping_amount=order.shipping_amount,
        discount_amount=order.discount_amount,
        total_amount=order.total_amount,
        currency=order.currency,
        notes=order.notes,
        order_date=order.order_date,
        shipped_date=order.shipped_date,
        delivered_date=order.delivered_date,
    )


def _refund_response(refund) -> RefundResponse:
    return RefundResponse(
        id=str(refund.id),
        refund_number=refund.refund_number,
        order_id=str(refund.order_id),
        refund_type=refund.refund_type,
        status=refund.status,
        refund_amount=refund.refund_amount,
        processed_amount=refund.processed_amount,
        reason=refund.reason,
        remaining_refundable=refunding.remaining_refundable(refund.store_id, refund.order_id),
    )


def _stock_response(stock) -> ProductStockResponse:
    return ProductStockResponse(
        product_id=str(stock.product_id),
        quantity=stock.quantity,
        available=ledger.available_stock(stock.store_id, stock.product_id),
        low_stock_threshold=stock.low_stock_threshold,
        track_inventory=stock.track_inventory,
        is_low_stock=stock.is_low_stock(),
    )


def _adjustment_response(adjustment) -> AdjustmentResponse:
    return AdjustmentResponse(
        id=str(adjustment.id),
        product_id=str(adjustment.product_id),
        adjustment_type=adjustment.adjustment_type,
        quantity=adjustment.quantity,
        previous_quantity=adjustment.previous_quantity,
        new_quantity=adjustment.new_quantity,
        reason=adjustment.reason,
        reference=adjustment.reference,
        adjusted_by=adjustment.adjusted_by,
        adjusted_at=adjustment.adjusted_at,
    )


def _reservation_response(reservation) -> ReservationResponse:
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        product_id=str(reservation.product_id),
        quantity=reservation.quantity,
        status=reservation.status,
        reserved_at=reservation.reserved_at,
        expires_at=reservation.expires_at,
        reserved_by=reservation.reserved_by,
        reference=reservation.reference,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/stores/{store_id}/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def checkout(store_id: str, body: CheckoutRequest) -> OrderResponse:
    order = create_order_from_cart(
        store_id=store_id,
        cart_id=body.cart_id,
        customer_id=body.customer_id,
        shipping_info=body.shipping_address.model_dump(exclude_none=True),
        billing_info=body.billing_address.model_dump(exclude_none=True) if body.billing_address else None,
        clear_cart_after=body.clear_cart,
        notes=body.notes,
        reserved_by=body.customer_id,
    )
    return _order_response(order)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(store_id: str, order_id: str) -> OrderResponse:
    return _order_response(lifecycle.get_order(store_id, order_id))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(store_id: str, order_id: str, body: UpdateOrderStatusRequest) -> OrderResponse:
    order = lifecycle.update_status(store_id, order_id, body.status, adjusted_by=body.adjusted_by)
    return _order_response(order)


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(store_id: str, order_id: str, body: CancelOrderRequest) -> OrderResponse:
    order = lifecycle.cancel_order(store_id, order_id, reason=body.reason, adjusted_by=body.adjusted_by)
    return _order_response(order)


@order_router.put("/{order_id}/ship", response_model=OrderResponse)
async def ship_order(store_id: str, order_id: str) -> OrderResponse:
    return _order_response(lifecycle.mark_shipped(store_id, order_id))


@order_router.put("/{order_id}/deliver", response_model=OrderResponse)
async def deliver_order(store_id: str, order_id: str) -> OrderResponse:
    return _order_response(lifecycle.mark_delivered(store_id, order_id))


@order_router.post("/{order_id}/refunds", status_code=201, response_model=RefundResponse)
async def create_refund(store_id: str, order_id: str, body: CreateRefundRequest) -> RefundResponse:
    refund = refunding.create_refund(
        store_id=store_id,
        order_id=order_id,
        refund_type=body.refund_type,
        reason=body.reason,
        amount=body.amount,
        items=[item.model_dump(exclude_none=True) for item in body.items] if body.items else None,
        refund_method=body.refund_method,
        notes=body.notes,
    )
    return _refund_response(refund)


@order_router.get("/{order_id}/refunds", response_model=list[RefundResponse])
async def list_refunds(store_id: str, order_id: str) -> list[RefundResponse]:
    lifecycle.get_order(store_id, order_id)
    return [_refund_response(refund) for refund in refunding.get_order_refunds(store_id, order_id)]


@order_router.put("/{order_id}/refunds/{refund_id}/process", response_model=RefundResponse)
async def process_refund(store_id: str, order_id: str, refund_id: str, body: ProcessRefundRequest) -> RefundResponse:
    refund = refunding.process_refund(store_id, refund_id, processed_amount=body.processed_amount)
    return _refund_response(refund)


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/stores/{store_id}/inventory", tags=["inventory"])


@inventory_router.post("", status_code=201, response_model=ProductStockResponse)
async def register_stock(store_id: str, body: RegisterStockRequest) -> ProductStockResponse:
    stock = ledger.register_product_stock(
        store_id=store_id,
        product_id=body.product_id,
        quantity=body.quantity,
        low_stock_threshold=body.low_stock_threshold,
        track_inventory=body.track_inventory,
    )
    return _stock_response(stock)


@inventory_router.get("/alerts", response_model=list[LowStockAlertResponse])
async def low_stock_alerts(store_id: str, limit: int = 50, urgency: str | None = None) -> list[LowStockAlertResponse]:
    return [
        LowStockAlertResponse(
            product_id=alert.product_id,
            current_stock=alert.current_stock,
            low_stock_threshold=alert.low_stock_threshold,
            stock_percentage=alert.stock_percentage,
            urgency=alert.urgency.value,
        )
        for alert in alerts.low_stock_alerts(store_id, limit=limit, urgency=urgency)
    ]


@inventory_router.post("/bulk", response_model=list[AdjustmentResponse])
async def bulk_update(store_id: str, body: BulkUpdateRequest) -> list[AdjustmentResponse]:
    updates = [update.model_dump(exclude_none=True) for update in body.updates]
    adjustments = ledger.bulk_update(store_id, updates, adjusted_by=body.adjusted_by)
    return [_adjustment_response(adjustment) for adjustment in adjustments]


@inventory_router.get("/{product_id}", response_model=ProductStockResponse)
async def get_stock(store_id: str, product_id: str) -> ProductStockResponse:
    return _stock_response(ledger.get_product_stock(store_id, product_id))


@inventory_router.post("/{product_id}/adjustments", status_code=201, response_model=AdjustmentResponse)
async def record_adjustment(store_id: str, product_id: str, body: RecordAdjustmentRequest) -> AdjustmentResponse:
    adjustment = ledger.record_adjustment(
        store_id=store_id,
        product_id=product_id,
        adjustment_type=body.adjustment_type,
        quantity=body.quantity,
        reason=body.reason,
        adjusted_by=body.adjusted_by,
        reference=body.reference,
        notes=body.notes,
    )
    return _adjustment_response(adjustment)


@inventory_router.get("/{product_id}/adjustments", response_model=list[AdjustmentResponse])
async def list_adjustments(store_id: str, product_id: str) -> list[AdjustmentResponse]:
    ledger.get_product_stock(store_id, product_id)
    return [_adjustment_response(row) for row in adjustment_history(store_id, product_id)]


@inventory_router.put("/{product_id}/level", response_model=AdjustmentResponse)
async def update_stock_level(store_id: str, product_id: str, body: UpdateStockLevelRequest) -> AdjustmentResponse:
    adjustment = ledger.update_stock_level(
        store_id=store_id,
        product_id=product_id,
        quantity=body.quantity,
        adjusted_by=body.adjusted_by,
        low_stock_threshold=body.low_stock_threshold,
        reason=body.reason,
    )
    return _adjustment_response(adjustment)


# ---------------------------------------------------------------------------
# Reservation Router
# ---------------------------------------------------------------------------
reservation_router = APIRouter(prefix="/stores/{store_id}/reservations", tags=["reservations"])


@reservation_router.post("", status_code=201, response_model=ReservationResponse)
async def create_reservation(store_id: str, body: CreateReservationRequest) -> ReservationResponse:
    reservation = reserving.create_reservation(
        store_id=store_id,
        reservation_id=body.reservation_id,
        product_id=body.product_id,
        quantity=body.quantity,
        ttl_minutes=body.ttl_minutes,
        reserved_by=body.reserved_by,
        reference=body.reference,
        notes=body.notes,
    )
    return _reservation_response(reservation)


@reservation_router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(store_id: str, reservation_id: str) -> ReservationResponse:
    return _reservation_response(reserving.get_reservation(store_id, reservation_id))


@reservation_router.put("/{reservation_id}/confirm", response_model=ReservationResponse)
async def confirm_reservation(store_id: str, reservation_id: str) -> ReservationResponse:
    return _reservation_response(reserving.confirm_reservation(store_id, reservation_id))


@reservation_router.put("/{reservation_id}/release", response_model=ReleaseResponse)
async def release_reservation(store_id: str, reservation_id: str, body: ReleaseReservationRequest) -> ReleaseResponse:
    released = reserving.release_reservation(store_id, reservation_id, reason=body.reason)
    return ReleaseResponse(released=released)


@reservation_router.put("/{reservation_id}/extend", response_model=ReservationResponse)
async def extend_reservation(store_id: str, reservation_id: str, body: ExtendReservationRequest) -> ReservationResponse:
    reservation = reserving.extend_reservation(store_id, reservation_id, body.additional_minutes)
    return _reservation_response(reservation)


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/expire-reservations", response_model=SweepResponse)
async def expire_reservations(body: ExpireReservationsRequest) -> SweepResponse:
    expired = expire_sweep(batch_limit=body.batch_limit, store_id=body.store_id)
    return SweepResponse(expired=expired)
