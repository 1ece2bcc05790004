"""Pydantic request/response schemas for the storeflow API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands and aggregates.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str
    state_province: str | None = None
    postal_code: str
    country: str
    phone: str | None = None


class RefundItemSchema(BaseModel):
    order_item_id: str | None = None
    product_id: str | None = None
    quantity: int = Field(ge=1)
    unit_price: float | None = Field(default=None, ge=0)
    refund_amount: float | None = Field(default=None, ge=0)


class StockUpdateSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=0)
    adjustment_type: str = "Set"
    low_stock_threshold: int | None = Field(default=None, ge=1)
    reason: str | None = None
    reference: str | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    cart_id: str
    customer_id: str
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    clear_cart: bool = True
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "cart_id": "cart-001",
                    "customer_id": "cust-001",
                    "shipping_address": {
                        "first_name": "Ada",
                        "last_name": "Lovelace",
                        "address_line1": "123 Main St",
                        "city": "Springfield",
                        "state_province": "IL",
                        "postal_code": "62701",
                        "country": "US",
                    },
                    "notes": "Promo: SAVE10",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    adjusted_by: str = "system"


class CancelOrderRequest(BaseModel):
    reason: str
    adjusted_by: str = "system"


class CreateRefundRequest(BaseModel):
    refund_type: str
    reason: str
    amount: float | None = Field(default=None, gt=0)
    items: list[RefundItemSchema] | None = None
    refund_method: str | None = None
    notes: str | None = None


class ProcessRefundRequest(BaseModel):
    processed_amount: float | None = Field(default=None, gt=0)


# ---------------------------------------------------------------------------
# Inventory Request Schemas
# ---------------------------------------------------------------------------
class RegisterStockRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=0, default=0)
    low_stock_threshold: int = Field(ge=1, default=10)
    track_inventory: bool = True


class RecordAdjustmentRequest(BaseModel):
    adjustment_type: str
    quantity: int = Field(ge=0)
    reason: str
    adjusted_by: str
    reference: str | None = None
    notes: str | None = None


class UpdateStockLevelRequest(BaseModel):
    quantity: int = Field(ge=0)
    adjusted_by: str
    low_stock_threshold: int | None = Field(default=None, ge=1)
    reason: str = "Stock level update"


class BulkUpdateRequest(BaseModel):
    updates: list[StockUpdateSchema]
    adjusted_by: str


# ---------------------------------------------------------------------------
# Reservation Request Schemas
# ---------------------------------------------------------------------------
class CreateReservationRequest(BaseModel):
    reservation_id: str
    product_id: str
    quantity: int = Field(ge=1)
    ttl_minutes: float = Field(gt=0, default=15)
    reserved_by: str = "system"
    reference: str | None = None
    notes: str | None = None


class ReleaseReservationRequest(BaseModel):
    reason: str | None = None


class ExtendReservationRequest(BaseModel):
    additional_minutes: float = Field(gt=0)


class ExpireReservationsRequest(BaseModel):
    store_id: str | None = None
    batch_limit: int = Field(ge=1, default=100)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    product_name: str
    product_sku: str | None = None
    quantity: int
    unit_price: float
    total_price: float


class OrderResponse(BaseModel):
    id: str
    store_id: str
    order_number: str
    customer_id: str
    status: str
    items: list[OrderItemResponse]
    subtotal: float
    tax_amount: float
    shipping_amount: float
    discount_amount: float
    total_amount: float
    currency: str
    notes: str | None = None
    order_date: datetime | None = None
    shipped_date: datetime | None = None
    delivered_date: datetime | None = None


class RefundResponse(BaseModel):
    id: str
    refund_number: str
    order_id: str
    refund_type: str
    status: str
    refund_amount: float
    processed_amount: float | None = None
    reason: str
    remaining_refundable: float


class ProductStockResponse(BaseModel):
    product_id: str
    quantity: int
    available: int | None = None
    low_stock_threshold: int
    track_inventory: bool
    is_low_stock: bool


class AdjustmentResponse(BaseModel):
    id: str
    product_id: str
    adjustment_type: str
    quantity: int
    previous_quantity: int
    new_quantity: int
    reason: str
    reference: str | None = None
    adjusted_by: str
    adjusted_at: datetime


class ReservationResponse(BaseModel):
    reservation_id: str
    product_id: str
    quantity: int
    status: str
    reserved_at: datetime
    expires_at: datetime
    reserved_by: str | None = None
    reference: str | None = None


class LowStockAlertResponse(BaseModel):
    product_id: str
    current_stock: int
    low_stock_threshold: int
    stock_percentage: float
    urgency: str


class ReleaseResponse(BaseModel):
    released: bool


class SweepResponse(BaseModel):
    expired: int


class StatusResponse(BaseModel):
    status: str = "ok"
