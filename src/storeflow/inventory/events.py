"""Domain events for product stock and stock reservations."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from storeflow.domain import storeflow


# ---------------------------------------------------------------------------
# ProductStock events
# ---------------------------------------------------------------------------
@storeflow.event(part_of="ProductStock")
class StockRegistered:
    """Opening stock was registered for a product."""

    __version__ = 1

    product_stock_id = Identifier(required=True)
    store_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    low_stock_threshold = Integer(required=True)
    track_inventory = Boolean(default=True)
    registered_at = DateTime(required=True)


@storeflow.event(part_of="ProductStock")
class StockAdjusted:
    """A product's quantity changed through the stock ledger."""

    __version__ = 1

    product_stock_id = Identifier(required=True)
    store_id = Identifier(required=True)
    product_id = Identifier(required=True)
    adjustment_type = String(required=True)
    quantity = Integer(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    reason = String(required=True)
    reference = String()
    adjusted_by = String(required=True)
    adjusted_at = DateTime(required=True)


@storeflow.event(part_of="ProductStock")
class LowStockDetected:
    """A tracked product fell to or below its low-stock threshold."""

    __version__ = 1

    product_stock_id = Identifier(required=True)
    store_id = Identifier(required=True)
    product_id = Identifier(required=True)
    current_quantity = Integer(required=True)
    low_stock_threshold = Integer(required=True)
    detected_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# StockReservation events
# ---------------------------------------------------------------------------
@storeflow.event(part_of="StockReservation")
class ReservationCreated:
    __version__ = 1

    store_id = Identifier(required=True)
    reservation_id = String(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    reserved_by = String()
    reference = String()
    reserved_at = DateTime(required=True)
    expires_at = DateTime(required=True)


@storeflow.event(part_of="StockReservation")
class ReservationConfirmed:
    __version__ = 1

    store_id = Identifier(required=True)
    reservation_id = String(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    confirmed_at = DateTime(required=True)


@storeflow.event(part_of="StockReservation")
class ReservationReleased:
    __version__ = 1

    store_id = Identifier(required=True)
    reservation_id = String(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String()
    released_at = DateTime(required=True)


@storeflow.event(part_of="StockReservation")
class ReservationExpired:
    __version__ = 1

    store_id = Identifier(required=True)
    reservation_id = String(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    expires_at = DateTime(required=True)
    expired_at = DateTime(required=True)


@storeflow.event(part_of="StockReservation")
class ReservationExtended:
    __version__ = 1

    store_id = Identifier(required=True)
    reservation_id = String(required=True)
    previous_expires_at = DateTime(required=True)
    new_expires_at = DateTime(required=True)
