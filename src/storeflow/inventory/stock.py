"""ProductStock aggregate (CQRS) — a product's on-hand quantity in one store.

The quantity is only ever changed through the stock ledger: every change is an
INCREASE, DECREASE or SET adjustment that produces exactly one audit row
(see ``storeflow.inventory.adjustment``). Products that do not track
inventory are always considered in stock and are never adjusted.

Available stock is not stored here; it is derived as
``quantity - total active reservations`` by the ledger.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer

from storeflow.domain import storeflow
from storeflow.errors import InsufficientStockError, InvalidStateError, NotFoundError
from storeflow.inventory.events import LowStockDetected, StockAdjusted, StockRegistered
from storeflow.utils.queries import fetch_all


class AdjustmentType(Enum):
    INCREASE = "Increase"
    DECREASE = "Decrease"
    SET = "Set"


def resolve_new_quantity(current, adjustment_type, quantity):
    """Apply an adjustment to ``current`` and return the resulting quantity.

    Raises ``InsufficientStockError`` if the result would be negative.
    """
    try:
        adjustment_type = AdjustmentType(adjustment_type)
    except ValueError as exc:
        raise ValidationError({"adjustment_type": [f"Unknown adjustment type: {adjustment_type}"]}) from exc
    if quantity is None or quantity < 0:
        raise ValidationError({"quantity": ["Quantity must not be negative"]})
    if adjustment_type != AdjustmentType.SET and quantity == 0:
        raise ValidationError({"quantity": ["Quantity must be positive"]})

    if adjustment_type == AdjustmentType.INCREASE:
        new_quantity = current + quantity
    elif adjustment_type == AdjustmentType.DECREASE:
        new_quantity = current - quantity
    else:
        new_quantity = quantity

    if new_quantity < 0:
        raise InsufficientStockError(
            {"quantity": [f"Insufficient stock: {current} on hand, cannot decrease by {quantity}"]}
        )
    return new_quantity


@storeflow.aggregate
class ProductStock:
    store_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(default=0)
    low_stock_threshold = Integer(default=10, min_value=0)
    track_inventory = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def quantity_cannot_be_negative(self):
        if self.quantity is not None and self.quantity < 0:
            raise ValidationError({"quantity": ["Stock quantity cannot be negative"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def register(cls, store_id, product_id, quantity=0, low_stock_threshold=10, track_inventory=True):
        if quantity < 0:
            raise ValidationError({"quantity": ["Quantity must not be negative"]})

        now = datetime.now(UTC)
        stock = cls(
            store_id=store_id,
            product_id=product_id,
            quantity=quantity,
            low_stock_threshold=low_stock_threshold,
            track_inventory=track_inventory,
            created_at=now,
            updated_at=now,
        )
        stock.raise_(
            StockRegistered(
                product_stock_id=str(stock.id),
                store_id=str(store_id),
                product_id=str(product_id),
                quantity=quantity,
                low_stock_threshold=low_stock_threshold,
                track_inventory=track_inventory,
                registered_at=now,
            )
        )
        return stock

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_low_stock(self):
        return bool(self.track_inventory) and self.quantity <= self.low_stock_threshold

    def _check_low_stock(self):
        """Raise LowStockDetected if quantity is at or below the threshold."""
        if self.is_low_stock():
            self.raise_(
                LowStockDetected(
                    product_stock_id=str(self.id),
                    store_id=str(self.store_id),
                    product_id=str(self.product_id),
                    current_quantity=self.quantity,
                    low_stock_threshold=self.low_stock_threshold,
                    detected_at=datetime.now(UTC),
                )
            )

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def adjust(self, adjustment_type, quantity, reason, adjusted_by, reference=None):
        """Apply one ledger adjustment and return ``(previous, new)`` quantities."""
        if not self.track_inventory:
            raise InvalidStateError({"product_id": [f"Inventory tracking is disabled for product {self.product_id}"]})

        previous_quantity = self.quantity
        new_quantity = resolve_new_quantity(previous_quantity, adjustment_type, quantity)
        now = datetime.now(UTC)

        self.quantity = new_quantity
        self.updated_at = now

        self.raise_(
            StockAdjusted(
                product_stock_id=str(self.id),
                store_id=str(self.store_id),
                product_id=str(self.product_id),
                adjustment_type=AdjustmentType(adjustment_type).value,
                quantity=quantity,
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
                reason=reason,
                reference=reference,
                adjusted_by=adjusted_by,
                adjusted_at=now,
            )
        )
        self._check_low_stock()
        return previous_quantity, new_quantity

    def change_threshold(self, low_stock_threshold):
        if low_stock_threshold is None or low_stock_threshold <= 0:
            raise ValidationError({"low_stock_threshold": ["Low stock threshold must be positive"]})
        self.low_stock_threshold = low_stock_threshold
        self.updated_at = datetime.now(UTC)


@storeflow.repository(part_of=ProductStock)
class ProductStockRepository:
    def find_for_product(self, store_id, product_id) -> ProductStock | None:
        results = self._dao.query.filter(store_id=str(store_id), product_id=str(product_id)).all().items
        return results[0] if results else None

    def get_for_product(self, store_id, product_id) -> ProductStock:
        stock = self.find_for_product(store_id, product_id)
        if stock is None:
            raise NotFoundError({"product_id": [f"Product {product_id} not found in store {store_id}"]})
        return stock

    def for_store(self, store_id) -> list[ProductStock]:
        return fetch_all(self._dao.query.filter(store_id=str(store_id)))
