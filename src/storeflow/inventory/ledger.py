"""Stock ledger — commands, handler and the public ledger operations.

Every mutation is a command whose handler changes the ProductStock and
appends its InventoryAdjustment row in one unit of work. The public functions
hold the product's lock around ``current_domain.process(...)`` so concurrent
mutations of the same product are serialized end to end, commit included.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storeflow.domain import storeflow
from storeflow.errors import InsufficientStockError, InvalidStateError, error_messages
from storeflow.inventory.adjustment import InventoryAdjustment
from storeflow.inventory.locking import hold_products
from storeflow.inventory.reserving import total_reserved
from storeflow.inventory.stock import AdjustmentType, ProductStock

logger = structlog.get_logger(__name__)


@storeflow.command(part_of="ProductStock")
class RegisterProductStock:
    """Register the opening stock of a product (not a ledger mutation)."""

    store_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(default=0)
    low_stock_threshold = Integer(default=10)
    track_inventory = Boolean(default=True)


@storeflow.command(part_of="ProductStock")
class RecordAdjustment:
    store_id = Identifier(required=True)
    product_id = Identifier(required=True)
    adjustment_type = String(required=True, choices=AdjustmentType)
    quantity = Integer(required=True)
    reason = String(required=True, max_length=255)
    reference = String(max_length=255)
    notes = Text()
    adjusted_by = String(required=True, max_length=100)


@storeflow.command(part_of="ProductStock")
class UpdateStockLevel:
    """Set a product's quantity outright, optionally changing its threshold."""

    store_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    low_stock_threshold = Integer()
    reason = String(max_length=255, default="Stock level update")
    adjusted_by = String(required=True, max_length=100)


@storeflow.command(part_of="ProductStock")
class BulkUpdateStock:
    """Apply many updates as one all-or-nothing batch."""

    store_id = Identifier(required=True)
    updates = Text(required=True)  # JSON: list of update dicts
    adjusted_by = String(required=True, max_length=100)


@storeflow.command_handler(part_of=ProductStock)
class StockLedgerHandler:
    @handle(RegisterProductStock)
    def register_product_stock(self, command):
        repo = current_domain.repository_for(ProductStock)
        if repo.find_for_product(command.store_id, command.product_id) is not None:
            raise ValidationError({"product_id": [f"Stock for product {command.product_id} is already registered"]})

        stock = ProductStock.register(
            store_id=command.store_id,
            product_id=command.product_id,
            quantity=command.quantity,
            low_stock_threshold=command.low_stock_threshold,
            track_inventory=command.track_inventory,
        )
        repo.add(stock)
        return str(stock.id)

    @handle(RecordAdjustment)
    def record_adjustment(self, command):
        stock_repo = current_domain.repository_for(ProductStock)
        stock = stock_repo.get_for_product(command.store_id, command.product_id)

        adjustment = _apply(
            stock,
            adjustment_type=command.adjustment_type,
            quantity=command.quantity,
            reason=command.reason,
            reference=command.reference,
            notes=command.notes,
            adjusted_by=command.adjusted_by,
        )
        stock_repo.add(stock)
        current_domain.repository_for(InventoryAdjustment).add(adjustment)
        return str(adjustment.id)

    @handle(UpdateStockLevel)
    def update_stock_level(self, command):
        stock_repo = current_domain.repository_for(ProductStock)
        stock = stock_repo.get_for_product(command.store_id, command.product_id)

        _validate_level_update(stock, command.quantity, command.low_stock_threshold)
        if command.low_stock_threshold is not None:
            stock.change_threshold(command.low_stock_threshold)

        adjustment = _apply(
            stock,
            adjustment_type=AdjustmentType.SET.value,
            quantity=command.quantity,
            reason=command.reason or "Stock level update",
            adjusted_by=command.adjusted_by,
        )
        stock_repo.add(stock)
        current_domain.repository_for(InventoryAdjustment).add(adjustment)
        return str(adjustment.id)

    @handle(BulkUpdateStock)
    def bulk_update(self, command):
        updates = json.loads(command.updates) if isinstance(command.updates, str) else command.updates
        stock_repo = current_domain.repository_for(ProductStock)

        # Apply to in-memory aggregates first; nothing is persisted unless every
        # update succeeds, so a failure leaves the whole batch unapplied.
        stocks = {}
        adjustments = []
        for index, update in enumerate(updates):
            product_id = str(update.get("product_id"))
            try:
                stock = stocks.get(product_id)
                if stock is None:
                    stock = stock_repo.get_for_product(command.store_id, product_id)
                    stocks[product_id] = stock

                adjustment_type = update.get("adjustment_type") or AdjustmentType.SET.value
                threshold = update.get("low_stock_threshold")
                _validate_level_update(stock, update.get("quantity"), threshold)
                if threshold is not None:
                    stock.change_threshold(threshold)

                adjustments.append(
                    _apply(
                        stock,
                        adjustment_type=adjustment_type,
                        quantity=update.get("quantity"),
                        reason=update.get("reason") or "Bulk stock update",
                        reference=update.get("reference"),
                        notes=update.get("notes"),
                        adjusted_by=command.adjusted_by,
                    )
                )
            except (ValidationError, ObjectNotFoundError) as exc:
                messages = dict(error_messages(exc))
                messages["update_index"] = [str(index)]
                raise type(exc)(messages) from exc

        for stock in stocks.values():
            stock_repo.add(stock)
        adjustment_repo = current_domain.repository_for(InventoryAdjustment)
        for adjustment in adjustments:
            adjustment_repo.add(adjustment)

        return [str(adjustment.id) for adjustment in adjustments]


def _validate_level_update(stock, quantity, threshold):
    if not stock.track_inventory:
        raise InvalidStateError({"product_id": [f"Inventory tracking is disabled for product {stock.product_id}"]})
    if quantity is None or quantity < 0:
        raise ValidationError({"quantity": ["Quantity must not be negative"]})
    if threshold is not None and threshold <= 0:
        raise ValidationError({"low_stock_threshold": ["Low stock threshold must be positive"]})


def _assert_holds_covered(stock, previous_quantity, new_quantity):
    """Reject a reduction that would leave active reservations uncovered."""
    if new_quantity >= previous_quantity:
        return
    reserved = total_reserved(stock.store_id, stock.product_id)
    if new_quantity < reserved:
        raise InsufficientStockError(
            {
                "quantity": [
                    f"Insufficient stock for product {stock.product_id}: "
                    f"{reserved} units are reserved, cannot go down to {new_quantity}"
                ]
            }
        )


def _apply(stock, adjustment_type, quantity, reason, adjusted_by, reference=None, notes=None):
    previous_quantity, new_quantity = stock.adjust(
        adjustment_type=adjustment_type,
        quantity=quantity,
        reason=reason,
        adjusted_by=adjusted_by,
        reference=reference,
    )
    _assert_holds_covered(stock, previous_quantity, new_quantity)
    return InventoryAdjustment.record(
        store_id=stock.store_id,
        product_id=stock.product_id,
        adjustment_type=adjustment_type,
        quantity=quantity,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        reason=reason,
        reference=reference,
        notes=notes,
        adjusted_by=adjusted_by,
    )


# ---------------------------------------------------------------------------
# Public ledger operations
# ---------------------------------------------------------------------------
def register_product_stock(store_id, product_id, quantity=0, low_stock_threshold=10, track_inventory=True):
    with hold_products(store_id, [product_id]):
        current_domain.process(
            RegisterProductStock(
                store_id=store_id,
                product_id=product_id,
                quantity=quantity,
                low_stock_threshold=low_stock_threshold,
                track_inventory=track_inventory,
            ),
            asynchronous=False,
        )
    return get_product_stock(store_id, product_id)


def get_product_stock(store_id, product_id) -> ProductStock:
    return current_domain.repository_for(ProductStock).get_for_product(store_id, product_id)


def has_sufficient_stock(store_id, product_id, quantity) -> bool:
    """True if the product can cover ``quantity``; always true when untracked."""
    stock = get_product_stock(store_id, product_id)
    if not stock.track_inventory:
        return True
    return stock.quantity >= quantity


def current_stock_level(store_id, product_id):
    """On-hand quantity, or None for products that do not track inventory."""
    stock = get_product_stock(store_id, product_id)
    if not stock.track_inventory:
        return None
    return stock.quantity


def available_stock(store_id, product_id, as_of=None):
    """On-hand quantity minus active reservations, or None when untracked."""
    stock = get_product_stock(store_id, product_id)
    if not stock.track_inventory:
        return None
    return stock.quantity - total_reserved(store_id, product_id, as_of=as_of)


def record_adjustment(
    store_id,
    product_id,
    adjustment_type,
    quantity,
    reason,
    adjusted_by,
    reference=None,
    notes=None,
) -> InventoryAdjustment:
    """Apply one INCREASE / DECREASE / SET and append its audit row atomically."""
    if isinstance(adjustment_type, AdjustmentType):
        adjustment_type = adjustment_type.value
    with hold_products(store_id, [product_id]):
        adjustment_id = current_domain.process(
            RecordAdjustment(
                store_id=store_id,
                product_id=product_id,
                adjustment_type=adjustment_type,
                quantity=quantity,
                reason=reason,
                reference=reference,
                notes=notes,
                adjusted_by=adjusted_by,
            ),
            asynchronous=False,
        )

    adjustment = current_domain.repository_for(InventoryAdjustment).get(adjustment_id)
    logger.info(
        "Stock adjusted",
        store_id=str(store_id),
        product_id=str(product_id),
        adjustment_type=adjustment_type,
        quantity=quantity,
        previous_quantity=adjustment.previous_quantity,
        new_quantity=adjustment.new_quantity,
        reference=reference,
    )
    return adjustment


def update_stock_level(
    store_id,
    product_id,
    quantity,
    adjusted_by,
    low_stock_threshold=None,
    reason="Stock level update",
) -> InventoryAdjustment:
    with hold_products(store_id, [product_id]):
        adjustment_id = current_domain.process(
            UpdateStockLevel(
                store_id=store_id,
                product_id=product_id,
                quantity=quantity,
                low_stock_threshold=low_stock_threshold,
                reason=reason,
                adjusted_by=adjusted_by,
            ),
            asynchronous=False,
        )
    return current_domain.repository_for(InventoryAdjustment).get(adjustment_id)


def bulk_update(store_id, updates, adjusted_by) -> list[InventoryAdjustment]:
    """Apply ``updates`` in order as one atomic batch.

    Each update is a dict with ``product_id`` and ``quantity`` and optionally
    ``adjustment_type`` (default SET), ``low_stock_threshold``, ``reason``,
    ``reference`` and ``notes``. If any update fails, no product changes and
    the raised error carries the failing ``update_index``.
    """
    if not updates:
        return []

    product_ids = {str(update.get("product_id")) for update in updates}
    with hold_products(store_id, product_ids):
        adjustment_ids = current_domain.process(
            BulkUpdateStock(
                store_id=store_id,
                updates=json.dumps(updates),
                adjusted_by=adjusted_by,
            ),
            asynchronous=False,
        )

    logger.info("Bulk stock update applied", store_id=str(store_id), updates=len(adjustment_ids))
    repo = current_domain.repository_for(InventoryAdjustment)
    return [repo.get(adjustment_id) for adjustment_id in adjustment_ids]
