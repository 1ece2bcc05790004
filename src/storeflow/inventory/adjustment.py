"""InventoryAdjustment aggregate — the append-only audit ledger.

One row is written for every change to a product's quantity, in the same unit
of work as the change itself. Rows are never updated or deleted; the history
of a product is the ordered list of its rows.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storeflow.domain import storeflow
from storeflow.inventory.stock import AdjustmentType
from storeflow.utils.queries import fetch_all


@storeflow.aggregate
class InventoryAdjustment:
    store_id = Identifier(required=True)
    product_id = Identifier(required=True)
    adjustment_type = String(required=True, choices=AdjustmentType)
    quantity = Integer(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    reason = String(required=True, max_length=255)
    reference = String(max_length=255)
    notes = Text()
    adjusted_by = String(required=True, max_length=100)
    adjusted_at = DateTime(required=True)

    @classmethod
    def record(
        cls,
        store_id,
        product_id,
        adjustment_type,
        quantity,
        previous_quantity,
        new_quantity,
        reason,
        adjusted_by,
        reference=None,
        notes=None,
    ):
        return cls(
            store_id=store_id,
            product_id=product_id,
            adjustment_type=AdjustmentType(adjustment_type).value,
            quantity=quantity,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            reason=reason,
            reference=reference,
            notes=notes,
            adjusted_by=adjusted_by,
            adjusted_at=datetime.now(UTC),
        )

    @property
    def delta(self):
        return self.new_quantity - self.previous_quantity


@storeflow.repository(part_of=InventoryAdjustment)
class InventoryAdjustmentRepository:
    def for_product(self, store_id, product_id) -> list[InventoryAdjustment]:
        """Adjustments for one product, newest first."""
        rows = fetch_all(self._dao.query.filter(store_id=str(store_id), product_id=str(product_id)))
        return sorted(rows, key=lambda row: row.adjusted_at, reverse=True)

    def by_reference(self, store_id, reference) -> list[InventoryAdjustment]:
        """Adjustments carrying a business reference (e.g. an order number), oldest first."""
        rows = fetch_all(self._dao.query.filter(store_id=str(store_id), reference=str(reference)))
        return sorted(rows, key=lambda row: row.adjusted_at)


def adjustment_history(store_id, product_id) -> list[InventoryAdjustment]:
    return current_domain.repository_for(InventoryAdjustment).for_product(store_id, product_id)


def adjustments_for_reference(store_id, reference) -> list[InventoryAdjustment]:
    return current_domain.repository_for(InventoryAdjustment).by_reference(store_id, reference)
