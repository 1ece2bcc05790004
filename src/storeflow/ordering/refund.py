"""Refund aggregate (CQRS) — the persisted refund ledger of an order.

Every refund requested against an order is recorded, so the remaining
refundable amount is always the order total minus what has already been
refunded, and several partial refunds cannot together exceed the total.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from storeflow.domain import storeflow
from storeflow.errors import InvalidStateError, NotFoundError
from storeflow.ordering.events import RefundProcessed, RefundRequested
from storeflow.utils.queries import fetch_all


class RefundType(Enum):
    FULL = "Full"
    PARTIAL = "Partial"


class RefundStatus(Enum):
    PENDING = "Pending"
    PROCESSED = "Processed"


def generate_refund_number(now=None):
    now = now or datetime.now(UTC)
    return f"REF-{now:%Y%m%d}-{uuid4().hex[:8].upper()}"


@storeflow.entity(part_of="Refund")
class RefundItem:
    order_item_id = Identifier()
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    refund_amount = Float(required=True, min_value=0.0)


@storeflow.aggregate
class Refund:
    store_id = Identifier(required=True)
    refund_number = String(required=True, max_length=50)
    order_id = Identifier(required=True)
    order_number = String(required=True, max_length=50)
    refund_type = String(required=True, choices=RefundType)
    status = String(choices=RefundStatus, default=RefundStatus.PENDING.value)
    refund_amount = Float(required=True, min_value=0.0)
    processed_amount = Float()
    reason = String(required=True, max_length=500)
    refund_method = String(max_length=50)
    notes = Text()
    items = HasMany(RefundItem)
    requested_date = DateTime()
    processed_date = DateTime()

    @classmethod
    def request(
        cls,
        order,
        refund_type,
        refund_amount,
        reason,
        items_data=None,
        refund_method=None,
        notes=None,
    ):
        now = datetime.now(UTC)
        refund = cls(
            store_id=order.store_id,
            refund_number=generate_refund_number(now),
            order_id=order.id,
            order_number=order.order_number,
            refund_type=RefundType(refund_type).value,
            status=RefundStatus.PENDING.value,
            refund_amount=refund_amount,
            reason=reason,
            refund_method=refund_method,
            notes=notes,
            requested_date=now,
        )
        for item in items_data or []:
            refund.add_items(RefundItem(**item))

        refund.raise_(
            RefundRequested(
                refund_id=str(refund.id),
                store_id=str(refund.store_id),
                refund_number=refund.refund_number,
                order_id=str(order.id),
                refund_type=refund.refund_type,
                refund_amount=refund_amount,
                reason=reason,
                requested_at=now,
            )
        )
        return refund

    def process(self, processed_amount=None):
        if RefundStatus(self.status) == RefundStatus.PROCESSED:
            raise InvalidStateError({"status": [f"Refund {self.refund_number} is already processed"]})
        if processed_amount is not None and (processed_amount <= 0 or processed_amount > self.refund_amount):
            raise InvalidStateError(
                {"processed_amount": [f"Processed amount must be between 0 and {self.refund_amount:.2f}"]}
            )

        now = datetime.now(UTC)
        self.status = RefundStatus.PROCESSED.value
        self.processed_amount = self.refund_amount if processed_amount is None else processed_amount
        self.processed_date = now
        self.raise_(
            RefundProcessed(
                refund_id=str(self.id),
                store_id=str(self.store_id),
                refund_number=self.refund_number,
                order_id=str(self.order_id),
                processed_amount=self.processed_amount,
                processed_at=now,
            )
        )


@storeflow.repository(part_of=Refund)
class RefundRepository:
    def for_order(self, store_id, order_id) -> list[Refund]:
        refunds = fetch_all(self._dao.query.filter(store_id=str(store_id), order_id=str(order_id)))
        return sorted(refunds, key=lambda refund: refund.requested_date)

    def get_for_store(self, store_id, refund_id) -> Refund:
        try:
            refund = self.get(refund_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError({"refund_id": [f"Refund {refund_id} not found"]}) from exc
        if str(refund.store_id) != str(store_id):
            raise NotFoundError({"refund_id": [f"Refund {refund_id} not found"]})
        return refund

    def find_by_refund_number(self, store_id, refund_number) -> Refund | None:
        results = self._dao.query.filter(store_id=str(store_id), refund_number=refund_number).all().items
        return self.get(results[0].id) if results else None
