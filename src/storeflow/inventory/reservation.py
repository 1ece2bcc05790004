"""StockReservation aggregate (CQRS) — a time-boxed hold against a product's stock.

Reservations are created ACTIVE and move exactly once to a terminal state:

    ACTIVE → CONFIRMED   (converted into a stock decrement by the saga)
    ACTIVE → RELEASED    (compensation, or an explicit release)
    ACTIVE → EXPIRED     (the expiry sweep, once ``expires_at`` has passed)

Each transition is a compare-and-set on ``status``: it only succeeds if the
reservation is still ACTIVE when it is re-read under the reservation's lock.
The reservation id is supplied by the caller and is unique within a store,
which makes duplicate submissions detectable.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from storeflow.domain import storeflow
from storeflow.errors import NotFoundError, ReservationConflictError
from storeflow.inventory.events import (
    ReservationConfirmed,
    ReservationCreated,
    ReservationExpired,
    ReservationExtended,
    ReservationReleased,
)
from storeflow.utils.queries import as_utc, fetch_all

DEFAULT_TTL_MINUTES = 15


class ReservationStatus(Enum):
    ACTIVE = "Active"
    CONFIRMED = "Confirmed"
    RELEASED = "Released"
    EXPIRED = "Expired"


TERMINAL_STATUSES = {
    ReservationStatus.CONFIRMED,
    ReservationStatus.RELEASED,
    ReservationStatus.EXPIRED,
}


@storeflow.aggregate
class StockReservation:
    store_id = Identifier(required=True)
    reservation_id = String(required=True, max_length=255)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    status = String(
        choices=ReservationStatus,
        default=ReservationStatus.ACTIVE.value,
    )
    ttl_minutes = Float(default=DEFAULT_TTL_MINUTES)
    reserved_at = DateTime(required=True)
    expires_at = DateTime(required=True)
    reserved_by = String(max_length=100)
    reference = String(max_length=255)
    notes = Text()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        store_id,
        reservation_id,
        product_id,
        quantity,
        ttl_minutes=DEFAULT_TTL_MINUTES,
        reserved_by=None,
        reference=None,
        notes=None,
    ):
        now = datetime.now(UTC)
        expires_at = now + timedelta(minutes=ttl_minutes)
        reservation = cls(
            store_id=store_id,
            reservation_id=reservation_id,
            product_id=product_id,
            quantity=quantity,
            status=ReservationStatus.ACTIVE.value,
            ttl_minutes=ttl_minutes,
            reserved_at=now,
            expires_at=expires_at,
            reserved_by=reserved_by,
            reference=reference,
            notes=notes,
            updated_at=now,
        )
        reservation.raise_(
            ReservationCreated(
                store_id=str(store_id),
                reservation_id=reservation_id,
                product_id=str(product_id),
                quantity=quantity,
                reserved_by=reserved_by,
                reference=reference,
                reserved_at=now,
                expires_at=expires_at,
            )
        )
        return reservation

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_active(self):
        return ReservationStatus(self.status) == ReservationStatus.ACTIVE

    def is_expired(self, as_of=None):
        as_of = as_utc(as_of) or datetime.now(UTC)
        return as_utc(self.expires_at) <= as_of

    def holds_stock(self, as_of=None):
        """True while the reservation still counts against available stock."""
        return self.is_active() and not self.is_expired(as_of)

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def confirm(self, as_of=None):
        if not self.is_active():
            raise ReservationConflictError(
                {"status": [f"Reservation {self.reservation_id} is {self.status} and cannot be confirmed"]}
            )
        if self.is_expired(as_of):
            raise ReservationConflictError({"expires_at": [f"Reservation {self.reservation_id} has expired"]})

        now = datetime.now(UTC)
        self.status = ReservationStatus.CONFIRMED.value
        self.updated_at = now
        self.raise_(
            ReservationConfirmed(
                store_id=str(self.store_id),
                reservation_id=self.reservation_id,
                product_id=str(self.product_id),
                quantity=self.quantity,
                confirmed_at=now,
            )
        )

    def release(self, reason=None):
        """Release the hold. Returns False if the reservation was already terminal."""
        if not self.is_active():
            return False

        now = datetime.now(UTC)
        self.status = ReservationStatus.RELEASED.value
        self.updated_at = now
        if reason:
            self.notes = f"{self.notes}\nReleased: {reason}" if self.notes else f"Released: {reason}"
        self.raise_(
            ReservationReleased(
                store_id=str(self.store_id),
                reservation_id=self.reservation_id,
                product_id=str(self.product_id),
                quantity=self.quantity,
                reason=reason,
                released_at=now,
            )
        )
        return True

    def expire(self, as_of=None):
        """Expire the hold. Returns False unless it is ACTIVE and past ``expires_at``."""
        if not self.is_active() or not self.is_expired(as_of):
            return False

        now = datetime.now(UTC)
        self.status = ReservationStatus.EXPIRED.value
        self.updated_at = now
        self.raise_(
            ReservationExpired(
                store_id=str(self.store_id),
                reservation_id=self.reservation_id,
                product_id=str(self.product_id),
                quantity=self.quantity,
                expires_at=self.expires_at,
                expired_at=now,
            )
        )
        return True

    def extend(self, additional_minutes):
        if not self.is_active():
            raise ReservationConflictError(
                {"status": [f"Reservation {self.reservation_id} is {self.status} and cannot be extended"]}
            )
        if additional_minutes is None or additional_minutes <= 0:
            raise ValidationError({"additional_minutes": ["Extension must be positive"]})

        previous_expires_at = self.expires_at
        self.expires_at = as_utc(previous_expires_at) + timedelta(minutes=additional_minutes)
        self.updated_at = datetime.now(UTC)
        self.raise_(
            ReservationExtended(
                store_id=str(self.store_id),
                reservation_id=self.reservation_id,
                previous_expires_at=previous_expires_at,
                new_expires_at=self.expires_at,
            )
        )


@storeflow.repository(part_of=StockReservation)
class StockReservationRepository:
    def find_by_reservation_id(self, store_id, reservation_id) -> StockReservation | None:
        results = (
            self._dao.query.filter(store_id=str(store_id), reservation_id=str(reservation_id)).all().items
        )
        return results[0] if results else None

    def get_by_reservation_id(self, store_id, reservation_id) -> StockReservation:
        reservation = self.find_by_reservation_id(store_id, reservation_id)
        if reservation is None:
            raise NotFoundError({"reservation_id": [f"Reservation {reservation_id} not found"]})
        return reservation

    def for_store(self, store_id, **filters) -> list[StockReservation]:
        return fetch_all(self._dao.query.filter(store_id=str(store_id), **filters))

    def active_for_product(self, store_id, product_id) -> list[StockReservation]:
        return self.for_store(store_id, product_id=str(product_id), status=ReservationStatus.ACTIVE.value)

    def active(self, store_id=None) -> list[StockReservation]:
        if store_id is None:
            return fetch_all(self._dao.query.filter(status=ReservationStatus.ACTIVE.value))
        return self.for_store(store_id, status=ReservationStatus.ACTIVE.value)

    def by_reference(self, store_id, reference) -> list[StockReservation]:
        return self.for_store(store_id, reference=str(reference))

    def by_reserved_by(self, store_id, reserved_by) -> list[StockReservation]:
        return self.for_store(store_id, reserved_by=str(reserved_by))
