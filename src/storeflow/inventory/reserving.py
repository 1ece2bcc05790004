"""Reservation store — commands, handler and the public reservation operations.

Creating a reservation holds the product's lock while availability is
checked and the hold is written, so two checkouts can never both claim the
last units. Transitions hold the reservation's lock around the command,
turning the status check inside the handler into a compare-and-set.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storeflow.domain import storeflow
from storeflow.errors import InsufficientStockError, ReservationConflictError
from storeflow.inventory.locking import hold, product_key, reservation_key
from storeflow.inventory.reservation import DEFAULT_TTL_MINUTES, ReservationStatus, StockReservation
from storeflow.inventory.stock import ProductStock

logger = structlog.get_logger(__name__)


@storeflow.command(part_of="StockReservation")
class CreateReservation:
    store_id = Identifier(required=True)
    reservation_id = String(required=True, max_length=255)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    ttl_minutes = Float(default=DEFAULT_TTL_MINUTES)
    reserved_by = String(max_length=100)
    reference = String(max_length=255)
    notes = Text()


@storeflow.command(part_of="StockReservation")
class ConfirmReservation:
    store_id = Identifier(required=True)
    reservation_id = String(required=True, max_length=255)


@storeflow.command(part_of="StockReservation")
class ReleaseReservation:
    store_id = Identifier(required=True)
    reservation_id = String(required=True, max_length=255)
    reason = String(max_length=255)


@storeflow.command(part_of="StockReservation")
class ExtendReservation:
    store_id = Identifier(required=True)
    reservation_id = String(required=True, max_length=255)
    additional_minutes = Float(required=True)


@storeflow.command(part_of="StockReservation")
class ExpireReservation:
    """Expire one reservation if it is still ACTIVE and past its expiry."""

    store_id = Identifier(required=True)
    reservation_id = String(required=True, max_length=255)
    as_of = DateTime()


@storeflow.command_handler(part_of=StockReservation)
class ReservationHandler:
    @handle(CreateReservation)
    def create_reservation(self, command):
        repo = current_domain.repository_for(StockReservation)
        if repo.find_by_reservation_id(command.store_id, command.reservation_id) is not None:
            raise ReservationConflictError(
                {"reservation_id": [f"Reservation {command.reservation_id} already exists"]}
            )

        stock = current_domain.repository_for(ProductStock).get_for_product(command.store_id, command.product_id)
        if stock.track_inventory:
            available = stock.quantity - total_reserved(command.store_id, command.product_id)
            if available < command.quantity:
                raise InsufficientStockError(
                    {
                        "quantity": [
                            f"Insufficient stock for product {command.product_id}: "
                            f"{available} available, {command.quantity} requested"
                        ]
                    }
                )

        reservation = StockReservation.create(
            store_id=command.store_id,
            reservation_id=command.reservation_id,
            product_id=command.product_id,
            quantity=command.quantity,
            ttl_minutes=command.ttl_minutes if command.ttl_minutes is not None else DEFAULT_TTL_MINUTES,
            reserved_by=command.reserved_by,
            reference=command.reference,
            notes=command.notes,
        )
        repo.add(reservation)
        return reservation.reservation_id

    @handle(ConfirmReservation)
    def confirm_reservation(self, command):
        repo = current_domain.repository_for(StockReservation)
        reservation = repo.get_by_reservation_id(command.store_id, command.reservation_id)
        reservation.confirm()
        repo.add(reservation)
        return reservation.quantity

    @handle(ReleaseReservation)
    def release_reservation(self, command):
        repo = current_domain.repository_for(StockReservation)
        reservation = repo.get_by_reservation_id(command.store_id, command.reservation_id)
        released = reservation.release(reason=command.reason)
        if released:
            repo.add(reservation)
        return released

    @handle(ExtendReservation)
    def extend_reservation(self, command):
        repo = current_domain.repository_for(StockReservation)
        reservation = repo.get_by_reservation_id(command.store_id, command.reservation_id)
        reservation.extend(command.additional_minutes)
        repo.add(reservation)

    @handle(ExpireReservation)
    def expire_reservation(self, command):
        repo = current_domain.repository_for(StockReservation)
        reservation = repo.get_by_reservation_id(command.store_id, command.reservation_id)
        expired = reservation.expire(as_of=command.as_of)
        if expired:
            repo.add(reservation)
        return expired


# ---------------------------------------------------------------------------
# Public reservation operations
# ---------------------------------------------------------------------------
def create_reservation(
    store_id,
    reservation_id,
    product_id,
    quantity,
    ttl_minutes=DEFAULT_TTL_MINUTES,
    reserved_by="system",
    reference=None,
    notes=None,
) -> StockReservation:
    """Place a hold of ``quantity`` units of a product.

    Raises ``ReservationConflictError`` if ``reservation_id`` is already used
    in the store and ``InsufficientStockError`` if available stock (on hand
    minus active holds) cannot cover the request.
    """
    with hold(product_key(store_id, product_id), reservation_key(store_id, reservation_id)):
        current_domain.process(
            CreateReservation(
                store_id=store_id,
                reservation_id=reservation_id,
                product_id=product_id,
                quantity=quantity,
                ttl_minutes=ttl_minutes,
                reserved_by=reserved_by,
                reference=reference,
                notes=notes,
            ),
            asynchronous=False,
        )

    logger.info(
        "Reservation created",
        store_id=str(store_id),
        reservation_id=reservation_id,
        product_id=str(product_id),
        quantity=quantity,
        ttl_minutes=ttl_minutes,
    )
    return get_reservation(store_id, reservation_id)


def confirm_reservation(store_id, reservation_id) -> StockReservation:
    """ACTIVE → CONFIRMED; anything else raises ``ReservationConflictError``."""
    reservation = get_reservation(store_id, reservation_id)
    with hold(product_key(store_id, reservation.product_id), reservation_key(store_id, reservation_id)):
        current_domain.process(
            ConfirmReservation(store_id=store_id, reservation_id=reservation_id),
            asynchronous=False,
        )

    logger.info("Reservation confirmed", store_id=str(store_id), reservation_id=reservation_id)
    return get_reservation(store_id, reservation_id)


def release_reservation(store_id, reservation_id, reason=None) -> bool:
    """ACTIVE → RELEASED. Releasing a terminal reservation is a no-op returning False."""
    with hold(reservation_key(store_id, reservation_id)):
        released = current_domain.process(
            ReleaseReservation(store_id=store_id, reservation_id=reservation_id, reason=reason),
            asynchronous=False,
        )

    if released:
        logger.info("Reservation released", store_id=str(store_id), reservation_id=reservation_id, reason=reason)
    else:
        logger.debug("Reservation already terminal, release skipped", reservation_id=reservation_id)
    return bool(released)


def extend_reservation(store_id, reservation_id, additional_minutes) -> StockReservation:
    with hold(reservation_key(store_id, reservation_id)):
        current_domain.process(
            ExtendReservation(
                store_id=store_id,
                reservation_id=reservation_id,
                additional_minutes=additional_minutes,
            ),
            asynchronous=False,
        )
    return get_reservation(store_id, reservation_id)


def expire_reservation(store_id, reservation_id, as_of=None) -> bool:
    """Compare-and-set ACTIVE → EXPIRED for one reservation past its expiry."""
    with hold(reservation_key(store_id, reservation_id)):
        expired = current_domain.process(
            ExpireReservation(store_id=store_id, reservation_id=reservation_id, as_of=as_of),
            asynchronous=False,
        )
    return bool(expired)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def get_reservation(store_id, reservation_id) -> StockReservation:
    return current_domain.repository_for(StockReservation).get_by_reservation_id(store_id, reservation_id)


def total_reserved(store_id, product_id, as_of=None) -> int:
    """Sum of quantities of ACTIVE, non-expired reservations for a product."""
    as_of = as_of or datetime.now(UTC)
    reservations = current_domain.repository_for(StockReservation).active_for_product(store_id, product_id)
    return sum(reservation.quantity for reservation in reservations if reservation.holds_stock(as_of))


def find_by_reference(store_id, reference) -> list[StockReservation]:
    return current_domain.repository_for(StockReservation).by_reference(store_id, reference)


def find_by_reserved_by(store_id, reserved_by) -> list[StockReservation]:
    return current_domain.repository_for(StockReservation).by_reserved_by(store_id, reserved_by)


def reservation_stats(store_id, as_of=None) -> dict:
    """Counts of reservations by status; ``expired`` includes overdue ACTIVE holds."""
    as_of = as_of or datetime.now(UTC)
    reservations = current_domain.repository_for(StockReservation).for_store(store_id)

    stats = {"total": len(reservations), "active": 0, "expired": 0, "confirmed": 0, "released": 0}
    for reservation in reservations:
        status = ReservationStatus(reservation.status)
        if status == ReservationStatus.ACTIVE:
            if reservation.is_expired(as_of):
                stats["expired"] += 1
            else:
                stats["active"] += 1
        elif status == ReservationStatus.EXPIRED:
            stats["expired"] += 1
        elif status == ReservationStatus.CONFIRMED:
            stats["confirmed"] += 1
        else:
            stats["released"] += 1
    return stats
