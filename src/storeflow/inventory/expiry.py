"""Reservation expiry — sweep and housekeeping commands.

Designed to be triggered periodically by the sweeper runner (``src/sweeper.py``)
or by an external scheduler via the maintenance API endpoint, never inline
with a user request. Scans ACTIVE reservations past their expiry time and
flips each to EXPIRED with the same compare-and-set used by confirm and
release, so concurrent sweepers and a racing confirm never double-apply.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, Integer
from protean.utils.globals import current_domain

from storeflow.domain import storeflow
from storeflow.inventory.reservation import TERMINAL_STATUSES, ReservationStatus, StockReservation
from storeflow.inventory.reserving import expire_reservation
from storeflow.utils.queries import as_utc

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_LIMIT = 100


@storeflow.command(part_of="StockReservation")
class ExpireReservations:
    """Expire up to ``batch_limit`` overdue reservations (all stores when ``store_id`` is empty)."""

    store_id = Identifier()
    batch_limit = Integer(default=DEFAULT_BATCH_LIMIT, min_value=1)
    as_of = DateTime()  # Optional: defaults to now


@storeflow.command(part_of="StockReservation")
class PurgeTerminalReservations:
    """Delete CONFIRMED / RELEASED / EXPIRED reservations last touched before the cut-off."""

    store_id = Identifier(required=True)
    older_than_days = Integer(default=30, min_value=1)
    as_of = DateTime()


@storeflow.command_handler(part_of=StockReservation)
class ReservationExpiryHandler:
    @handle(ExpireReservations)
    def expire_reservations(self, command):
        as_of = as_utc(command.as_of) or datetime.now(UTC)
        batch_limit = command.batch_limit or DEFAULT_BATCH_LIMIT

        logger.info(
            "Checking for expired reservations",
            store_id=command.store_id,
            as_of=as_of.isoformat(),
            batch_limit=batch_limit,
        )

        active = current_domain.repository_for(StockReservation).active(command.store_id)
        overdue = sorted(
            (reservation for reservation in active if reservation.is_expired(as_of)),
            key=lambda reservation: as_utc(reservation.expires_at),
        )[:batch_limit]

        if not overdue:
            logger.info("No expired reservations found")
            return 0

        expired_count = 0
        for reservation in overdue:
            try:
                if expire_reservation(reservation.store_id, reservation.reservation_id, as_of=as_of):
                    expired_count += 1
                    logger.info(
                        "Expired reservation",
                        store_id=str(reservation.store_id),
                        reservation_id=reservation.reservation_id,
                        product_id=str(reservation.product_id),
                        expires_at=str(reservation.expires_at),
                    )
                else:
                    logger.info(
                        "Reservation no longer active, skipped",
                        reservation_id=reservation.reservation_id,
                    )
            except (ValidationError, InvalidOperationError, ObjectNotFoundError) as exc:
                logger.warning(
                    "Failed to expire reservation",
                    reservation_id=reservation.reservation_id,
                    error=str(exc),
                )

        logger.info("Reservation expiry sweep complete", expired_count=expired_count)
        return expired_count

    @handle(PurgeTerminalReservations)
    def purge_terminal_reservations(self, command):
        as_of = as_utc(command.as_of) or datetime.now(UTC)
        cutoff = as_of - timedelta(days=command.older_than_days or 30)

        repo = current_domain.repository_for(StockReservation)
        purged = 0
        for reservation in repo.for_store(command.store_id):
            if ReservationStatus(reservation.status) not in TERMINAL_STATUSES:
                continue
            touched_at = as_utc(reservation.updated_at or reservation.reserved_at)
            if touched_at < cutoff:
                repo._dao.delete(reservation)
                purged += 1

        logger.info("Purged terminal reservations", store_id=command.store_id, purged=purged)
        return purged


def expire_sweep(batch_limit=DEFAULT_BATCH_LIMIT, store_id=None, as_of=None) -> int:
    """Run one expiry sweep and return how many reservations were expired."""
    return current_domain.process(
        ExpireReservations(store_id=store_id, batch_limit=batch_limit, as_of=as_of),
        asynchronous=False,
    )


def purge_terminal(store_id, older_than_days=30, as_of=None) -> int:
    return current_domain.process(
        PurgeTerminalReservations(store_id=store_id, older_than_days=older_than_days, as_of=as_of),
        asynchronous=False,
    )
