"""Tests for the StockReservation lifecycle — confirm, release, expire, extend."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError
from storeflow.errors import ReservationConflictError
from storeflow.inventory.events import (
    ReservationConfirmed,
    ReservationCreated,
    ReservationExpired,
    ReservationReleased,
)
from storeflow.inventory.reservation import ReservationStatus, StockReservation


def _make_reservation(**overrides):
    defaults = {
        "store_id": "store-001",
        "reservation_id": "res-001",
        "product_id": "prod-001",
        "quantity": 3,
        "ttl_minutes": 15,
    }
    defaults.update(overrides)
    return StockReservation.create(**defaults)


class TestCreate:
    def test_new_reservation_is_active(self):
        reservation = _make_reservation()
        assert reservation.status == ReservationStatus.ACTIVE.value
        assert reservation.is_active()

    def test_expires_after_ttl(self):
        reservation = _make_reservation(ttl_minutes=15)
        delta = reservation.expires_at - reservation.reserved_at
        assert delta == timedelta(minutes=15)

    def test_raises_reservation_created(self):
        reservation = _make_reservation()
        assert any(isinstance(e, ReservationCreated) for e in reservation._events)


class TestConfirm:
    def test_confirm_active(self):
        reservation = _make_reservation()
        reservation.confirm()
        assert reservation.status == ReservationStatus.CONFIRMED.value
        assert any(isinstance(e, ReservationConfirmed) for e in reservation._events)

    def test_confirm_twice_conflicts(self):
        reservation = _make_reservation()
        reservation.confirm()
        with pytest.raises(ReservationConflictError):
            reservation.confirm()

    def test_confirm_released_conflicts(self):
        reservation = _make_reservation()
        reservation.release()
        with pytest.raises(ReservationConflictError):
            reservation.confirm()

    def test_confirm_after_expiry_time_conflicts(self):
        reservation = _make_reservation(ttl_minutes=15)
        later = datetime.now(UTC) + timedelta(minutes=16)
        with pytest.raises(ReservationConflictError):
            reservation.confirm(as_of=later)
        assert reservation.status == ReservationStatus.ACTIVE.value


class TestRelease:
    def test_release_active(self):
        reservation = _make_reservation()
        assert reservation.release(reason="Customer left") is True
        assert reservation.status == ReservationStatus.RELEASED.value
        assert "Customer left" in reservation.notes
        assert any(isinstance(e, ReservationReleased) for e in reservation._events)

    def test_release_is_idempotent(self):
        reservation = _make_reservation()
        reservation.release()
        assert reservation.release() is False
        assert reservation.status == ReservationStatus.RELEASED.value

    def test_release_confirmed_is_a_noop(self):
        reservation = _make_reservation()
        reservation.confirm()
        assert reservation.release() is False
        assert reservation.status == ReservationStatus.CONFIRMED.value


class TestExpire:
    def test_expire_overdue(self):
        reservation = _make_reservation(ttl_minutes=1)
        assert reservation.expire(as_of=datetime.now(UTC) + timedelta(minutes=2)) is True
        assert reservation.status == ReservationStatus.EXPIRED.value
        assert any(isinstance(e, ReservationExpired) for e in reservation._events)

    def test_expire_before_deadline_is_a_noop(self):
        reservation = _make_reservation(ttl_minutes=15)
        assert reservation.expire() is False
        assert reservation.is_active()

    def test_overdue_active_no_longer_holds_stock(self):
        reservation = _make_reservation(ttl_minutes=1)
        later = datetime.now(UTC) + timedelta(minutes=2)
        assert reservation.is_active()
        assert not reservation.holds_stock(later)


class TestExtend:
    def test_extend_pushes_expiry(self):
        reservation = _make_reservation(ttl_minutes=15)
        original = reservation.expires_at
        reservation.extend(10)
        assert reservation.expires_at - original == timedelta(minutes=10)

    def test_extend_requires_positive_minutes(self):
        reservation = _make_reservation()
        with pytest.raises(ValidationError):
            reservation.extend(0)

    def test_extend_terminal_conflicts(self):
        reservation = _make_reservation()
        reservation.confirm()
        with pytest.raises(ReservationConflictError):
            reservation.extend(5)
