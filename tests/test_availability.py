import uuid
from datetime import timedelta

import pytest
from django.core.management import call_command
from django.db import connection, transaction
from django.test.utils import CaptureQueriesContext
from django.utils import timezone

from api.booking.availability import (
    check_availability,
    find_conflict,
    is_available,
    lock_vehicle,
    refresh_vehicle_availability,
)
from api.booking.models import Reservation
from api.exceptions import NotFoundError, ValidationError

pytestmark = pytest.mark.django_db


def test_free_car_is_available(car, at):
    result = check_availability(car.id, at(0), at(2))
    assert result.available
    assert result.as_dict() == {'available': True}


def test_overlap_blocks(car, customer, make_reservation, at):
    existing = make_reservation(car, customer, at(0), at(2))

    result = check_availability(car.id, at(1), at(3))

    assert not result.available
    assert result.conflict_id == str(existing.id)
    assert result.as_dict() == {'available': False}
    assert result.as_dict(include_conflict=True)['conflict']['reservation_id'] == str(existing.id)


def test_back_to_back_windows_do_not_conflict(car, customer, make_reservation, at):
    make_reservation(car, customer, at(0), at(2))

    assert is_available(car.id, at(2), at(4))
    assert is_available(car.id, at(-2), at(0))


@pytest.mark.parametrize("start, end", [
    (-1, 1),   # covers the pickup
    (1, 3),    # covers the drop-off
    (0, 2),    # identical
    (-1, 3),   # encloses
])
def test_overlapping_pairs(car, customer, make_reservation, at, start, end):
    make_reservation(car, customer, at(0), at(2))
    assert not is_available(car.id, at(start), at(end))


def test_inner_window_overlaps(car, customer, make_reservation, at):
    make_reservation(car, customer, at(0), at(2))
    assert not is_available(car.id, at(0, hour=12), at(1, hour=9))


@pytest.mark.parametrize("status", [
    Reservation.STATUS_BOOKED,
    Reservation.STATUS_PENDING_VERIFICATION,
    Reservation.STATUS_CONFIRMED,
    Reservation.STATUS_ACTIVE,
])
def test_occupying_statuses_block(car, customer, make_reservation, at, status):
    make_reservation(car, customer, at(0), at(2), status=status)
    assert not is_available(car.id, at(1), at(3))


@pytest.mark.parametrize("status", [
    Reservation.STATUS_PENDING,
    Reservation.STATUS_RETURNED,
    Reservation.STATUS_CANCELLED,
])
def test_released_statuses_do_not_block(car, customer, make_reservation, at, status):
    make_reservation(car, customer, at(0), at(2), status=status)
    assert is_available(car.id, at(1), at(3))


def test_other_cars_do_not_block(car, premium_car, customer, make_reservation, at):
    make_reservation(premium_car, customer, at(0), at(2))
    assert is_available(car.id, at(0), at(2))


def test_find_conflict_can_exclude(car, customer, make_reservation, at):
    existing = make_reservation(car, customer, at(0), at(2))
    assert find_conflict(car.id, at(1), at(3)) == existing
    assert find_conflict(car.id, at(1), at(3), exclude_id=existing.id) is None


def test_unknown_car(at):
    with pytest.raises(NotFoundError):
        check_availability(uuid.uuid4(), at(0), at(1))
    with pytest.raises(NotFoundError):
        check_availability("not-a-uuid", at(0), at(1))


def test_inverted_window(car, at):
    with pytest.raises(ValidationError):
        check_availability(car.id, at(2), at(1))


def test_refresh_flag_follows_current_time(car, customer, make_reservation):
    now = timezone.now()
    reservation = make_reservation(
        car, customer, now - timedelta(hours=1), now + timedelta(days=1),
        status=Reservation.STATUS_ACTIVE,
    )

    assert refresh_vehicle_availability(car, now=now) is False
    car.refresh_from_db()
    assert car.is_available is False

    Reservation.objects.filter(id=reservation.id).update(status=Reservation.STATUS_RETURNED)
    assert refresh_vehicle_availability(car, now=now) is True
    car.refresh_from_db()
    assert car.is_available is True


def test_future_booking_leaves_flag_alone(car, customer, make_reservation, at):
    make_reservation(car, customer, at(0), at(2), status=Reservation.STATUS_CONFIRMED)
    assert refresh_vehicle_availability(car) is True


def test_refresh_command(car, customer, make_reservation, capsys):
    now = timezone.now()
    make_reservation(car, customer, now - timedelta(hours=2), now + timedelta(hours=5),
                     status=Reservation.STATUS_ACTIVE)

    call_command('refresh_vehicle_availability', '--dry-run')
    car.refresh_from_db()
    assert car.is_available is True

    call_command('refresh_vehicle_availability')
    car.refresh_from_db()
    assert car.is_available is False
    assert "Updated availability for 1 car(s)" in capsys.readouterr().out


def test_naive_window_read_as_local_time(car, customer, make_reservation, at):
    make_reservation(car, customer, at(0), at(2))
    pickup = timezone.make_naive(at(1))

    assert is_available(car.id, pickup, pickup + timedelta(days=1)) is False


def test_lock_vehicle_locks_only_the_car_row(car):
    # The branch is nullable, and FOR UPDATE may not cover an outer join
    with transaction.atomic(), CaptureQueriesContext(connection) as queries:
        locked = lock_vehicle(car.id)

    assert locked.id == car.id
    assert 'JOIN' not in queries.captured_queries[-1]['sql'].upper()


def test_lock_unknown_vehicle():
    with transaction.atomic(), pytest.raises(NotFoundError):
        lock_vehicle(uuid.uuid4())
