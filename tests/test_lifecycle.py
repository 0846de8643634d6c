from datetime import timedelta

import pytest
from django.utils import timezone

from api.booking import lifecycle
from api.booking.availability import is_available
from api.booking.lifecycle import (
    EVENT_ACTIVATE,
    EVENT_AVAILABILITY_CONFIRMED,
    EVENT_CANCEL,
    EVENT_COMPLETE,
    EVENT_PAYMENT_APPROVED,
    EVENT_PAYMENT_REJECTED,
    EVENT_PROOF_SUBMITTED,
    apply_event,
    purge_reservation,
    transition_reservation,
)
from api.booking.models import Reservation, ReservationEvent
from api.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)

pytestmark = pytest.mark.django_db


def test_happy_path(car, customer, make_reservation, operator_actor, at):
    reservation = make_reservation(car, customer, at(0), at(2), status=Reservation.STATUS_PENDING)

    steps = [
        (EVENT_AVAILABILITY_CONFIRMED, Reservation.STATUS_BOOKED),
        (EVENT_PROOF_SUBMITTED, Reservation.STATUS_PENDING_VERIFICATION),
        (EVENT_PAYMENT_APPROVED, Reservation.STATUS_CONFIRMED),
        (EVENT_ACTIVATE, Reservation.STATUS_ACTIVE),
        (EVENT_COMPLETE, Reservation.STATUS_RETURNED),
    ]
    for version, (event, expected) in enumerate(steps, start=1):
        reservation = apply_event(reservation.id, event, operator_actor)
        assert reservation.status == expected
        assert reservation.version == version

    assert reservation.confirmation_source == Reservation.SOURCE_PAYMENT_PROOF
    assert reservation.confirmed_at is not None
    events = list(reservation.events.values_list('event', flat=True))
    assert events == [event for event, _ in steps]


def test_rejection_returns_to_booked(car, customer, make_reservation, operator_actor, at):
    reservation = make_reservation(car, customer, at(0), at(2), status=Reservation.STATUS_PENDING_VERIFICATION)

    reservation = apply_event(reservation.id, EVENT_PAYMENT_REJECTED, operator_actor, note="Blurry slip")

    assert reservation.status == Reservation.STATUS_BOOKED
    event = reservation.events.get()
    assert (event.from_status, event.to_status, event.note) == (
        Reservation.STATUS_PENDING_VERIFICATION, Reservation.STATUS_BOOKED, "Blurry slip",
    )
    assert event.actor_id == operator_actor.id


@pytest.mark.parametrize("status, event", [
    (Reservation.STATUS_BOOKED, EVENT_ACTIVATE),
    (Reservation.STATUS_BOOKED, EVENT_PAYMENT_APPROVED),
    (Reservation.STATUS_PENDING_VERIFICATION, EVENT_CANCEL),
    (Reservation.STATUS_CONFIRMED, EVENT_COMPLETE),
    (Reservation.STATUS_RETURNED, EVENT_CANCEL),
    (Reservation.STATUS_CANCELLED, EVENT_ACTIVATE),
])
def test_disallowed_transitions(car, customer, make_reservation, operator_actor, at, status, event):
    reservation = make_reservation(car, customer, at(0), at(2), status=status)

    with pytest.raises(InvalidTransitionError):
        apply_event(reservation.id, event, operator_actor)

    reservation.refresh_from_db()
    assert reservation.status == status
    assert reservation.version == 0


def test_unknown_event(car, customer, make_reservation, at):
    reservation = make_reservation(car, customer, at(0), at(2))
    with pytest.raises(InvalidTransitionError):
        apply_event(reservation.id, 'teleport')


def test_unknown_reservation(operator_actor):
    with pytest.raises(NotFoundError):
        apply_event('not-a-uuid', EVENT_CANCEL, operator_actor)


def test_stale_expected_status(car, customer, make_reservation, operator_actor, at):
    reservation = make_reservation(car, customer, at(0), at(2), status=Reservation.STATUS_CONFIRMED)

    with pytest.raises(ConflictError):
        apply_event(reservation.id, EVENT_CANCEL, operator_actor, expected_status=Reservation.STATUS_BOOKED)


def test_lost_status_swap_rolls_back(car, customer, make_reservation, operator_actor, at, monkeypatch):
    reservation = make_reservation(car, customer, at(0), at(2), status=Reservation.STATUS_CONFIRMED)
    real_get_reservation = lifecycle.get_reservation

    def read_then_race(reservation_id, for_update=False):
        stale = real_get_reservation(reservation_id, for_update)
        # Another request cancels the reservation after we read it
        Reservation.objects.filter(id=reservation_id).update(status=Reservation.STATUS_CANCELLED)
        return stale

    monkeypatch.setattr(lifecycle, 'get_reservation', read_then_race)

    with pytest.raises(ConflictError):
        apply_event(reservation.id, EVENT_ACTIVATE, operator_actor)

    # The racing write shared our transaction, so it is undone with it
    reservation.refresh_from_db()
    assert reservation.status == Reservation.STATUS_CONFIRMED
    assert reservation.version == 0
    assert not ReservationEvent.objects.exists()


@pytest.mark.parametrize("current, target, event", [
    (Reservation.STATUS_BOOKED, Reservation.STATUS_CONFIRMED, 'confirm'),
    (Reservation.STATUS_CONFIRMED, Reservation.STATUS_ACTIVE, EVENT_ACTIVATE),
    (Reservation.STATUS_ACTIVE, Reservation.STATUS_RETURNED, EVENT_COMPLETE),
    (Reservation.STATUS_BOOKED, Reservation.STATUS_CANCELLED, EVENT_CANCEL),
    (Reservation.STATUS_CONFIRMED, Reservation.STATUS_CANCELLED, EVENT_CANCEL),
    (Reservation.STATUS_ACTIVE, Reservation.STATUS_CANCELLED, EVENT_CANCEL),
])
def test_operator_transitions(car, customer, make_reservation, operator_actor, at, current, target, event):
    reservation = make_reservation(car, customer, at(0), at(2), status=current)

    reservation = transition_reservation(reservation.id, target, operator_actor)

    assert reservation.status == target
    assert reservation.events.get().event == event


def test_operator_confirmation_source(car, customer, make_reservation, operator_actor, at):
    reservation = make_reservation(car, customer, at(0), at(2))
    reservation = transition_reservation(reservation.id, Reservation.STATUS_CONFIRMED, operator_actor)
    assert reservation.confirmation_source == Reservation.SOURCE_OPERATOR


@pytest.mark.parametrize("target", [
    Reservation.STATUS_BOOKED,
    Reservation.STATUS_PENDING_VERIFICATION,
    Reservation.STATUS_PENDING,
    'archived',
])
def test_unsupported_targets(car, customer, make_reservation, operator_actor, at, target):
    reservation = make_reservation(car, customer, at(0), at(2))

    with pytest.raises(InvalidTransitionError) as excinfo:
        transition_reservation(reservation.id, target, operator_actor)

    assert excinfo.value.current == Reservation.STATUS_BOOKED
    assert excinfo.value.target == target


def test_returned_cannot_be_reactivated(car, customer, make_reservation, operator_actor, at):
    reservation = make_reservation(car, customer, at(0), at(2), status=Reservation.STATUS_RETURNED)
    with pytest.raises(InvalidTransitionError):
        transition_reservation(reservation.id, Reservation.STATUS_ACTIVE, operator_actor)


def test_customers_cannot_transition(car, customer, make_reservation, customer_actor, at):
    reservation = make_reservation(car, customer, at(0), at(2))
    with pytest.raises(PermissionDenied):
        transition_reservation(reservation.id, Reservation.STATUS_CANCELLED, customer_actor)


def test_handover_and_return_update_car_flag(car, customer, make_reservation, operator_actor):
    now = timezone.now()
    reservation = make_reservation(
        car, customer, now - timedelta(minutes=30), now + timedelta(days=2),
        status=Reservation.STATUS_CONFIRMED,
    )
    # Flag is stale until something refreshes it
    assert car.is_available is True

    transition_reservation(reservation.id, Reservation.STATUS_ACTIVE, operator_actor)
    car.refresh_from_db()
    assert car.is_available is False

    transition_reservation(reservation.id, Reservation.STATUS_RETURNED, operator_actor)
    car.refresh_from_db()
    assert car.is_available is True


def test_purge(car, customer, make_reservation, operator_actor, at):
    reservation = make_reservation(car, customer, at(0), at(2))
    apply_event(reservation.id, EVENT_CANCEL, operator_actor)

    ref = purge_reservation(reservation.id, operator_actor, "Duplicate entry")

    assert ref == reservation.id
    assert not Reservation.objects.filter(id=reservation.id).exists()
    trail = ReservationEvent.objects.filter(reservation_ref=reservation.id).order_by('id')
    assert [e.event for e in trail] == [EVENT_CANCEL, ReservationEvent.EVENT_PURGED]
    assert all(e.reservation_id is None for e in trail)
    assert trail.last().note == "Duplicate entry"


def test_purge_releases_window(car, customer, make_reservation, operator_actor, at):
    reservation = make_reservation(car, customer, at(0), at(2), status=Reservation.STATUS_CONFIRMED)
    purge_reservation(reservation.id, operator_actor, "Booked by mistake")

    assert is_available(car.id, at(0), at(2))


@pytest.mark.parametrize("reason", ["", "   ", None])
def test_purge_requires_reason(car, customer, make_reservation, operator_actor, at, reason):
    reservation = make_reservation(car, customer, at(0), at(2))
    with pytest.raises(ValidationError):
        purge_reservation(reservation.id, operator_actor, reason)
    assert Reservation.objects.filter(id=reservation.id).exists()


def test_purge_is_operator_only(car, customer, make_reservation, customer_actor, at):
    reservation = make_reservation(car, customer, at(0), at(2))
    with pytest.raises(PermissionDenied):
        purge_reservation(reservation.id, customer_actor, "Changed my mind")
