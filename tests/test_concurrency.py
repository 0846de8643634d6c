import threading

import pytest
from django.db import connection

from api.booking.checkout import initiate_reservation, submit_payment_proof
from api.booking.models import Reservation
from api.exceptions import AlreadyResolvedError, ConflictError
from payments.models import PaymentRecord
from payments.verification import resolve_verification

pytestmark = pytest.mark.django_db(transaction=True)


def race(**calls):
    """Start every call at the same moment on its own connection."""
    barrier = threading.Barrier(len(calls))
    outcomes = {}

    def run(name, call):
        try:
            barrier.wait(timeout=10)
            outcomes[name] = call()
        except Exception as exc:
            outcomes[name] = exc
        finally:
            connection.close()

    threads = [threading.Thread(target=run, args=item) for item in calls.items()]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


def test_overlapping_bookings_race(car, customer_actor, other_actor, at):
    outcomes = race(
        first=lambda: initiate_reservation(customer_actor, car.id, at(0), at(2)),
        second=lambda: initiate_reservation(other_actor, car.id, at(1), at(3)),
    )

    booked = [value for value in outcomes.values() if isinstance(value, Reservation)]
    refused = [value for value in outcomes.values() if isinstance(value, ConflictError)]
    assert (len(booked), len(refused)) == (1, 1), outcomes
    assert list(Reservation.objects.values_list('id', flat=True)) == [booked[0].id]


def test_concurrent_resolutions(car, customer_actor, operator_actor, slip, at):
    reservation = initiate_reservation(customer_actor, car.id, at(0), at(2))
    submit_payment_proof(reservation.id, customer_actor, PaymentRecord.METHOD_BANK_TRANSFER, slip())

    outcomes = race(
        approve=lambda: resolve_verification(reservation.id, True, operator_actor),
        reject=lambda: resolve_verification(reservation.id, False, operator_actor),
    )

    resolved = [value for value in outcomes.values() if isinstance(value, PaymentRecord)]
    refused = [value for value in outcomes.values() if isinstance(value, AlreadyResolvedError)]
    assert (len(resolved), len(refused)) == (1, 1), outcomes

    record = PaymentRecord.objects.get()
    assert record.outcome == resolved[0].outcome
    reservation.refresh_from_db()
    expected = {
        PaymentRecord.OUTCOME_APPROVED: Reservation.STATUS_CONFIRMED,
        PaymentRecord.OUTCOME_REJECTED: Reservation.STATUS_BOOKED,
    }
    assert reservation.status == expected[record.outcome]
