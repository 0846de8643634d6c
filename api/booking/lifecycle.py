"""
Reservation state machine.

Every status change goes through :func:`apply_event`, which performs a
compare-and-swap on ``(id, status)`` so that two writers racing on the same
reservation cannot both succeed.
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from api.booking.availability import refresh_vehicle_availability
from api.booking.models import Reservation, ReservationEvent
from api.exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from api.permissions import require_operator

logger = logging.getLogger(__name__)

EVENT_AVAILABILITY_CONFIRMED = 'availability_confirmed'
EVENT_PROOF_SUBMITTED = 'proof_submitted'
EVENT_PAYMENT_APPROVED = 'payment_approved'
EVENT_PAYMENT_REJECTED = 'payment_rejected'
EVENT_CONFIRM = 'confirm'
EVENT_ACTIVATE = 'activate'
EVENT_COMPLETE = 'complete'
EVENT_CANCEL = 'cancel'

# (current status, event) -> next status
TRANSITIONS = {
    (Reservation.STATUS_PENDING, EVENT_AVAILABILITY_CONFIRMED): Reservation.STATUS_BOOKED,
    (Reservation.STATUS_BOOKED, EVENT_PROOF_SUBMITTED): Reservation.STATUS_PENDING_VERIFICATION,
    (Reservation.STATUS_PENDING_VERIFICATION, EVENT_PAYMENT_APPROVED): Reservation.STATUS_CONFIRMED,
    (Reservation.STATUS_PENDING_VERIFICATION, EVENT_PAYMENT_REJECTED): Reservation.STATUS_BOOKED,
    (Reservation.STATUS_BOOKED, EVENT_CONFIRM): Reservation.STATUS_CONFIRMED,
    (Reservation.STATUS_CONFIRMED, EVENT_ACTIVATE): Reservation.STATUS_ACTIVE,
    (Reservation.STATUS_ACTIVE, EVENT_COMPLETE): Reservation.STATUS_RETURNED,
    (Reservation.STATUS_BOOKED, EVENT_CANCEL): Reservation.STATUS_CANCELLED,
    (Reservation.STATUS_CONFIRMED, EVENT_CANCEL): Reservation.STATUS_CANCELLED,
    (Reservation.STATUS_ACTIVE, EVENT_CANCEL): Reservation.STATUS_CANCELLED,
}

EVENTS = frozenset(event for _, event in TRANSITIONS)

# Targets an operator may request directly.
OPERATOR_EVENTS = {
    Reservation.STATUS_CONFIRMED: EVENT_CONFIRM,
    Reservation.STATUS_ACTIVE: EVENT_ACTIVATE,
    Reservation.STATUS_RETURNED: EVENT_COMPLETE,
    Reservation.STATUS_CANCELLED: EVENT_CANCEL,
}

_CONFIRMATION_SOURCES = {
    EVENT_PAYMENT_APPROVED: Reservation.SOURCE_PAYMENT_PROOF,
    EVENT_CONFIRM: Reservation.SOURCE_OPERATOR,
}


def next_status(current, event):
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError(
            detail=f"Event '{event}' is not allowed for a reservation in status '{current}'."
        )


def get_reservation(reservation_id, for_update=False):
    queryset = Reservation.objects.select_related('vehicle', 'customer')
    if for_update:
        queryset = queryset.select_for_update(of=('self',))
    try:
        return queryset.get(id=reservation_id)
    except (Reservation.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError("Reservation not found.")


def record_event(reservation, event, from_status, to_status, actor, note=''):
    ReservationEvent.objects.create(
        reservation=reservation,
        reservation_ref=reservation.id,
        event=event,
        from_status=from_status,
        to_status=to_status,
        actor_id=getattr(actor, 'id', None),
        actor_role=getattr(actor, 'role', ''),
        note=note,
    )


def apply_event(reservation_id, event, actor=None, expected_status=None, note=''):
    """
    Move a reservation along the transition table.

    ``expected_status`` lets callers that read the reservation earlier fail
    with ConflictError if it changed in between.
    """
    if event not in EVENTS:
        raise InvalidTransitionError(detail=f"Unknown reservation event '{event}'.")

    with transaction.atomic():
        reservation = get_reservation(reservation_id)
        current = reservation.status

        if expected_status is not None and current != expected_status:
            raise ConflictError(
                f"Reservation status changed to '{current}' (expected '{expected_status}')."
            )

        target = next_status(current, event)
        now = timezone.now()
        changes = {
            'status': target,
            'version': F('version') + 1,
            'updated_at': now,
        }
        if event in _CONFIRMATION_SOURCES:
            changes['confirmation_source'] = _CONFIRMATION_SOURCES[event]
            changes['confirmed_at'] = now

        updated = Reservation.objects.filter(id=reservation.id, status=current).update(**changes)
        if updated == 0:
            logger.warning(
                "Reservation %s changed concurrently while applying '%s' from '%s'",
                reservation.id, event, current,
            )
            raise ConflictError("Reservation was modified concurrently; reload and retry.")

        reservation.refresh_from_db()
        record_event(reservation, event, current, target, actor, note)
        refresh_vehicle_availability(reservation.vehicle, now=now)

    logger.info("Reservation %s: %s -> %s (%s) by %s", reservation.id, current, target, event, actor)
    return reservation


def transition_reservation(reservation_id, target_status, actor, note=''):
    """Operator-driven status change: confirm, activate, complete or cancel."""
    require_operator(actor)
    event = OPERATOR_EVENTS.get(target_status)
    if event is None:
        reservation = get_reservation(reservation_id)
        raise InvalidTransitionError(reservation.status, target_status)

    reservation = get_reservation(reservation_id)
    if (reservation.status, event) not in TRANSITIONS:
        raise InvalidTransitionError(reservation.status, target_status)
    return apply_event(reservation.id, event, actor, expected_status=reservation.status, note=note)


def purge_reservation(reservation_id, actor, reason):
    """
    Administrative hard delete outside the state machine. Audited, and the
    vehicle's occupancy is recomputed afterwards.
    """
    require_operator(actor)
    if not reason or not reason.strip():
        raise ValidationError("A reason is required to delete a reservation.")

    with transaction.atomic():
        reservation = get_reservation(reservation_id, for_update=True)
        vehicle = reservation.vehicle
        reservation_ref = reservation.id
        from_status = reservation.status

        ReservationEvent.objects.create(
            reservation=None,
            reservation_ref=reservation_ref,
            event=ReservationEvent.EVENT_PURGED,
            from_status=from_status,
            to_status='',
            actor_id=actor.id,
            actor_role=actor.role,
            note=reason.strip(),
        )
        for payment in reservation.payments.exclude(proof='').exclude(proof__isnull=True):
            payment.proof.delete(save=False)
        reservation.delete()
        refresh_vehicle_availability(vehicle)

    logger.warning("Reservation %s (%s) purged by %s: %s", reservation_ref, from_status, actor, reason)
    return reservation_ref
