"""
Manual review of uploaded transfer slips.

A reservation waiting in ``pending_verification`` has exactly one pending
PaymentRecord. Resolving it writes the outcome once and moves the
reservation on; a second resolution attempt fails with AlreadyResolvedError.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone

from api.booking.lifecycle import (
    EVENT_CONFIRM,
    EVENT_PAYMENT_APPROVED,
    EVENT_PAYMENT_REJECTED,
    apply_event,
    get_reservation,
)
from api.booking.models import Reservation
from api.booking.pricing import quote_for_reservation
from api.exceptions import AlreadyResolvedError, InvalidStateError, NotFoundError, ValidationError
from api.permissions import require_access, require_operator
from payments.models import PaymentRecord

logger = logging.getLogger(__name__)


def list_pending_verification(actor):
    """Slips waiting for review, oldest first."""
    require_operator(actor)
    return (
        PaymentRecord.objects
        .filter(
            outcome=PaymentRecord.OUTCOME_PENDING,
            reservation__status=Reservation.STATUS_PENDING_VERIFICATION,
        )
        .select_related('reservation', 'reservation__customer', 'reservation__vehicle')
        .order_by('submitted_at')
    )


def resolve_verification(reservation_id, approve, actor, note=''):
    require_operator(actor)
    outcome = PaymentRecord.OUTCOME_APPROVED if approve else PaymentRecord.OUTCOME_REJECTED
    event = EVENT_PAYMENT_APPROVED if approve else EVENT_PAYMENT_REJECTED

    with transaction.atomic():
        reservation = get_reservation(reservation_id, for_update=True)
        record = reservation.payments.select_for_update().order_by('-submitted_at').first()
        if record is None:
            raise NotFoundError("No payment has been submitted for this reservation.")
        if record.is_resolved:
            raise AlreadyResolvedError()

        updated = PaymentRecord.objects.filter(
            pk=record.pk, outcome=PaymentRecord.OUTCOME_PENDING
        ).update(
            outcome=outcome,
            verified_by=actor.id,
            verified_at=timezone.now(),
            operator_note=note or '',
        )
        if updated == 0:
            raise AlreadyResolvedError()

        apply_event(
            reservation.id,
            event,
            actor,
            expected_status=Reservation.STATUS_PENDING_VERIFICATION,
            note=note or '',
        )

    record.refresh_from_db()
    logger.info("Payment %s for reservation %s %s by %s", record.id, reservation.id, outcome, actor)
    return record


def record_counter_payment(reservation_id, actor, amount, method=PaymentRecord.METHOD_CASH, reference=''):
    """
    Record a payment taken in person and confirm the reservation straight
    away, without a slip to review.
    """
    require_operator(actor)
    if method not in dict(PaymentRecord.METHOD_CHOICES):
        raise ValidationError(f"Unsupported payment method '{method}'.")
    try:
        amount = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Invalid amount.")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero.")

    with transaction.atomic():
        reservation = get_reservation(reservation_id, for_update=True)
        if reservation.status != Reservation.STATUS_BOOKED:
            raise InvalidStateError(
                detail=f"Cannot record a counter payment while the reservation is '{reservation.status}'."
            )

        quote = quote_for_reservation(reservation)
        if amount != quote.total:
            raise ValidationError(f"Amount due is {quote.total} {quote.currency}.")

        now = timezone.now()
        record = PaymentRecord.objects.create(
            reservation=reservation,
            amount=quote.total,
            currency=quote.currency,
            method=method,
            reference=reference or '',
            submitted_at=now,
            outcome=PaymentRecord.OUTCOME_APPROVED,
            verified_by=actor.id,
            verified_at=now,
        )
        apply_event(
            reservation.id,
            EVENT_CONFIRM,
            actor,
            expected_status=Reservation.STATUS_BOOKED,
            note="Counter payment",
        )

    logger.info("Counter payment %s recorded for reservation %s by %s", record.id, reservation.id, actor)
    return record


def payments_for_reservation(reservation_id, actor):
    reservation = get_reservation(reservation_id)
    require_access(actor, reservation)
    return reservation.payments.order_by('-submitted_at')
