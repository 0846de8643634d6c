"""
Customer checkout: reserve a car, review the price, fill in renter details,
then pay by transfer and upload the slip for manual verification.

Each step re-reads the reservation and only acts in the state it expects,
so retrying a step with the same reservation id is harmless.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from api.booking.availability import find_conflict, lock_vehicle, validate_window
from api.booking.lifecycle import (
    EVENT_AVAILABILITY_CONFIRMED,
    EVENT_PROOF_SUBMITTED,
    apply_event,
    get_reservation,
    record_event,
)
from api.booking.models import Reservation
from api.booking.pricing import quote_for_reservation
from api.customer.models import Customer
from api.customer.serializers import RenterInformationSerializer
from api.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from api.permissions import require_access, require_customer
from api.utils import qr_code_data_uri
from payments.models import PaymentRecord
from payments.utils import validate_proof_image

logger = logging.getLogger(__name__)

EVENT_CREATED = 'created'


def _load_for(reservation_id, actor):
    reservation = get_reservation(reservation_id)
    require_access(actor, reservation)
    return reservation


def _require_status(reservation, status, action):
    if reservation.status != status:
        raise InvalidStateError(
            detail=f"Cannot {action} while the reservation is '{reservation.status}'."
        )


def _existing_for_key(customer, idempotency_key, vehicle_id, pickup, dropoff):
    existing = Reservation.objects.filter(
        customer=customer, idempotency_key=idempotency_key
    ).select_related('vehicle', 'customer').first()
    if existing is None:
        return None
    if (str(existing.vehicle_id) != str(vehicle_id)
            or existing.pickup_time != pickup or existing.dropoff_time != dropoff):
        raise ConflictError("This idempotency key was already used for a different reservation.")
    return existing


def initiate_reservation(actor, vehicle_id, pickup, dropoff, pickup_location='',
                         dropoff_location='', idempotency_key=None):
    """
    Create a reservation for the calling customer and move it to ``booked``.

    The vehicle row stays locked from the conflict check until the new row is
    committed, so two customers cannot both claim the same window.
    """
    require_customer(actor)
    pickup, dropoff = validate_window(pickup, dropoff)
    if pickup < timezone.now():
        raise ValidationError("Pickup time cannot be in the past.")

    try:
        customer = Customer.objects.get(id=actor.id)
    except Customer.DoesNotExist:
        raise NotFoundError("Customer not found.")

    idempotency_key = (idempotency_key or '').strip() or None
    if idempotency_key:
        existing = _existing_for_key(customer, idempotency_key, vehicle_id, pickup, dropoff)
        if existing is not None:
            logger.info("Returning reservation %s for repeated key %s", existing.id, idempotency_key)
            return existing

    try:
        with transaction.atomic():
            car = lock_vehicle(vehicle_id)

            conflict = find_conflict(car.id, pickup, dropoff)
            if conflict is not None:
                logger.info(
                    "Reservation for car %s (%s - %s) rejected: overlaps %s",
                    car.id, pickup, dropoff, conflict.id,
                )
                raise ConflictError()

            if not (pickup_location or '').strip():
                pickup_location = car.branch.address if car.branch_id else ''

            reservation = Reservation.objects.create(
                vehicle=car,
                customer=customer,
                pickup_time=pickup,
                dropoff_time=dropoff,
                pickup_location=pickup_location.strip(),
                dropoff_location=(dropoff_location or '').strip(),
                status=Reservation.STATUS_PENDING,
                idempotency_key=idempotency_key,
            )
            record_event(reservation, EVENT_CREATED, '', Reservation.STATUS_PENDING, actor)
            reservation = apply_event(
                reservation.id,
                EVENT_AVAILABILITY_CONFIRMED,
                actor,
                expected_status=Reservation.STATUS_PENDING,
            )
    except IntegrityError:
        # Lost a race against a request carrying the same idempotency key.
        if not idempotency_key:
            raise
        existing = _existing_for_key(customer, idempotency_key, vehicle_id, pickup, dropoff)
        if existing is None:
            raise
        return existing

    logger.info("Reservation %s booked: car %s for %s", reservation.id, reservation.vehicle_id, actor)
    return reservation


def get_price_quote(reservation_id, actor):
    reservation = _load_for(reservation_id, actor)
    return quote_for_reservation(reservation)


def save_renter_information(reservation_id, actor, data):
    """Validate and store the renter's contact and licence details."""
    reservation = _load_for(reservation_id, actor)
    _require_status(reservation, Reservation.STATUS_BOOKED, "update renter information")

    serializer = RenterInformationSerializer(reservation.customer, data=data)
    if not serializer.is_valid():
        raise ValidationError(serializer.errors)
    customer = serializer.save()

    logger.info("Renter information saved for reservation %s", reservation.id)
    return customer


def _payment_reference(reservation):
    return f"RES-{reservation.id.hex[:10].upper()}"


def get_payment_instructions(reservation_id, actor, method):
    if method not in PaymentRecord.TRANSFER_METHODS:
        raise ValidationError(f"Unsupported payment method '{method}'.")

    reservation = _load_for(reservation_id, actor)
    _require_status(reservation, Reservation.STATUS_BOOKED, "request payment instructions")

    quote = quote_for_reservation(reservation)
    reference = _payment_reference(reservation)
    instructions = {
        'reservation_id': str(reservation.id),
        'method': method,
        'amount': str(quote.total),
        'currency': quote.currency,
        'reference': reference,
        'bank_account': dict(settings.PAYMENT_BANK_ACCOUNT),
    }
    if method == PaymentRecord.METHOD_QR_TRANSFER:
        payload = f"{settings.PAYMENT_QR_PAYEE}|{quote.total}|{quote.currency}|{reference}"
        instructions['qr_code'] = qr_code_data_uri(payload)
    return instructions


def _parse_amount(value):
    try:
        return Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Invalid amount.")


def submit_payment_proof(reservation_id, actor, method, proof, expected_amount=None):
    """
    Attach a transfer slip to a booked reservation and hand it to the
    verification queue.

    Re-sending the same file while it is still waiting for review returns
    the record created the first time.
    """
    require_customer(actor)
    if method not in PaymentRecord.TRANSFER_METHODS:
        raise ValidationError(f"Unsupported payment method '{method}'.")

    _load_for(reservation_id, actor)
    digest = validate_proof_image(proof)

    with transaction.atomic():
        reservation = get_reservation(reservation_id, for_update=True)

        if reservation.status == Reservation.STATUS_PENDING_VERIFICATION:
            waiting = reservation.payments.filter(
                outcome=PaymentRecord.OUTCOME_PENDING
            ).order_by('-submitted_at').first()
            if waiting is not None and waiting.proof_sha256 == digest:
                logger.info("Duplicate slip for reservation %s; returning payment %s", reservation.id, waiting.id)
                return waiting

        _require_status(reservation, Reservation.STATUS_BOOKED, "submit payment proof")

        quote = quote_for_reservation(reservation)
        if expected_amount is not None and _parse_amount(expected_amount) != quote.total:
            raise ValidationError(
                f"The price has changed to {quote.total} {quote.currency}. Please review and try again."
            )

        record = PaymentRecord(
            reservation=reservation,
            amount=quote.total,
            currency=quote.currency,
            method=method,
            proof_sha256=digest,
            reference=_payment_reference(reservation),
        )
        record.proof.save(proof.name, proof, save=False)
        try:
            record.save()
            apply_event(
                reservation.id,
                EVENT_PROOF_SUBMITTED,
                actor,
                expected_status=Reservation.STATUS_BOOKED,
            )
        except Exception:
            record.proof.delete(save=False)
            raise

    logger.info(
        "Payment slip %s received for reservation %s (%s %s)",
        record.id, reservation.id, record.amount, record.currency,
    )
    return record
