import logging
from dataclasses import dataclass
from typing import Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from api.booking.models import Reservation
from api.exceptions import NotFoundError, ValidationError
from api.garage.models import Car

logger = logging.getLogger(__name__)

# Statuses during which a reservation holds its vehicle for the window.
OCCUPYING_STATUSES = (
    Reservation.STATUS_BOOKED,
    Reservation.STATUS_PENDING_VERIFICATION,
    Reservation.STATUS_CONFIRMED,
    Reservation.STATUS_ACTIVE,
)


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflict_id: Optional[str] = None
    conflict_pickup: Optional[object] = None
    conflict_dropoff: Optional[object] = None

    def as_dict(self, include_conflict=False):
        data = {'available': self.available}
        if include_conflict and not self.available:
            data['conflict'] = {
                'reservation_id': self.conflict_id,
                'pickup_time': self.conflict_pickup,
                'dropoff_time': self.conflict_dropoff,
            }
        return data


def validate_window(pickup, dropoff):
    """Check the window and return it with naive times read as local time."""
    if pickup is None or dropoff is None:
        raise ValidationError("Pickup and drop-off times are required.")
    if timezone.is_naive(pickup):
        pickup = timezone.make_aware(pickup)
    if timezone.is_naive(dropoff):
        dropoff = timezone.make_aware(dropoff)
    if dropoff <= pickup:
        raise ValidationError("Drop-off time must be after pickup time.")
    return pickup, dropoff


def find_conflict(vehicle_id, pickup, dropoff, exclude_id=None):
    """
    First occupying reservation whose [pickup, dropoff) window intersects
    the requested one, or None.
    """
    overlapping = Reservation.objects.filter(
        vehicle_id=vehicle_id,
        status__in=OCCUPYING_STATUSES,
        pickup_time__lt=dropoff,
        dropoff_time__gt=pickup,
    )
    if exclude_id is not None:
        overlapping = overlapping.exclude(id=exclude_id)
    return overlapping.order_by('pickup_time').first()


def check_availability(vehicle_id, pickup, dropoff) -> AvailabilityResult:
    pickup, dropoff = validate_window(pickup, dropoff)
    try:
        exists = Car.objects.filter(id=vehicle_id).exists()
    except (DjangoValidationError, ValueError):
        exists = False
    if not exists:
        raise NotFoundError("Car not found.")

    conflict = find_conflict(vehicle_id, pickup, dropoff)
    if conflict is None:
        return AvailabilityResult(available=True)

    logger.info(
        "Car %s unavailable for %s - %s: overlaps reservation %s",
        vehicle_id, pickup, dropoff, conflict.id,
    )
    return AvailabilityResult(
        available=False,
        conflict_id=str(conflict.id),
        conflict_pickup=conflict.pickup_time,
        conflict_dropoff=conflict.dropoff_time,
    )


def is_available(vehicle_id, pickup, dropoff) -> bool:
    return check_availability(vehicle_id, pickup, dropoff).available


def lock_vehicle(vehicle_id) -> Car:
    """
    Lock the car row for the rest of the current transaction. Every
    check-then-insert for a vehicle goes through this lock.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("lock_vehicle() must be called inside transaction.atomic().")
    try:
        return Car.objects.select_for_update(of=('self',)).get(id=vehicle_id)
    except (Car.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError("Car not found.")


def is_occupied_at(vehicle_id, moment) -> bool:
    return Reservation.objects.filter(
        vehicle_id=vehicle_id,
        status__in=OCCUPYING_STATUSES,
        pickup_time__lte=moment,
        dropoff_time__gt=moment,
    ).exists()


def refresh_vehicle_availability(vehicle, now=None) -> bool:
    """
    Recompute the cached ``is_available`` flag: a car is available unless an
    occupying reservation covers ``now``. Future bookings do not count.
    """
    now = now or timezone.now()
    available = not is_occupied_at(vehicle.id, now)
    if vehicle.is_available != available:
        Car.objects.filter(id=vehicle.id).update(is_available=available, updated_at=now)
        vehicle.is_available = available
        logger.info("Marked car %s availability as %s", vehicle.id, available)
    return available
