import uuid
from django.db import models

from api.customer.models import Customer
from api.garage.models import Car


class Reservation(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_BOOKED = 'booked'
    STATUS_PENDING_VERIFICATION = 'pending_verification'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_ACTIVE = 'active'
    STATUS_RETURNED = 'returned'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_BOOKED, 'Booked'),
        (STATUS_PENDING_VERIFICATION, 'Pending Verification'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_RETURNED, 'Returned'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    SOURCE_PAYMENT_PROOF = 'payment_proof'
    SOURCE_OPERATOR = 'operator'

    SOURCE_CHOICES = [
        (SOURCE_PAYMENT_PROOF, 'Verified payment proof'),
        (SOURCE_OPERATOR, 'Confirmed by operator'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    vehicle = models.ForeignKey(Car, on_delete=models.PROTECT, related_name="reservations")
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="reservations")

    pickup_time = models.DateTimeField()
    dropoff_time = models.DateTimeField()
    pickup_location = models.CharField(max_length=255, blank=True, default='')
    dropoff_location = models.CharField(max_length=255, blank=True, default='')

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING
    )
    # Bumped on every transition; writers compare-and-swap on (id, status).
    version = models.PositiveIntegerField(default=0)
    confirmation_source = models.CharField(max_length=20, choices=SOURCE_CHOICES, blank=True, default='')
    confirmed_at = models.DateTimeField(blank=True, null=True)

    idempotency_key = models.CharField(max_length=64, blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        app_label = 'api'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['vehicle', 'status', 'pickup_time']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['customer', 'idempotency_key'],
                name='unique_reservation_idempotency_key',
            ),
            models.CheckConstraint(
                condition=models.Q(dropoff_time__gt=models.F('pickup_time')),
                name='reservation_dropoff_after_pickup',
            ),
        ]

    def __str__(self):
        return (
            f"Reservation {self.id} for {self.vehicle} "
            f"from {self.pickup_time.strftime('%Y-%m-%d %H:%M')} "
            f"to {self.dropoff_time.strftime('%Y-%m-%d %H:%M')} ({self.get_status_display()})"
        )


class ReservationEvent(models.Model):
    """Audit trail of lifecycle transitions and administrative purges."""
    EVENT_PURGED = 'purged'

    id = models.BigAutoField(primary_key=True)
    reservation = models.ForeignKey(
        Reservation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='events',
    )
    # Survives a purge of the reservation row.
    reservation_ref = models.UUIDField(db_index=True)
    event = models.CharField(max_length=40)
    from_status = models.CharField(max_length=20, blank=True, default='')
    to_status = models.CharField(max_length=20, blank=True, default='')
    actor_id = models.UUIDField(blank=True, null=True)
    actor_role = models.CharField(max_length=20, blank=True, default='')
    note = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        app_label = 'api'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.reservation_ref}: {self.event} ({self.from_status} -> {self.to_status})"
