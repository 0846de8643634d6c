import os
import uuid
from django.conf import settings
from django.db import models
from django.utils import timezone

from api.booking.models import Reservation


def payment_proof_upload_path(instance, filename):
    ext = os.path.splitext(filename)[-1].lower()
    stamp = timezone.now().strftime('%Y%m%d%H%M%S%f')
    return os.path.join('payment_slips', f"reservation_{instance.reservation_id}_{stamp}{ext}")


def default_currency():
    return settings.RENTAL_CURRENCY


class PaymentRecord(models.Model):
    """
    One proof-of-payment submission (or counter payment) for a reservation.
    The outcome is written exactly once by the verification workflow.
    """
    METHOD_BANK_TRANSFER = 'bank_transfer'
    METHOD_QR_TRANSFER = 'qr_transfer'
    METHOD_CASH = 'cash'

    METHOD_CHOICES = [
        (METHOD_BANK_TRANSFER, 'Bank Transfer'),
        (METHOD_QR_TRANSFER, 'QR / Interbank Transfer'),
        (METHOD_CASH, 'Cash at Counter'),
    ]
    TRANSFER_METHODS = (METHOD_BANK_TRANSFER, METHOD_QR_TRANSFER)

    OUTCOME_PENDING = 'pending'
    OUTCOME_APPROVED = 'approved'
    OUTCOME_REJECTED = 'rejected'

    OUTCOME_CHOICES = [
        (OUTCOME_PENDING, 'Pending'),
        (OUTCOME_APPROVED, 'Approved'),
        (OUTCOME_REJECTED, 'Rejected'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reservation = models.ForeignKey(Reservation, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=10, default=default_currency)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES)

    proof = models.ImageField(upload_to=payment_proof_upload_path, blank=True, null=True)
    proof_sha256 = models.CharField(max_length=64, blank=True, default='')
    reference = models.CharField(max_length=100, blank=True, default='')
    submitted_at = models.DateTimeField(default=timezone.now)

    outcome = models.CharField(max_length=10, choices=OUTCOME_CHOICES, default=OUTCOME_PENDING)
    verified_by = models.UUIDField(blank=True, null=True)
    verified_at = models.DateTimeField(blank=True, null=True)
    operator_note = models.TextField(blank=True, default='')

    class Meta:
        ordering = ['-submitted_at']

    def __str__(self):
        return f"Payment {self.id} for reservation {self.reservation_id} - {self.amount} {self.currency} ({self.outcome})"

    @property
    def is_resolved(self):
        return self.outcome != self.OUTCOME_PENDING
