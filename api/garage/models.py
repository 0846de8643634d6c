import os
import uuid

from django.core.exceptions import ValidationError
from django.db import models

from api.branch.models import Branch


class Car(models.Model):
    """
    A rentable car. ``is_available`` is only a cached projection of "no
    occupying reservation covers the current moment" and is written by the
    reservation lifecycle, never by catalog edits.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        related_name='cars',
        null=True,
        blank=True,
    )

    brand = models.CharField(max_length=100)
    model = models.CharField(max_length=100)
    plate_number = models.CharField(max_length=50, unique=True)
    price_per_day = models.DecimalField(max_digits=10, decimal_places=2)
    photo = models.ImageField(
        upload_to='car_photos/',
        blank=True,
        null=True,
        help_text="Optional photo of the car."
    )
    is_available = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        app_label = 'api'

    def delete(self, *args, **kwargs):
        # Delete the photo file from the file system
        if self.photo and os.path.isfile(self.photo.path):
            os.remove(self.photo.path)
        super().delete(*args, **kwargs)

    def clean(self):
        if self.price_per_day is not None and self.price_per_day <= 0:
            raise ValidationError("Price per day must be greater than zero.")

    def __str__(self):
        return f"{self.brand} {self.model} ({self.plate_number})"
