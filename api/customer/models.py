import uuid
from django.db import models


class Customer(models.Model):
    """
    Renter contact and driving-licence details. Records are created by the
    catalog side; checkout only refreshes the contact/licence fields.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True, default='')
    driver_license = models.CharField(max_length=100, blank=True, default='')
    license_expiry = models.DateField(blank=True, null=True)

    class Meta:
        app_label = 'api'

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self):
        return f"{self.first_name} {self.last_name} ({self.email})"
