import uuid
from django.db import models


class Branch(models.Model):
    """
    A rental branch. Its address is the default pickup location for the
    cars based there.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    address = models.TextField(blank=True, default='')
    phone = models.CharField(max_length=20, blank=True, default='')

    class Meta:
        app_label = 'api'
        verbose_name_plural = 'branches'

    def __str__(self):
        return self.name
