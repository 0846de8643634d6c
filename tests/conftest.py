import io
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone
from PIL import Image
from rest_framework.test import APIClient

from api.booking.models import Reservation
from api.branch.models import Branch
from api.customer.models import Customer
from api.garage.models import Car
from api.permissions import ROLE_CUSTOMER, ROLE_OPERATOR, Actor


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / "media")
    return settings.MEDIA_ROOT


@pytest.fixture
def day1():
    """10:00 on a day safely in the future."""
    start = timezone.localtime() + timedelta(days=30)
    return start.replace(hour=10, minute=0, second=0, microsecond=0)


@pytest.fixture
def at(day1):
    """``at(n, hour)`` is ``n`` days after day1 at the given hour."""
    def _at(days, hour=10):
        return (day1 + timedelta(days=days)).replace(hour=hour)
    return _at


@pytest.fixture
def branch(db):
    return Branch.objects.create(
        name="Airport",
        address="Suvarnabhumi Airport, Arrival Hall Gate 8",
        phone="021234567",
    )


@pytest.fixture
def car(branch):
    return Car.objects.create(
        branch=branch,
        brand="Toyota",
        model="Yaris",
        plate_number="AB-1001",
        price_per_day=Decimal("500.00"),
    )


@pytest.fixture
def premium_car(branch):
    return Car.objects.create(
        branch=branch,
        brand="Honda",
        model="Accord",
        plate_number="AB-2002",
        price_per_day=Decimal("1000.00"),
    )


@pytest.fixture
def customer(db):
    return Customer.objects.create(
        first_name="Somchai",
        last_name="Jaidee",
        email="somchai@example.com",
        phone="0812345678",
    )


@pytest.fixture
def other_customer(db):
    return Customer.objects.create(
        first_name="Anong",
        last_name="Suksan",
        email="anong@example.com",
        phone="0898765432",
    )


@pytest.fixture
def customer_actor(customer):
    return Actor(id=customer.id, role=ROLE_CUSTOMER)


@pytest.fixture
def other_actor(other_customer):
    return Actor(id=other_customer.id, role=ROLE_CUSTOMER)


@pytest.fixture
def operator_actor():
    return Actor(id=uuid.uuid4(), role=ROLE_OPERATOR)


@pytest.fixture
def make_reservation(db):
    """Insert a reservation row directly, bypassing checkout."""
    def _make(vehicle, customer, pickup, dropoff, status=Reservation.STATUS_BOOKED, **extra):
        return Reservation.objects.create(
            vehicle=vehicle,
            customer=customer,
            pickup_time=pickup,
            dropoff_time=dropoff,
            status=status,
            **extra,
        )
    return _make


def png_bytes(color="white", size=(40, 30), fmt="PNG"):
    buffer = io.BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def slip():
    """Factory for uploaded transfer-slip images."""
    def _slip(name="slip.png", color="white", content=None):
        data = content if content is not None else png_bytes(color=color)
        return SimpleUploadedFile(name, data, content_type="image/png")
    return _slip


@pytest.fixture
def client_for():
    def _client(actor):
        client = APIClient()
        client.credentials(HTTP_X_ACTOR_ID=str(actor.id), HTTP_X_ACTOR_ROLE=actor.role)
        return client
    return _client
