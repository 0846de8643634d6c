from django.utils import timezone
from rest_framework import serializers

from api.customer.models import Customer


class CustomerSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Customer
        fields = [
            'id',
            'first_name',
            'last_name',
            'email',
            'phone',
        ]


class RenterInformationSerializer(serializers.ModelSerializer):
    """Contact and licence details collected during checkout."""
    phone = serializers.CharField(max_length=20)
    driver_license = serializers.CharField(max_length=100)
    license_expiry = serializers.DateField()

    class Meta:
        model = Customer
        fields = [
            'first_name',
            'last_name',
            'email',
            'phone',
            'driver_license',
            'license_expiry',
        ]

    def validate_phone(self, value):
        digits = value.replace(' ', '').replace('-', '')
        if digits.startswith('+'):
            digits = digits[1:]
        if not digits.isdigit() or len(digits) < 6:
            raise serializers.ValidationError("Enter a valid phone number.")
        return value.strip()

    def validate_license_expiry(self, value):
        if value < timezone.localdate():
            raise serializers.ValidationError("Driver license has expired.")
        return value
