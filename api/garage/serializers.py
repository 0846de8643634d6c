# api/garage/serializers.py
from rest_framework import serializers

from .models import Car


class CarSerializer(serializers.ModelSerializer):
    branch_name = serializers.CharField(source='branch.name', read_only=True, default=None)

    class Meta:
        model = Car
        fields = [
            'id',
            'brand',
            'model',
            'plate_number',
            'price_per_day',
            'photo',
            'branch',
            'branch_name',
            'is_available',
        ]
        read_only_fields = fields
