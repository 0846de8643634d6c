from rest_framework import serializers

from payments.models import PaymentRecord


class PaymentRecordSerializer(serializers.ModelSerializer):
    reservation = serializers.UUIDField(source='reservation_id', read_only=True)

    class Meta:
        model = PaymentRecord
        fields = [
            'id',
            'reservation',
            'amount',
            'currency',
            'method',
            'proof',
            'reference',
            'submitted_at',
            'outcome',
            'verified_at',
            'operator_note',
        ]
        read_only_fields = fields


class PendingVerificationSerializer(serializers.ModelSerializer):
    """One row of the operator's review queue."""
    payment_id = serializers.UUIDField(source='id', read_only=True)
    reservation_id = serializers.UUIDField(read_only=True)
    customer_name = serializers.CharField(source='reservation.customer.full_name', read_only=True)
    customer_email = serializers.EmailField(source='reservation.customer.email', read_only=True)
    vehicle = serializers.SerializerMethodField()
    pickup_time = serializers.DateTimeField(source='reservation.pickup_time', read_only=True)
    dropoff_time = serializers.DateTimeField(source='reservation.dropoff_time', read_only=True)

    class Meta:
        model = PaymentRecord
        fields = [
            'payment_id',
            'reservation_id',
            'amount',
            'currency',
            'method',
            'proof',
            'submitted_at',
            'customer_name',
            'customer_email',
            'vehicle',
            'pickup_time',
            'dropoff_time',
        ]
        read_only_fields = fields

    def get_vehicle(self, obj):
        vehicle = obj.reservation.vehicle
        return f"{vehicle.brand} {vehicle.model} ({vehicle.plate_number})"


class ResolveVerificationSerializer(serializers.Serializer):
    approve = serializers.BooleanField()
    note = serializers.CharField(required=False, allow_blank=True, default='')


class CounterPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    method = serializers.ChoiceField(choices=PaymentRecord.METHOD_CHOICES, default=PaymentRecord.METHOD_CASH)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
