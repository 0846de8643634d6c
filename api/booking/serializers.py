from rest_framework import serializers

from api.booking.models import Reservation, ReservationEvent
from api.customer.serializers import CustomerSerializer
from payments.models import PaymentRecord


class AvailabilityQuerySerializer(serializers.Serializer):
    pickup = serializers.DateTimeField()
    dropoff = serializers.DateTimeField()


class ReservationEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReservationEvent
        fields = [
            'event',
            'from_status',
            'to_status',
            'actor_role',
            'note',
            'created_at',
        ]


class ReservationSerializer(serializers.ModelSerializer):
    vehicle = serializers.UUIDField(source='vehicle.id', read_only=True)
    vehicle_name = serializers.SerializerMethodField()
    customer = CustomerSerializer(read_only=True)

    class Meta:
        model = Reservation
        fields = [
            'id',
            'vehicle',
            'vehicle_name',
            'customer',
            'pickup_time',
            'dropoff_time',
            'pickup_location',
            'dropoff_location',
            'status',
            'version',
            'confirmation_source',
            'confirmed_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_vehicle_name(self, obj):
        return f"{obj.vehicle.brand} {obj.vehicle.model}"


class ReservationDetailSerializer(ReservationSerializer):
    events = ReservationEventSerializer(many=True, read_only=True)

    class Meta(ReservationSerializer.Meta):
        fields = ReservationSerializer.Meta.fields + ['events']
        read_only_fields = fields


class InitiateReservationSerializer(serializers.Serializer):
    vehicle_id = serializers.UUIDField()
    pickup_time = serializers.DateTimeField()
    dropoff_time = serializers.DateTimeField()
    pickup_location = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    dropoff_location = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    idempotency_key = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)

    def validate(self, data):
        if data['dropoff_time'] <= data['pickup_time']:
            raise serializers.ValidationError("Drop-off time must be after pickup time.")
        return data


class TransitionSerializer(serializers.Serializer):
    # Unsupported targets are rejected by the state machine, not here.
    status = serializers.CharField(max_length=20)
    note = serializers.CharField(required=False, allow_blank=True, default='')


class PaymentInstructionsQuerySerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=PaymentRecord.TRANSFER_METHODS)


class PaymentProofSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=PaymentRecord.TRANSFER_METHODS)
    # Pillow verification happens in the checkout step, so accept any file here.
    slip = serializers.FileField()
    expected_amount = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
