from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from api.booking.checkout import (
    get_payment_instructions,
    get_price_quote,
    initiate_reservation,
    save_renter_information,
    submit_payment_proof,
)
from api.booking.lifecycle import get_reservation, purge_reservation, transition_reservation
from api.booking.models import Reservation
from api.booking.serializers import (
    InitiateReservationSerializer,
    PaymentInstructionsQuerySerializer,
    PaymentProofSerializer,
    ReservationDetailSerializer,
    ReservationSerializer,
    TransitionSerializer,
)
from api.customer.serializers import RenterInformationSerializer
from api.exceptions import ValidationError
from api.permissions import IsOperator, require_access
from payments.serializers import PaymentRecordSerializer
from payments.verification import payments_for_reservation


def _validated(serializer_class, data):
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        raise ValidationError(serializer.errors)
    return serializer.validated_data


class ReservationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    Customers see and act on their own reservations; operators see all of
    them and drive the lifecycle.
    """
    queryset = Reservation.objects.select_related('vehicle', 'customer')
    serializer_class = ReservationSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        actor = self.request.user
        if not actor.is_operator:
            queryset = queryset.filter(customer_id=actor.id)

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset

    def retrieve(self, request, pk=None):
        reservation = get_reservation(pk)
        require_access(request.user, reservation)
        return Response(ReservationDetailSerializer(reservation).data)

    def create(self, request):
        data = _validated(InitiateReservationSerializer, request.data)
        reservation = initiate_reservation(
            request.user,
            data['vehicle_id'],
            data['pickup_time'],
            data['dropoff_time'],
            pickup_location=data['pickup_location'],
            dropoff_location=data['dropoff_location'],
            idempotency_key=data.get('idempotency_key') or request.headers.get('Idempotency-Key'),
        )
        return Response(ReservationSerializer(reservation).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        reason = request.query_params.get('reason') or request.data.get('reason', '')
        purge_reservation(pk, request.user, reason)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get'])
    def quote(self, request, pk=None):
        return Response(get_price_quote(pk, request.user).as_dict())

    @action(detail=True, methods=['put'], url_path='renter-info')
    def renter_info(self, request, pk=None):
        customer = save_renter_information(pk, request.user, request.data)
        return Response(RenterInformationSerializer(customer).data)

    @action(detail=True, methods=['get'], url_path='payment-instructions')
    def payment_instructions(self, request, pk=None):
        query = _validated(PaymentInstructionsQuerySerializer, request.query_params)
        return Response(get_payment_instructions(pk, request.user, query['method']))

    @action(
        detail=True,
        methods=['post'],
        url_path='payment-proof',
        parser_classes=[MultiPartParser, FormParser],
    )
    def payment_proof(self, request, pk=None):
        data = _validated(PaymentProofSerializer, request.data)
        record = submit_payment_proof(
            pk,
            request.user,
            data['method'],
            data['slip'],
            expected_amount=data.get('expected_amount'),
        )
        body = PaymentRecordSerializer(record, context={'request': request}).data
        body['reservation_status'] = Reservation.objects.values_list('status', flat=True).get(id=record.reservation_id)
        return Response(body, status=status.HTTP_201_CREATED)

    @action(
        detail=True,
        methods=['post'],
        permission_classes=[IsOperator],
        parser_classes=[JSONParser, FormParser],
    )
    def transition(self, request, pk=None):
        data = _validated(TransitionSerializer, request.data)
        reservation = transition_reservation(pk, data['status'], request.user, note=data['note'])
        return Response(ReservationSerializer(reservation).data)

    @action(detail=True, methods=['get'])
    def payments(self, request, pk=None):
        records = payments_for_reservation(pk, request.user)
        return Response(PaymentRecordSerializer(records, many=True, context={'request': request}).data)
