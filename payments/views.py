from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from api.exceptions import ValidationError
from api.permissions import IsOperator
from payments.serializers import (
    CounterPaymentSerializer,
    PaymentRecordSerializer,
    PendingVerificationSerializer,
    ResolveVerificationSerializer,
)
from payments.verification import list_pending_verification, record_counter_payment, resolve_verification


class PendingVerificationAPIView(APIView):
    permission_classes = [IsOperator]

    def get(self, request):
        records = list_pending_verification(request.user)
        serializer = PendingVerificationSerializer(records, many=True, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)


class ResolveVerificationAPIView(APIView):
    permission_classes = [IsOperator]

    def post(self, request, reservation_id):
        serializer = ResolveVerificationSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)

        record = resolve_verification(
            reservation_id,
            serializer.validated_data['approve'],
            request.user,
            note=serializer.validated_data['note'],
        )
        data = PaymentRecordSerializer(record, context={'request': request}).data
        data['reservation_status'] = record.reservation.status
        return Response(data, status=status.HTTP_200_OK)


class CounterPaymentAPIView(APIView):
    permission_classes = [IsOperator]

    def post(self, request, reservation_id):
        serializer = CounterPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)

        record = record_counter_payment(
            reservation_id,
            request.user,
            serializer.validated_data['amount'],
            method=serializer.validated_data['method'],
            reference=serializer.validated_data['reference'],
        )
        return Response(
            PaymentRecordSerializer(record, context={'request': request}).data,
            status=status.HTTP_201_CREATED,
        )
