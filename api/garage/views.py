# api/garage/views.py
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from api.booking.availability import check_availability
from api.booking.serializers import AvailabilityQuerySerializer
from api.exceptions import ValidationError
from .models import Car
from .serializers import CarSerializer


class CarViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Car.objects.select_related('branch').order_by('brand', 'model')
    serializer_class = CarSerializer

    @action(detail=True, methods=['get'])
    def availability(self, request, pk=None):
        query = AvailabilityQuerySerializer(data=request.query_params)
        if not query.is_valid():
            raise ValidationError(query.errors)

        result = check_availability(
            pk,
            query.validated_data['pickup'],
            query.validated_data['dropoff'],
        )
        return Response(result.as_dict(include_conflict=request.user.is_operator))
