# api/urls.py
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from api.booking.views import ReservationViewSet
from api.garage.views import CarViewSet

router = DefaultRouter()
router.register(r'cars', CarViewSet)
router.register(r'reservations', ReservationViewSet)


urlpatterns = [
    path('', include(router.urls)),
]
