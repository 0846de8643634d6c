from django.urls import path

from . import views

urlpatterns = [
    path('payments/pending-verification/', views.PendingVerificationAPIView.as_view(), name='pending_verification'),
    path(
        'payments/pending-verification/<uuid:reservation_id>/resolve/',
        views.ResolveVerificationAPIView.as_view(),
        name='resolve_verification',
    ),
    path('payments/counter/<uuid:reservation_id>/', views.CounterPaymentAPIView.as_view(), name='counter_payment'),
]
