"""URL routing for the payment domain."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import (
    CreateOrderView,
    PaymentStatusView,
    PaymentViewSet,
    PaymentWebhookView,
    VerifyPaymentView,
)

router = DefaultRouter()
router.register(r"", PaymentViewSet, basename="payment")

urlpatterns = [
    path("create-order/", CreateOrderView.as_view(), name="payment-create-order"),
    path("verify/", VerifyPaymentView.as_view(), name="payment-verify"),
    path("webhook/", PaymentWebhookView.as_view(), name="payment-webhook"),
    path("webhook/<str:provider>/", PaymentWebhookView.as_view(), name="payment-webhook-provider"),
    path("status/<str:order_id>/", PaymentStatusView.as_view(), name="payment-status"),
    path("", include(router.urls)),
]
