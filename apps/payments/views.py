"""API views for payment orders, confirmation and provider webhooks."""

from __future__ import annotations

import logging

from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from .gateways import get_gateway
from .models import Payment
from .orders import create_order_for_booking
from .serializers import CreateOrderSerializer, PaymentSerializer, VerifyPaymentSerializer
from .triggers import handle_webhook, poll_payment_status, verify_payment

logger = logging.getLogger(__name__)


class PaymentViewSet(viewsets.ReadOnlyModelViewSet):
    """The caller's payments with their provider history."""

    queryset = Payment.objects.select_related("booking").prefetch_related("events").all()
    serializer_class = PaymentSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["status", "provider", "booking"]
    lookup_value_regex = r"\d+"

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
            return qs
        return qs.filter(user=user)


class CreateOrderView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):  # type: ignore
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        session = create_order_for_booking(
            booking_id=data["booking_id"],
            requested_amount=data["amount"],
            payer=request.user,
            gateway=get_gateway(data.get("provider")),
            payer_contact=data.get("contact"),
        )
        return Response(session.to_dict(), status=status.HTTP_201_CREATED)


class VerifyPaymentView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):  # type: ignore
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = verify_payment(
            request.user,
            data["order_id"],
            provider_payment_id=data.get("payment_id") or None,
            signature=data.get("signature") or None,
        )
        return Response(result.to_dict())


class PaymentStatusView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, order_id):  # type: ignore
        result = poll_payment_status(request.user, order_id)
        return Response(result.to_dict())


class PaymentWebhookView(APIView):
    """
    Provider webhook endpoint.

    Providers authenticate with an HMAC over the raw body, so there is no
    user authentication or CSRF check here. The body is read raw and never
    through ``request.data``: re-serialized JSON would not match the
    signature.
    """

    authentication_classes: list = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, provider=None):  # type: ignore
        gateway = get_gateway(provider)
        result = handle_webhook(request.body, request.headers, gateway)
        if result is None:
            return Response({"status": "ok", "outcome": "ignored"})
        return Response({"status": "ok", **result.to_dict()})
