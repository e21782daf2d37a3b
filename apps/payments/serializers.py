"""Serializers for the payment domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Payment, PaymentEvent


class PaymentEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentEvent
        fields = ["id", "trigger", "event", "created_at"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """Read-only view of a payment and its provider history."""

    booking_id = serializers.ReadOnlyField(source="booking.id")
    events = PaymentEventSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "booking_id",
            "amount",
            "currency",
            "provider",
            "order_ref",
            "provider_order_id",
            "provider_payment_id",
            "status",
            "anomaly",
            "failure_reason",
            "paid_at",
            "created_at",
            "updated_at",
            "events",
        ]
        read_only_fields = fields


class PayerContactSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    phone = serializers.CharField(required=False, max_length=20)
    name = serializers.CharField(required=False, max_length=150)


class CreateOrderSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField(min_value=1)
    amount = serializers.IntegerField(help_text="Minor currency units; must equal the booking amount.")
    provider = serializers.ChoiceField(choices=Payment.Provider.choices, required=False)
    contact = PayerContactSerializer(required=False)


class VerifyPaymentSerializer(serializers.Serializer):
    order_id = serializers.CharField(max_length=100)
    payment_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    signature = serializers.CharField(max_length=256, required=False, allow_blank=True)
