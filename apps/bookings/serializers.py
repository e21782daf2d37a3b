"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.listings.models import UnitKind

from .models import Booking


class BookingCreateSerializer(serializers.Serializer):
    """Booking request from a renter."""

    listing_kind = serializers.ChoiceField(choices=UnitKind.choices)
    listing_id = serializers.IntegerField(min_value=1)
    start_date = serializers.DateField()
    end_date = serializers.DateField()

    def validate(self, attrs):  # type: ignore
        if attrs["start_date"] >= attrs["end_date"]:
            raise serializers.ValidationError("End date must be after start date.")
        return attrs


class BookingSerializer(serializers.ModelSerializer):
    user_id = serializers.ReadOnlyField(source="user.id")
    nights = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "listing_kind",
            "listing_id",
            "user_id",
            "start_date",
            "end_date",
            "nights",
            "status",
            "amount",
            "currency",
            "cancelled_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_nights(self, obj: Booking) -> int:
        return (obj.end_date - obj.start_date).days
