"""Serializers for listings."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import FlatListing


class FlatListingSerializer(serializers.ModelSerializer):
    owner_id = serializers.ReadOnlyField(source="owner.id")
    assigned_broker_id = serializers.ReadOnlyField(source="assigned_broker.id")

    class Meta:
        model = FlatListing
        fields = [
            "id",
            "owner_id",
            "title",
            "city",
            "colony",
            "house_number",
            "bhk",
            "rent_amount",
            "currency",
            "booked",
            "review_status",
            "assigned_broker_id",
            "updated_at",
        ]
        read_only_fields = fields
