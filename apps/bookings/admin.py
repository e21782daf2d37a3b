"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "listing_kind",
        "listing_id",
        "user",
        "status",
        "start_date",
        "end_date",
        "amount",
        "created_at",
    )
    list_filter = ("status", "listing_kind", "start_date")
    search_fields = ("user__email", "listing_id")
    readonly_fields = ("amount", "currency", "cancelled_at", "created_at", "updated_at")
