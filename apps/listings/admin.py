"""Admin registration for listings."""

from __future__ import annotations

from django.contrib import admin

from .models import FlatListing, PGListing


@admin.register(FlatListing)
class FlatListingAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "city", "owner", "rent_amount", "booked", "review_status", "assigned_broker")
    list_filter = ("review_status", "booked", "city", "bhk")
    search_fields = ("title", "colony", "house_number", "owner__email")
    raw_id_fields = ("owner", "assigned_broker")


@admin.register(PGListing)
class PGListingAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "city", "owner", "rent_amount", "booked", "number_of_rooms")
    list_filter = ("booked", "city")
    search_fields = ("title", "colony", "owner__email")
    raw_id_fields = ("owner",)
