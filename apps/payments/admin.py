"""Admin registration for payments."""

from __future__ import annotations

from django.contrib import admin

from .models import Payment, PaymentEvent


class PaymentEventInline(admin.TabularInline):
    model = PaymentEvent
    extra = 0
    can_delete = False
    readonly_fields = ("trigger", "event", "payload", "created_at")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "order_ref",
        "booking",
        "user",
        "provider",
        "status",
        "anomaly",
        "amount",
        "paid_at",
        "created_at",
    )
    list_filter = ("status", "provider", "anomaly")
    search_fields = ("order_ref", "provider_order_id", "provider_payment_id", "user__email")
    readonly_fields = (
        "order_ref",
        "provider_order_id",
        "provider_payment_id",
        "raw",
        "paid_at",
        "created_at",
        "updated_at",
    )
    inlines = [PaymentEventInline]
