"""Admin registration for notifications."""

from __future__ import annotations

from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "type", "is_read", "related_booking", "created_at")
    list_filter = ("type", "is_read")
    search_fields = ("user__email", "message")
    readonly_fields = ("user", "type", "message", "related_booking", "created_at")
