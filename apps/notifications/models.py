"""Notification model.

A message delivered to a user about something that happened to one of
their bookings or listings. Notifications are write-once: the only field
that changes after creation is ``is_read``.
"""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.listings.models import UnitKind


class Notification(models.Model):
    """A message sent to a user about some event."""

    class Type(models.TextChoices):
        PAYMENT_RECEIVED = "payment_received", _("Payment received")
        FLAT_UNDER_REVIEW = "flat_under_review", _("Flat under review")
        BOOKING_CANCELLED = "booking_cancelled", _("Booking cancelled")
        PAYOUT_DUE = "payout_due", _("Payout due")
        PAYMENT_ANOMALY = "payment_anomaly", _("Payment needs refund")

    user = models.ForeignKey(
        'users.CustomUser', on_delete=models.CASCADE, related_name='notifications'
    )
    type = models.CharField(max_length=30, choices=Type.choices)
    message = models.TextField()
    related_booking = models.ForeignKey(
        'bookings.Booking',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications',
    )
    related_listing_kind = models.CharField(max_length=10, choices=UnitKind.choices, blank=True)
    related_listing_id = models.PositiveBigIntegerField(null=True, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notificatio_user_id_2e4a1c_idx'),
        ]

    def __str__(self) -> str:
        return f"Notification to {self.user_id}: {self.type}"
