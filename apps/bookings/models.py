"""Booking domain models for Findoorz."""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.core.exceptions import ValidationError  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.listings.models import UnitKind


class Booking(models.Model):
    """A renter's reservation of a unit for ``[start_date, end_date)``."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending payment")
        CONFIRMED = "confirmed", _("Confirmed")
        CANCELLED = "cancelled", _("Cancelled")
        COMPLETED = "completed", _("Completed")

    # Statuses that hold the unit's dates.
    BLOCKING_STATUSES = (Status.PENDING, Status.CONFIRMED, Status.COMPLETED)

    listing_kind = models.CharField(max_length=10, choices=UnitKind.choices)
    listing_id = models.PositiveBigIntegerField()
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    amount = models.PositiveIntegerField(
        help_text=_("Expected charge in minor currency units, fixed at booking time."),
    )
    currency = models.CharField(max_length=3, default="INR")
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F("start_date")),
                name="booking_valid_dates",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="booking_positive_amount",
            ),
        ]
        indexes = [
            models.Index(
                fields=["listing_kind", "listing_id", "start_date", "end_date"],
                name="bookings_bo_listing_3f2c9e_idx",
            ),
            models.Index(fields=["status"], name="bookings_bo_status_6b1d07_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.pk} for {self.listing_kind}:{self.listing_id}"

    def clean(self) -> None:
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValidationError(_("End date must be after start date."))

    @property
    def unit_ref(self):
        from apps.listings.store import UnitRef

        return UnitRef(kind=self.listing_kind, unit_id=self.listing_id)

    @property
    def is_cancellable(self) -> bool:
        return self.status in (self.Status.PENDING, self.Status.CONFIRMED)
