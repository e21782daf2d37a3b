"""Listing models for Findoorz.

Flats and PG (paying guest) rooms share identity semantics: an opaque
primary key plus a kind tag. Only flats go through the broker handover
workflow tracked by ``review_status``.
"""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class UnitKind(models.TextChoices):
    FLAT = "flat", _("Flat")
    PG = "pg", _("PG")


class ReviewStatus(models.TextChoices):
    NONE = "none", _("Not under review")
    UNDER_REVIEW = "under_review", _("Under review")
    CONFIRMED = "confirmed", _("Handover confirmed")


class BaseListing(models.Model):
    """Fields shared by every rentable unit."""

    kind: str = ""

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="%(class)s_set",
    )
    title = models.CharField(max_length=255)
    city = models.CharField(max_length=100)
    colony = models.CharField(max_length=100, blank=True)
    house_number = models.CharField(max_length=50, blank=True)
    rent_amount = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text=_("Charge to secure a booking, in minor currency units."),
    )
    currency = models.CharField(max_length=3, default="INR")
    booked = models.BooleanField(
        default=False,
        help_text=_("Hard availability gate; set once a handover is confirmed."),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.title} ({self.city})"

    @property
    def unit_ref(self):
        from .store import UnitRef

        return UnitRef(kind=self.kind, unit_id=self.pk)


class FlatListing(BaseListing):
    """A whole flat, handed over to the renter by an assigned broker."""

    kind = UnitKind.FLAT

    class BHK(models.TextChoices):
        ONE = "1BHK", _("1 BHK")
        TWO = "2BHK", _("2 BHK")
        THREE = "3BHK", _("3 BHK")

    bhk = models.CharField(max_length=10, choices=BHK.choices, default=BHK.ONE)
    review_status = models.CharField(
        max_length=20,
        choices=ReviewStatus.choices,
        default=ReviewStatus.NONE,
    )
    assigned_broker = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_flats",
    )

    class Meta(BaseListing.Meta):
        verbose_name = _("Flat listing")
        verbose_name_plural = _("Flat listings")
        indexes = [
            models.Index(fields=["owner"], name="listings_fl_owner_i_5c1e2a_idx"),
            models.Index(fields=["review_status"], name="listings_fl_review__8d3f41_idx"),
        ]


class PGListing(BaseListing):
    """A paying-guest accommodation."""

    kind = UnitKind.PG

    number_of_rooms = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])

    class Meta(BaseListing.Meta):
        verbose_name = _("PG listing")
        verbose_name_plural = _("PG listings")
        indexes = [
            models.Index(fields=["owner"], name="listings_pg_owner_i_7a90b3_idx"),
        ]
