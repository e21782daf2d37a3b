"""Payment domain models for Findoorz."""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Payment(models.Model):
    """One provider order raised against a booking. Retries create new rows."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        COMPLETED = "completed", _("Completed")
        FAILED = "failed", _("Failed")

    class Provider(models.TextChoices):
        RAZORPAY = "razorpay", _("Razorpay")
        CASHFREE = "cashfree", _("Cashfree")

    class Anomaly(models.TextChoices):
        NONE = "", _("None")
        CANCELLED_BOOKING = "cancelled_booking", _("Captured after booking was cancelled")
        DUPLICATE_CAPTURE = "duplicate_capture", _("Booking already paid by another payment")

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    amount = models.PositiveIntegerField(help_text=_("Minor currency units"))
    currency = models.CharField(max_length=3, default="INR")
    provider = models.CharField(max_length=20, choices=Provider.choices)
    order_ref = models.CharField(max_length=64, unique=True)
    provider_order_id = models.CharField(max_length=100, unique=True)
    provider_payment_id = models.CharField(max_length=100, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    anomaly = models.CharField(max_length=30, choices=Anomaly.choices, blank=True, default=Anomaly.NONE)
    failure_reason = models.CharField(max_length=255, blank=True)
    raw = models.JSONField(default=dict, blank=True, help_text=_("Last provider payload"))
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Payment")
        verbose_name_plural = _("Payments")
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["booking"],
                condition=models.Q(status="completed"),
                name="one_completed_payment_per_booking",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_positive_amount",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"], name="payments_pa_status_1c7e52_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment {self.order_ref} ({self.status})"

    @property
    def is_final(self) -> bool:
        return self.status == self.Status.COMPLETED or bool(self.anomaly)


class PaymentEvent(models.Model):
    """Append-only log of provider interactions applied to a payment."""

    class Trigger(models.TextChoices):
        VERIFY = "verify", _("Client verify")
        WEBHOOK = "webhook", _("Webhook")
        POLL = "poll", _("Status poll")
        SWEEP = "sweep", _("Periodic sweep")

    payment = models.ForeignKey(
        Payment,
        on_delete=models.CASCADE,
        related_name="events",
    )
    trigger = models.CharField(max_length=20, choices=Trigger.choices)
    event = models.CharField(max_length=50)
    payload = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Payment event")
        verbose_name_plural = _("Payment events")
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.event} via {self.trigger} for payment {self.payment_id}"
