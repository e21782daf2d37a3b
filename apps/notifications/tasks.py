"""Celery tasks for notification delivery and housekeeping."""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings  # type: ignore
from django.utils import timezone  # type: ignore

logger = logging.getLogger(__name__)


@shared_task(name="notifications.send_notification_email", ignore_result=True)
def send_notification_email(notification_id: int) -> bool:
    """Deliver one notification by e-mail. Best effort; failures are logged."""
    from .models import Notification
    from .services import send_email_notification

    notification = Notification.objects.select_related("user").filter(pk=notification_id).first()
    if notification is None:
        logger.warning(f"Notification {notification_id} vanished before e-mail delivery")
        return False
    if not notification.user.email:
        return False

    return send_email_notification(
        recipient_email=notification.user.email,
        subject=notification.get_type_display(),
        message=notification.message,
    )


@shared_task(name="notifications.purge_old_notifications")
def purge_old_notifications() -> int:
    """Delete notifications older than the retention window."""
    from .models import Notification

    days = getattr(settings, "NOTIFICATION_RETENTION_DAYS", 21)
    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = Notification.objects.filter(created_at__lt=cutoff).delete()
    logger.info(f"Deleted {deleted} notifications older than {days} days")
    return deleted


@shared_task(name="notifications.send_payment_receipt_email", ignore_result=True)
def send_payment_receipt_email(payment_id: int) -> bool:
    """E-mail the renter a receipt for a confirmed payment."""
    from apps.payments.models import Payment
    from shared.domain.value_objects import Money

    from .services import send_email_notification

    payment = Payment.objects.select_related("user").filter(pk=payment_id).first()
    if payment is None or not payment.user.email:
        return False

    paid_at = payment.paid_at or payment.updated_at
    message = "\n".join(
        [
            f"Dear {payment.user.display_name},",
            "",
            "Your payment has been successfully processed.",
            "",
            f"Transaction ID: {payment.provider_payment_id or payment.order_ref}",
            f"Booking: #{payment.booking_id}",
            f"Amount: {Money(payment.amount, payment.currency)}",
            f"Date: {paid_at:%d.%m.%Y}",
            f"Status: {payment.status}",
            "",
            "Thank you for using Findoorz!",
        ]
    )
    return send_email_notification(
        recipient_email=payment.user.email,
        subject="Payment Confirmation - Findoorz",
        message=message,
    )
