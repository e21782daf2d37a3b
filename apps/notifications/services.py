"""Notification services: in-app records, e-mail delivery and event fanout."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore

from apps.listings.store import UnitRef
from apps.users.directory import list_admins
from shared.domain.value_objects import Money

from .models import Notification

if TYPE_CHECKING:  # pragma: no cover
    from apps.bookings.domain.events import BookingCancelled
    from apps.listings.domain.events import HandoverConfirmed
    from apps.payments.domain.events import PaymentAnomalyDetected, PaymentConfirmed

logger = logging.getLogger(__name__)


# ============================================================================
# DELIVERY
# ============================================================================

def send_email_notification(recipient_email: str, subject: str, message: str) -> bool:
    """
    Send a plain-text notification e-mail.

    Returns:
        bool: True if the message was handed to the mail backend
    """
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient_email],
            fail_silently=False,
        )
        logger.info(f"Email sent successfully to {recipient_email}: {subject}")
        return True

    except Exception as e:
        logger.error(f"Failed to send email to {recipient_email}: {e}", exc_info=True)
        return False


def _queue_email(notification: Notification) -> None:
    try:
        from .tasks import send_notification_email

        send_notification_email.delay(notification.pk)
    except Exception as e:
        logger.warning(f"Could not queue e-mail for notification {notification.pk}: {e}")


def _queue_receipt(payment_id: int) -> None:
    try:
        from .tasks import send_payment_receipt_email

        send_payment_receipt_email.delay(payment_id)
    except Exception as e:
        logger.warning(f"Could not queue receipt e-mail for payment {payment_id}: {e}")


def notify(
    recipient_id: int,
    message: str,
    type: str,
    related_booking_id: int | None = None,
    related_unit: UnitRef | None = None,
) -> Notification | None:
    """
    Create an in-app notification and queue its e-mail.

    Never raises: a failed notification must not undo or block the state
    change that caused it. Returns None when the record could not be stored.
    """
    try:
        notification = Notification.objects.create(
            user_id=recipient_id,
            message=message,
            type=type,
            related_booking_id=related_booking_id,
            related_listing_kind=related_unit.kind if related_unit else "",
            related_listing_id=related_unit.unit_id if related_unit else None,
        )
    except Exception as e:
        logger.error(f"Failed to create {type} notification for user {recipient_id}: {e}", exc_info=True)
        return None

    logger.info(f"Notification {notification.pk} ({type}) created for user {recipient_id}")
    _queue_email(notification)
    return notification


def notify_admins(
    message: str,
    type: str,
    related_booking_id: int | None = None,
    related_unit: UnitRef | None = None,
) -> list[Notification]:
    try:
        admin_ids = list(list_admins().values_list("pk", flat=True))
    except Exception as e:
        logger.error(f"Could not load admin accounts for {type} notification: {e}", exc_info=True)
        return []

    if not admin_ids:
        logger.warning(f"No admin accounts to receive {type} notification")

    created = []
    for admin_id in admin_ids:
        notification = notify(admin_id, message, type, related_booking_id, related_unit)
        if notification is not None:
            created.append(notification)
    return created


# ============================================================================
# FANOUT
# ============================================================================

def fanout_payment_confirmed(event: "PaymentConfirmed") -> list[Notification]:
    """
    Owner always hears about the payment; admins only when a flat went
    under review and needs a broker for the handover.
    """
    _queue_receipt(event.payment_id)
    unit = UnitRef(kind=event.unit_kind, unit_id=event.unit_id)
    amount = Money(event.amount, event.currency)
    created: list[Notification] = []

    if event.owner_id is not None:
        owner_notification = notify(
            event.owner_id,
            f"Payment of {amount} received for booking #{event.booking_id} on {unit}.",
            Notification.Type.PAYMENT_RECEIVED,
            related_booking_id=event.booking_id,
            related_unit=unit,
        )
        if owner_notification is not None:
            created.append(owner_notification)
    else:
        logger.warning(f"Unit {unit} has no owner; payment {event.payment_id} notification skipped")

    if event.review_opened:
        created.extend(
            notify_admins(
                f"Flat {unit} is under review after payment for booking #{event.booking_id}. "
                f"Assign a broker to hand it over.",
                Notification.Type.FLAT_UNDER_REVIEW,
                related_booking_id=event.booking_id,
                related_unit=unit,
            )
        )
    return created


def fanout_booking_cancelled(event: "BookingCancelled") -> list[Notification]:
    unit = UnitRef(kind=event.unit_kind, unit_id=event.unit_id)
    notification = notify(
        event.owner_id,
        f"Booking #{event.booking_id} on {unit} was cancelled by the renter.",
        Notification.Type.BOOKING_CANCELLED,
        related_booking_id=event.booking_id,
        related_unit=unit,
    )
    return [notification] if notification is not None else []


def fanout_handover_confirmed(event: "HandoverConfirmed") -> list[Notification]:
    return notify_admins(
        f"Broker confirmed handover for flat {event.label}. "
        f"Proceed with payouts to owner and broker.",
        Notification.Type.PAYOUT_DUE,
        related_booking_id=event.booking_id,
        related_unit=UnitRef(kind="flat", unit_id=event.unit_id),
    )


def fanout_payment_anomaly(event: "PaymentAnomalyDetected") -> list[Notification]:
    amount = Money(event.amount, event.currency)
    reason = {
        "cancelled_booking": "the booking was already cancelled",
        "duplicate_capture": "the booking was already paid by another payment",
    }.get(event.anomaly, event.anomaly)
    return notify_admins(
        f"{event.provider} captured {amount} (payment {event.provider_payment_id}) for "
        f"booking #{event.booking_id} but {reason}. Refund required.",
        Notification.Type.PAYMENT_ANOMALY,
        related_booking_id=event.booking_id,
    )
