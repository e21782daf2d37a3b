"""
Order orchestrator: turn a pending booking into a provider order.

The internal order reference has the form ``order_<bookingId>_<ms>`` where
``<ms>`` comes from a process-wide monotonic millisecond clock, so two
orders raised for the same booking in the same millisecond still get
distinct references. The booking id is always the second ``_`` segment.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

from django.db import DatabaseError  # type: ignore

from apps.bookings.models import Booking
from apps.users.directory import is_blocked_from_paying
from shared.domain.exceptions import (
    ClientError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from shared.domain.value_objects import Money

from .conf import get_payments_settings
from .gateways import Payer, PaymentGateway
from .models import Payment

logger = logging.getLogger(__name__)

ORDER_REF_PREFIX = "order"


class MonotonicMillis:
    """Wall-clock milliseconds that never repeat or go backwards within a process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last = 0

    def now(self) -> int:
        with self._lock:
            current = time.time_ns() // 1_000_000
            if current <= self._last:
                current = self._last + 1
            self._last = current
            return current


_clock = MonotonicMillis()


def build_order_ref(booking_id: int, timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = _clock.now()
    return f"{ORDER_REF_PREFIX}_{booking_id}_{timestamp_ms}"


def parse_order_ref(order_ref: str) -> int:
    """Booking id encoded in an order reference."""

    parts = str(order_ref).split("_")
    if len(parts) < 3 or parts[0] != ORDER_REF_PREFIX or not parts[1].isdigit():
        raise ValidationError(f"Malformed order reference: {order_ref!r}", code="invalid_order_ref")
    return int(parts[1])


@dataclass(frozen=True)
class OrderSession:
    """What the client needs to open the provider checkout."""

    payment_id: int
    booking_id: int
    order_ref: str
    provider: str
    provider_order_id: str
    client_session_token: str
    amount: int
    currency: str
    checkout_options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "payment_id": self.payment_id,
            "booking_id": self.booking_id,
            "order_ref": self.order_ref,
            "provider": self.provider,
            "provider_order_id": self.provider_order_id,
            "client_session_token": self.client_session_token,
            "amount": self.amount,
            "currency": self.currency,
            "checkout_options": self.checkout_options,
        }


def _validate_amount(requested_amount, booking: Booking) -> Money:
    if isinstance(requested_amount, bool) or not isinstance(requested_amount, int):
        raise ValidationError("Amount must be an integer number of minor units", code="invalid_amount")
    if requested_amount <= 0:
        raise ValidationError("Amount must be positive", code="invalid_amount")

    max_amount = get_payments_settings().max_order_amount
    if requested_amount > max_amount:
        raise ValidationError(
            f"Amount {requested_amount} exceeds the order limit of {max_amount}",
            code="amount_too_large",
        )
    if requested_amount != booking.amount:
        raise ValidationError(
            f"Amount {requested_amount} does not match the booking amount {booking.amount}",
            code="amount_mismatch",
        )
    return Money(requested_amount, booking.currency)


def create_order_for_booking(
    booking_id: int,
    requested_amount: int,
    payer,
    gateway: PaymentGateway,
    payer_contact: Mapping[str, str] | None = None,
) -> OrderSession:
    """
    Create a provider order for a pending booking and record it as a
    pending Payment.

    Raises:
        NotFoundError: unknown booking
        ClientError: booking belongs to someone else, or the payer's
            verification is still in progress
        ConflictError: booking is no longer pending
        ValidationError: amount is not the booking amount
        PaymentProviderError: the provider call failed; nothing is stored
    """
    booking = Booking.objects.filter(pk=booking_id).first()
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found", code="booking_not_found")
    if booking.user_id != payer.pk:
        raise ClientError("You can only pay for your own bookings.", code="not_booking_owner", http_status=403)
    if booking.status != Booking.Status.PENDING:
        raise ConflictError(
            f"Booking {booking_id} is {booking.status} and cannot be paid.",
            code="booking_not_payable",
        )
    if is_blocked_from_paying(payer.pk):
        raise ClientError(
            "Your account verification is still in progress.",
            code="verification_pending",
            http_status=403,
        )
    amount = _validate_amount(requested_amount, booking)

    contact = payer_contact or {}
    order_ref = build_order_ref(booking.pk)
    created = gateway.create_order(
        order_ref,
        amount,
        Payer(
            user_id=payer.pk,
            email=contact.get("email") or payer.email,
            phone=contact.get("phone") or payer.phone or "",
            name=contact.get("name") or payer.display_name,
        ),
    )

    try:
        payment = Payment.objects.create(
            booking=booking,
            user=payer,
            amount=amount.amount,
            currency=amount.currency,
            provider=gateway.name,
            order_ref=order_ref,
            provider_order_id=created.provider_order_id,
            raw=created.raw,
        )
    except DatabaseError as exc:
        logger.error(
            f"Provider order {created.provider_order_id} for {order_ref} could not be stored: {exc}",
            exc_info=True,
        )
        raise InternalError("Could not store the payment order", code="payment_storage_failure")

    logger.info(
        f"Payment {payment.pk} ({order_ref}) opened on {gateway.name} order "
        f"{created.provider_order_id} for booking {booking.pk}"
    )
    return OrderSession(
        payment_id=payment.pk,
        booking_id=booking.pk,
        order_ref=order_ref,
        provider=gateway.name,
        provider_order_id=created.provider_order_id,
        client_session_token=created.client_session_token,
        amount=amount.amount,
        currency=amount.currency,
        checkout_options=created.checkout_options,
    )
