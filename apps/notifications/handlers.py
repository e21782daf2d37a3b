"""Message bus subscriptions for the notification fanout."""

from __future__ import annotations

from apps.bookings.domain.events import BookingCancelled
from apps.listings.domain.events import HandoverConfirmed
from apps.payments.domain.events import PaymentAnomalyDetected, PaymentConfirmed
from shared.application.message_bus import message_bus

from . import services


def on_payment_confirmed(event: PaymentConfirmed) -> None:
    services.fanout_payment_confirmed(event)


def on_payment_anomaly(event: PaymentAnomalyDetected) -> None:
    services.fanout_payment_anomaly(event)


def on_booking_cancelled(event: BookingCancelled) -> None:
    services.fanout_booking_cancelled(event)


def on_handover_confirmed(event: HandoverConfirmed) -> None:
    services.fanout_handover_confirmed(event)


def register_handlers() -> None:
    message_bus.register_event_handler(PaymentConfirmed, on_payment_confirmed)
    message_bus.register_event_handler(PaymentAnomalyDetected, on_payment_anomaly)
    message_bus.register_event_handler(BookingCancelled, on_booking_cancelled)
    message_bus.register_event_handler(HandoverConfirmed, on_handover_confirmed)
