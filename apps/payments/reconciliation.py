"""
Reconciliation engine.

Every provider confirmation, whichever way it reaches us (client verify,
webhook, status poll, periodic sweep), ends up in
``apply_confirmed_payment`` or ``apply_failed_payment``. Both are
idempotent: a payment that is already completed, or already flagged as an
anomaly, is returned as stored without touching anything.

The confirming transaction locks the booking row and moves Booking,
Payment and (for flats) the listing review status together. Each move is a
conditional UPDATE on the expected predecessor state; if one of them hits
zero rows another writer got there first, the transaction is rolled back
and the stored state is re-read and re-classified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from django.db import DatabaseError, IntegrityError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.models import Booking
from apps.listings.models import ReviewStatus
from apps.listings.store import cas_review_status, get_unit, lock_queryset_if_possible
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import ClientError, ConflictError, InternalError, NotFoundError, ValidationError

from .domain.events import PaymentAnomalyDetected, PaymentConfirmed
from .models import Payment, PaymentEvent
from .orders import parse_order_ref

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


class Outcome:
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    FAILED = "failed"
    PENDING = "pending"
    ANOMALY = "anomaly"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: str
    payment: Payment
    booking: Booking

    @property
    def is_anomaly(self) -> bool:
        return self.outcome == Outcome.ANOMALY

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome,
            "payment_id": self.payment.pk,
            "order_ref": self.payment.order_ref,
            "payment_status": self.payment.status,
            "anomaly": self.payment.anomaly,
            "booking_id": self.booking.pk,
            "booking_status": self.booking.status,
        }


class _LostRace(Exception):
    """A guarded update matched no row; roll back and re-read."""


def _load_payment(provider_order_id: str) -> Payment:
    payment = Payment.objects.select_related("booking").filter(provider_order_id=provider_order_id).first()
    if payment is None:
        raise NotFoundError(f"No payment for provider order {provider_order_id}", code="payment_not_found")
    return payment


def _check_booking_ref(payment: Payment, order_ref: str | None) -> None:
    reference = order_ref or payment.order_ref
    try:
        booking_id = parse_order_ref(reference)
    except ValidationError:
        raise ClientError(f"Order reference {reference!r} is malformed", code="order_ref_mismatch")
    if booking_id != payment.booking_id:
        logger.warning(
            f"Order reference {reference} points at booking {booking_id} but payment "
            f"{payment.pk} belongs to booking {payment.booking_id}"
        )
        raise ClientError("Order reference does not match the payment's booking", code="order_ref_mismatch")


def stored_result(payment: Payment) -> ReconciliationResult | None:
    """The settled outcome of a completed or flagged payment, None while it is open."""
    if not payment.is_final:
        return None
    if payment.status == Payment.Status.COMPLETED:
        return ReconciliationResult(Outcome.ALREADY_CONFIRMED, payment, payment.booking)
    return ReconciliationResult(Outcome.ANOMALY, payment, payment.booking)


def _record(payment: Payment, trigger: str, event: str, payload: Any) -> None:
    PaymentEvent.objects.create(payment=payment, trigger=trigger, event=event, payload=payload or {})


def _owner_id(unit_ref) -> int | None:
    try:
        return get_unit(unit_ref).owner_id
    except NotFoundError:
        logger.warning(f"Unit {unit_ref} no longer exists")
        return None


def _lock_unit(unit_ref) -> bool:
    try:
        get_unit(unit_ref, lock=True)
    except NotFoundError:
        logger.warning(f"Unit {unit_ref} no longer exists")
        return False
    return True


def _confirm(uow, payment: Payment, booking: Booking, provider_payment_id: str, trigger: str, raw: Any) -> str:
    now = timezone.now()

    if not Booking.objects.filter(pk=booking.pk, status=Booking.Status.PENDING).update(
        status=Booking.Status.CONFIRMED, updated_at=now
    ):
        raise _LostRace
    if not (
        Payment.objects
        .filter(pk=payment.pk, status__in=[Payment.Status.PENDING, Payment.Status.FAILED], anomaly="")
        .update(
            status=Payment.Status.COMPLETED,
            provider_payment_id=provider_payment_id or payment.provider_payment_id,
            paid_at=now,
            failure_reason="",
            raw=raw if raw is not None else payment.raw,
            updated_at=now,
        )
    ):
        raise _LostRace

    unit_ref = booking.unit_ref
    review_opened = False
    if unit_ref.is_flat and _lock_unit(unit_ref):
        review_opened = cas_review_status(unit_ref, ReviewStatus.NONE, ReviewStatus.UNDER_REVIEW)

    _record(payment, trigger, "captured", raw)
    uow.add_event(
        PaymentConfirmed(
            aggregate_id=payment.pk,
            payment_id=payment.pk,
            booking_id=booking.pk,
            unit_kind=unit_ref.kind,
            unit_id=unit_ref.unit_id,
            owner_id=_owner_id(unit_ref),
            renter_id=booking.user_id,
            amount=payment.amount,
            currency=payment.currency,
            trigger=trigger,
            review_opened=review_opened,
        )
    )
    logger.info(
        f"Payment {payment.pk} confirmed booking {booking.pk} via {trigger} "
        f"(provider payment {provider_payment_id})"
    )
    return Outcome.CONFIRMED


def _flag_anomaly(
    uow, payment: Payment, anomaly: str, provider_payment_id: str, trigger: str, raw: Any
) -> str:
    reasons = {
        Payment.Anomaly.CANCELLED_BOOKING: "captured after the booking was cancelled",
        Payment.Anomaly.DUPLICATE_CAPTURE: "booking already paid by another payment",
    }
    if not (
        Payment.objects
        .filter(pk=payment.pk, anomaly="")
        .exclude(status=Payment.Status.COMPLETED)
        .update(
            status=Payment.Status.FAILED,
            anomaly=anomaly,
            provider_payment_id=provider_payment_id or payment.provider_payment_id,
            failure_reason=reasons[anomaly],
            raw=raw if raw is not None else payment.raw,
            updated_at=timezone.now(),
        )
    ):
        raise _LostRace

    _record(payment, trigger, f"anomaly:{anomaly}", raw)
    uow.add_event(
        PaymentAnomalyDetected(
            aggregate_id=payment.pk,
            payment_id=payment.pk,
            booking_id=payment.booking_id,
            anomaly=anomaly,
            provider=payment.provider,
            provider_payment_id=provider_payment_id or payment.provider_payment_id,
            amount=payment.amount,
            currency=payment.currency,
        )
    )
    logger.warning(
        f"Payment {payment.pk} for booking {payment.booking_id} flagged {anomaly} "
        f"via {trigger}; refund required"
    )
    return Outcome.ANOMALY


def _finish(payment_id: int, outcome: str) -> ReconciliationResult:
    payment = Payment.objects.select_related("booking").get(pk=payment_id)
    return ReconciliationResult(outcome, payment, payment.booking)


def apply_confirmed_payment(
    provider_order_id: str,
    provider_payment_id: str | None,
    trigger: str,
    order_ref: str | None = None,
    raw: Any = None,
) -> ReconciliationResult:
    """
    Apply a provider-confirmed capture to local state.

    Outcomes: ``confirmed`` (this call moved the booking), ``already_confirmed``
    (an earlier call did), ``anomaly`` (the booking could not take the money;
    the payment is marked failed and flagged, the booking is left alone).
    """
    payment = _load_payment(provider_order_id)
    _check_booking_ref(payment, order_ref)

    stored = stored_result(payment)
    if stored is not None:
        logger.info(f"Payment {payment.pk} already {stored.outcome}; {trigger} confirmation is a no-op")
        return stored

    for _ in range(MAX_ATTEMPTS):
        try:
            with DjangoUnitOfWork() as uow:
                booking = lock_queryset_if_possible(Booking.objects.filter(pk=payment.booking_id)).get()
                payment = Payment.objects.select_related("booking").get(pk=payment.pk)
                stored = stored_result(payment)
                if stored is not None:
                    return stored

                if booking.status == Booking.Status.PENDING:
                    outcome = _confirm(uow, payment, booking, provider_payment_id, trigger, raw)
                elif booking.status == Booking.Status.CANCELLED:
                    outcome = _flag_anomaly(
                        uow, payment, Payment.Anomaly.CANCELLED_BOOKING, provider_payment_id, trigger, raw
                    )
                else:
                    outcome = _flag_anomaly(
                        uow, payment, Payment.Anomaly.DUPLICATE_CAPTURE, provider_payment_id, trigger, raw
                    )
        except (_LostRace, IntegrityError):
            logger.info(f"Payment {payment.pk} changed concurrently during {trigger}; re-reading")
            payment = Payment.objects.select_related("booking").get(pk=payment.pk)
            stored = stored_result(payment)
            if stored is not None:
                return stored
            continue
        except DatabaseError as exc:
            logger.error(f"Storage failure reconciling payment {payment.pk}: {exc}", exc_info=True)
            raise InternalError("Could not record the payment confirmation", code="reconciliation_storage_failure")

        return _finish(payment.pk, outcome)

    raise ConflictError(
        f"Payment {payment.pk} kept changing while being reconciled",
        code="reconciliation_contention",
    )


def apply_failed_payment(
    provider_order_id: str,
    provider_payment_id: str | None = None,
    trigger: str = PaymentEvent.Trigger.WEBHOOK,
    reason: str = "",
    order_ref: str | None = None,
    raw: Any = None,
) -> ReconciliationResult:
    """Mark a pending payment failed. The booking stays pending for a retry."""

    payment = _load_payment(provider_order_id)
    _check_booking_ref(payment, order_ref)

    stored = stored_result(payment)
    if stored is not None:
        logger.info(f"Payment {payment.pk} already {stored.outcome}; ignoring {trigger} failure")
        return stored

    try:
        with DjangoUnitOfWork():
            updated = (
                Payment.objects
                .filter(pk=payment.pk, status=Payment.Status.PENDING, anomaly="")
                .update(
                    status=Payment.Status.FAILED,
                    provider_payment_id=provider_payment_id or payment.provider_payment_id,
                    failure_reason=(reason or "payment failed at provider")[:255],
                    raw=raw if raw is not None else payment.raw,
                    updated_at=timezone.now(),
                )
            )
            if updated:
                _record(payment, trigger, "failed", raw)
    except DatabaseError as exc:
        logger.error(f"Storage failure failing payment {payment.pk}: {exc}", exc_info=True)
        raise InternalError("Could not record the payment failure", code="reconciliation_storage_failure")

    payment = Payment.objects.select_related("booking").get(pk=payment.pk)
    stored = stored_result(payment)
    if stored is not None:
        return stored
    if updated:
        logger.info(f"Payment {payment.pk} failed via {trigger}: {payment.failure_reason}")
    return ReconciliationResult(Outcome.FAILED, payment, payment.booking)
