"""Domain services for booking workflows."""

from __future__ import annotations

import logging
from datetime import date

from django.db import DatabaseError, transaction  # type: ignore
from django.utils import timezone  # type: ignore

from apps.listings.models import ReviewStatus
from apps.listings.store import UnitRef, cas_review_status, get_unit, lock_queryset_if_possible
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import ClientError, ConflictError, InternalError, NotFoundError
from shared.domain.value_objects import DateRange

from .availability import conflicting_bookings, is_available
from .domain.events import BookingCancelled
from .models import Booking

logger = logging.getLogger(__name__)


class BookingConflictError(ConflictError):
    """Raised when a unit is busy for the requested dates."""

    default_code = "booking_conflict"


def create_booking(*, user, unit_ref: UnitRef, start_date: date, end_date: date) -> Booking:
    """
    Create a pending booking for the renter.

    The availability check runs twice: once without locks to fail fast,
    and again inside the inserting transaction after the unit row has
    been locked, so two concurrent requests for overlapping dates cannot
    both pass.
    """

    dates = DateRange(start_date, end_date)
    unit = get_unit(unit_ref)

    if unit.booked:
        raise BookingConflictError(f"Unit {unit_ref} is no longer available", code="unit_booked")
    if not is_available(unit_ref, dates.start_date, dates.end_date):
        raise BookingConflictError("The unit is already booked for the selected dates.")

    try:
        with transaction.atomic():
            unit = get_unit(unit_ref, lock=True)
            if unit.booked:
                raise BookingConflictError(f"Unit {unit_ref} is no longer available", code="unit_booked")
            if conflicting_bookings(unit_ref, dates.start_date, dates.end_date, lock=True).exists():
                logger.warning(
                    f"Lost booking race on unit {unit_ref} for {dates}; "
                    f"renter {user.pk} gets a conflict"
                )
                raise BookingConflictError("The unit is already booked for the selected dates.")

            booking = Booking.objects.create(
                listing_kind=unit_ref.kind,
                listing_id=unit_ref.unit_id,
                user=user,
                start_date=dates.start_date,
                end_date=dates.end_date,
                amount=unit.rent_amount,
                currency=unit.currency,
            )
    except DatabaseError as exc:
        logger.error(f"Storage failure while creating booking on {unit_ref}: {exc}", exc_info=True)
        raise InternalError("Could not store the booking", code="booking_storage_failure")

    logger.info(f"Booking {booking.pk} created on {unit_ref} for {dates} by renter {user.pk}")
    return booking


def _release_review_if_unclaimed(unit_ref: UnitRef, cancelled_booking_id: int) -> bool:
    """
    Close the flat's handover review unless another paid booking still waits on it.

    The caller holds the unit row lock, which payment confirmation also
    takes before opening a review.
    """

    still_claimed = (
        Booking.objects
        .filter(
            listing_kind=unit_ref.kind,
            listing_id=unit_ref.unit_id,
            status=Booking.Status.CONFIRMED,
        )
        .exclude(pk=cancelled_booking_id)
        .exists()
    )
    if still_claimed:
        logger.info(f"Review on {unit_ref} stays open for another confirmed booking")
        return False
    return cas_review_status(unit_ref, ReviewStatus.UNDER_REVIEW, ReviewStatus.NONE)


def cancel_booking(*, booking_id: int, user) -> Booking:
    """
    Cancel a booking on behalf of its renter.

    Pending and confirmed bookings can be cancelled; cancelling twice is a
    no-op. Cancelling a confirmed flat booking releases the unit from
    handover review unless another confirmed booking still waits on it. Payment state is deliberately left alone: a capture
    that arrives later is flagged by the reconciliation engine.
    """

    with DjangoUnitOfWork() as uow:
        booking = lock_queryset_if_possible(Booking.objects.filter(pk=booking_id)).first()
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", code="booking_not_found")
        if booking.user_id != user.pk:
            raise ClientError(
                "Only the renter who made the booking can cancel it.",
                code="not_booking_owner",
                http_status=403,
            )
        if booking.status == Booking.Status.CANCELLED:
            return booking
        if not booking.is_cancellable:
            raise ConflictError(
                f"Booking {booking_id} is {booking.status} and can no longer be cancelled.",
                code="booking_not_cancellable",
            )

        was_confirmed = booking.status == Booking.Status.CONFIRMED
        now = timezone.now()
        updated = (
            Booking.objects
            .filter(pk=booking.pk, status__in=[Booking.Status.PENDING, Booking.Status.CONFIRMED])
            .update(status=Booking.Status.CANCELLED, cancelled_at=now, updated_at=now)
        )
        booking.refresh_from_db()
        if not updated:
            if booking.status == Booking.Status.CANCELLED:
                return booking
            raise ConflictError(
                f"Booking {booking_id} changed to {booking.status} while cancelling.",
                code="booking_not_cancellable",
            )

        unit_ref = booking.unit_ref
        try:
            owner_id = get_unit(unit_ref, lock=True).owner_id
        except NotFoundError:
            owner_id = None
            logger.warning(f"Booking {booking.pk} cancelled but unit {unit_ref} no longer exists")

        if was_confirmed and unit_ref.is_flat and owner_id is not None:
            _release_review_if_unclaimed(unit_ref, booking.pk)

        if owner_id is not None:
            uow.add_event(
                BookingCancelled(
                    aggregate_id=booking.pk,
                    booking_id=booking.pk,
                    unit_kind=unit_ref.kind,
                    unit_id=unit_ref.unit_id,
                    owner_id=owner_id,
                    renter_id=booking.user_id,
                    was_confirmed=was_confirmed,
                )
            )

    logger.info(f"Booking {booking.pk} cancelled by renter {user.pk}")
    return booking
