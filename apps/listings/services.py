"""Broker handover: the second writer on flat state after payment reconciliation."""

from __future__ import annotations

import logging

from django.utils import timezone  # type: ignore

from apps.bookings.models import Booking
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import ClientError, ConflictError

from .domain.events import HandoverConfirmed
from .models import FlatListing, ReviewStatus, UnitKind
from .store import UnitRef, cas_review_status, get_unit, set_booked_flag

logger = logging.getLogger(__name__)


def confirm_handover(*, listing_id: int, broker) -> FlatListing:
    """
    Confirm that the assigned broker handed the flat over to its renter.

    Moves the flat ``under_review -> confirmed``, closes it for further
    bookings and completes the booking that paid for it. Admins are
    notified after commit that payouts are due.
    """

    if not broker.is_broker():
        raise ClientError("Broker role required.", code="broker_role_required", http_status=403)

    ref = UnitRef(kind=UnitKind.FLAT, unit_id=listing_id)

    with DjangoUnitOfWork() as uow:
        flat = get_unit(ref, lock=True)
        if flat.assigned_broker_id != broker.pk:
            raise ClientError(
                "You are not assigned to this listing.",
                code="broker_not_assigned",
                http_status=403,
            )
        if not cas_review_status(ref, ReviewStatus.UNDER_REVIEW, ReviewStatus.CONFIRMED):
            raise ConflictError(
                f"Flat {listing_id} is not under review.",
                code="listing_not_under_review",
            )
        set_booked_flag(ref, True)

        booking = (
            Booking.objects
            .filter(listing_kind=UnitKind.FLAT, listing_id=listing_id, status=Booking.Status.CONFIRMED)
            .order_by("-created_at", "-pk")
            .first()
        )
        booking_id = None
        if booking is not None:
            completed = (
                Booking.objects
                .filter(pk=booking.pk, status=Booking.Status.CONFIRMED)
                .update(status=Booking.Status.COMPLETED, updated_at=timezone.now())
            )
            if completed:
                booking_id = booking.pk
        else:
            logger.warning(f"Handover on {ref} found no confirmed booking to complete")

        label = ", ".join(part for part in (flat.house_number, flat.colony, flat.city) if part) or flat.title
        uow.add_event(
            HandoverConfirmed(
                aggregate_id=listing_id,
                unit_id=listing_id,
                broker_id=broker.pk,
                label=label,
                booking_id=booking_id,
            )
        )

    logger.info(f"Broker {broker.pk} confirmed handover of {ref}")
    flat.refresh_from_db()
    return flat
