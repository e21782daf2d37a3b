"""Booking availability checker.

Two half-open ranges ``[s1, e1)`` and ``[s2, e2)`` overlap iff
``s1 < e2 and s2 < e1``, so back-to-back stays (``e1 == s2``) are allowed.
Every non-cancelled booking of the unit takes part in the check.

The read-time check is advisory. ``services.create_booking`` repeats it
under a row lock right before inserting, which is what actually keeps
concurrent writers from double-booking a unit.
"""

from __future__ import annotations

from datetime import date

from django.db.models import Q, QuerySet  # type: ignore

from apps.listings.store import UnitRef, lock_queryset_if_possible
from shared.domain.value_objects import DateRange

from .models import Booking


def conflicting_bookings(
    unit_ref: UnitRef,
    start_date: date,
    end_date: date,
    *,
    exclude_booking_id: int | None = None,
    lock: bool = False,
) -> QuerySet[Booking]:
    """Non-cancelled bookings of the unit whose range overlaps the requested one."""

    dates = DateRange(start_date, end_date)

    queryset = (
        Booking.objects.filter(listing_kind=unit_ref.kind, listing_id=unit_ref.unit_id)
        .exclude(status=Booking.Status.CANCELLED)
        .filter(Q(start_date__lt=dates.end_date) & Q(end_date__gt=dates.start_date))
    )
    if exclude_booking_id is not None:
        queryset = queryset.exclude(pk=exclude_booking_id)
    if lock:
        queryset = lock_queryset_if_possible(queryset)
    return queryset


def is_available(
    unit_ref: UnitRef,
    start_date: date,
    end_date: date,
    exclude_booking_id: int | None = None,
) -> bool:
    return not conflicting_bookings(
        unit_ref,
        start_date,
        end_date,
        exclude_booking_id=exclude_booking_id,
    ).exists()
