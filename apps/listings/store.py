"""Listing store: unit lookup and guarded writes on unit state.

Two writers touch unit state, the payment reconciliation engine and the
broker handover. Neither ever overwrites blindly: the review status is a
small state machine (``none -> under_review -> confirmed``, plus the
release ``under_review -> none`` when a confirmed flat booking is
cancelled) and every transition is a conditional UPDATE that only
applies when the row still holds the expected predecessor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.base import ValueObject
from shared.domain.exceptions import NotFoundError, ValidationError

from .models import BaseListing, FlatListing, PGListing, ReviewStatus, UnitKind

logger = logging.getLogger(__name__)

MODEL_BY_KIND: dict[str, type[BaseListing]] = {
    UnitKind.FLAT: FlatListing,
    UnitKind.PG: PGListing,
}

REVIEW_TRANSITIONS = {
    (ReviewStatus.NONE, ReviewStatus.UNDER_REVIEW),
    (ReviewStatus.UNDER_REVIEW, ReviewStatus.CONFIRMED),
    (ReviewStatus.UNDER_REVIEW, ReviewStatus.NONE),
}


@dataclass(frozen=True)
class UnitRef(ValueObject):
    """Address of a rentable unit: kind tag plus primary key."""

    kind: str
    unit_id: int

    def __post_init__(self):
        if self.kind not in MODEL_BY_KIND:
            raise ValidationError(f"Unknown unit kind: {self.kind!r}", code="invalid_unit_kind")

    @property
    def is_flat(self) -> bool:
        return self.kind == UnitKind.FLAT

    def __str__(self):
        return f"{self.kind}:{self.unit_id}"


def lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def get_unit(ref: UnitRef, *, lock: bool = False) -> BaseListing:
    """Load a unit; with ``lock=True`` the row is locked for the current transaction."""

    queryset = MODEL_BY_KIND[ref.kind].objects.select_related("owner")
    if lock:
        queryset = lock_queryset_if_possible(queryset)
    try:
        return queryset.get(pk=ref.unit_id)
    except MODEL_BY_KIND[ref.kind].DoesNotExist:
        raise NotFoundError(f"Unit {ref} not found", code="unit_not_found")


def set_booked_flag(ref: UnitRef, booked: bool) -> bool:
    """Set the availability gate. Returns True when the stored value changed."""

    updated = (
        MODEL_BY_KIND[ref.kind].objects
        .filter(pk=ref.unit_id)
        .exclude(booked=booked)
        .update(booked=booked, updated_at=timezone.now())
    )
    if updated:
        logger.info(f"Unit {ref} booked flag set to {booked}")
    return bool(updated)


def cas_review_status(ref: UnitRef, expected: str, new: str) -> bool:
    """
    Compare-and-set the flat review status.

    Returns True when the transition was applied, False when the row no
    longer holds ``expected`` (another writer got there first).
    """

    if not ref.is_flat:
        raise ValidationError(
            f"Review status only exists on flats, got {ref}",
            code="review_status_not_supported",
        )
    if (expected, new) not in REVIEW_TRANSITIONS:
        raise ValidationError(
            f"Illegal review status transition {expected} -> {new}",
            code="illegal_review_transition",
        )

    updated = (
        FlatListing.objects
        .filter(pk=ref.unit_id, review_status=expected)
        .update(review_status=new, updated_at=timezone.now())
    )
    if updated:
        logger.info(f"Unit {ref} review status {expected} -> {new}")
    else:
        logger.warning(f"Unit {ref} review status is no longer {expected}; {new} not applied")
    return bool(updated)
