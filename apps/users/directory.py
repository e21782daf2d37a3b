"""User directory consulted by the booking and payment core."""

from __future__ import annotations

from django.db.models import Q, QuerySet  # type: ignore

from shared.domain.exceptions import NotFoundError

from .models import CustomUser

# Verification states in which a renter may not pay yet.
PAYMENT_BLOCKING_STATUSES = (
    CustomUser.VerificationStatus.PENDING,
    CustomUser.VerificationStatus.UNDER_REVIEW,
)


def get_user(user_id: int) -> CustomUser:
    try:
        return CustomUser.objects.get(pk=user_id)
    except CustomUser.DoesNotExist:
        raise NotFoundError(f"User {user_id} not found", code="user_not_found")


def list_admins() -> QuerySet[CustomUser]:
    """Active administrator accounts, in a stable order."""

    return (
        CustomUser.objects.filter(is_active=True)
        .filter(Q(role=CustomUser.Role.ADMIN) | Q(is_superuser=True))
        .order_by("pk")
    )


def get_verification_status(user_id: int) -> str:
    status = (
        CustomUser.objects.filter(pk=user_id)
        .values_list("verification_status", flat=True)
        .first()
    )
    if status is None:
        raise NotFoundError(f"User {user_id} not found", code="user_not_found")
    return status


def is_blocked_from_paying(user_id: int) -> bool:
    return get_verification_status(user_id) in PAYMENT_BLOCKING_STATUSES
