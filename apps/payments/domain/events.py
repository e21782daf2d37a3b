"""
Payment Domain Events

Published after successful transaction commits.
"""

from dataclasses import dataclass

from shared.domain.base import DomainEvent


@dataclass
class PaymentConfirmed(DomainEvent):
    """
    Event: A provider capture confirmed a pending booking

    Triggers:
    - Notify the unit owner
    - Notify admins when a flat went under review
    """
    payment_id: int
    booking_id: int
    unit_kind: str
    unit_id: int
    owner_id: int | None
    renter_id: int
    amount: int
    currency: str
    trigger: str
    review_opened: bool = False


@dataclass
class PaymentAnomalyDetected(DomainEvent):
    """
    Event: Money was captured for a booking that cannot take it

    Either the booking was cancelled before the capture arrived, or another
    payment already confirmed it. The charge needs a manual refund.
    """
    payment_id: int
    booking_id: int
    anomaly: str
    provider: str
    provider_payment_id: str
    amount: int
    currency: str
