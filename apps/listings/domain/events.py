"""
Listing Domain Events

Published after successful transaction commits.
"""

from dataclasses import dataclass

from shared.domain.base import DomainEvent


@dataclass
class HandoverConfirmed(DomainEvent):
    """
    Event: The assigned broker handed a flat over to its renter

    Triggers:
    - Notify admins that owner and broker payouts are due
    """
    unit_id: int
    broker_id: int
    label: str
    booking_id: int | None = None
