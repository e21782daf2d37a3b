"""
Booking Domain Events

Published after successful transaction commits.
"""

from dataclasses import dataclass

from shared.domain.base import DomainEvent


@dataclass
class BookingCancelled(DomainEvent):
    """
    Event: A renter cancelled a booking

    Triggers:
    - Notify the unit owner
    """
    booking_id: int
    unit_kind: str
    unit_id: int
    owner_id: int
    renter_id: int
    was_confirmed: bool
