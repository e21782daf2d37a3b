"""
Common Value Objects

Value objects used across multiple domains:
- Money: A monetary amount in minor currency units (paise, cents)
- DateRange: A half-open range of dates [start_date, end_date)
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from shared.domain.base import ValueObject
from shared.domain.exceptions import ValidationError

SUPPORTED_CURRENCIES = ('INR', 'USD', 'EUR')


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Amounts are kept as integers in minor units so that provider payloads
    (which use paise) and stored values never go through floats.
    """
    amount: int
    currency: str = 'INR'

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValidationError("Amount must be an integer number of minor units")
        if self.amount <= 0:
            raise ValidationError("Amount must be positive")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValidationError(f"Unsupported currency: {self.currency}")

    @property
    def major(self) -> Decimal:
        """Amount in major units (rupees), as providers like Cashfree expect"""
        return (Decimal(self.amount) / Decimal(100)).quantize(Decimal('0.01'))

    def __str__(self):
        return f"{self.major:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    Represents a range from start_date (inclusive) to end_date (exclusive).
    Used for booking periods and availability checks.
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        if self.start_date >= self.end_date:
            raise ValidationError(
                f"Start date ({self.start_date}) must be before end date ({self.end_date})"
            )

    def overlaps_with(self, other: 'DateRange') -> bool:
        """
        Check if this range overlaps with another

        end_date is exclusive, so adjacent ranges don't overlap.

        Examples:
            - DateRange(1, 10) overlaps with DateRange(5, 8) -> True
            - DateRange(1, 10) overlaps with DateRange(10, 20) -> False (adjacent)
        """
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")

        # Overlap formula: start1 < end2 AND start2 < end1
        return (self.start_date < other.end_date and
                other.start_date < self.end_date)

    def __len__(self) -> int:
        """Number of nights in this range"""
        return (self.end_date - self.start_date).days

    def __str__(self):
        return f"{self.start_date.strftime('%d.%m.%Y')} - {self.end_date.strftime('%d.%m.%Y')}"

    def __repr__(self):
        return f"DateRange({self.start_date}, {self.end_date})"
