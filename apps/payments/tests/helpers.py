"""Shared fixtures for payment tests."""

from __future__ import annotations

import hashlib
import hmac
import json
from datetime import date, timedelta
from unittest.mock import MagicMock

from apps.bookings.models import Booking
from apps.listings.models import FlatListing, PGListing
from apps.payments.models import Payment
from apps.users.models import User

RAZORPAY_KEY_SECRET = "rzp_test_secret"
RAZORPAY_WEBHOOK_SECRET = "rzp_webhook_secret"
CASHFREE_SECRET = "cf_test_secret"


def razorpay_signature(payload: bytes, secret: str = RAZORPAY_KEY_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def provider_response(status_code: int = 200, payload=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = json.dumps(payload) if payload is not None else ""
    return response


class PaymentFixturesMixin:
    """Renter, owner, one admin, a flat and a pending booking on it."""

    def setUp(self) -> None:
        super().setUp()
        self.renter = User.objects.create_user(
            email="renter@example.com",
            password="pass",
            phone="+919800000001",
            username="Asha",
        )
        self.owner = User.objects.create_user(email="owner@example.com", password="pass", role=User.Role.OWNER)
        self.admin = User.objects.create_user(email="admin@example.com", password="pass", role=User.Role.ADMIN)
        self.flat = FlatListing.objects.create(
            owner=self.owner,
            title="1BHK Koramangala",
            city="Bengaluru",
            colony="Koramangala",
            rent_amount=1_200_000,
        )
        self.booking = self.make_booking(self.flat)

    def make_booking(self, unit, status=Booking.Status.PENDING, user=None, offset_days=1) -> Booking:
        start = date.today() + timedelta(days=offset_days)
        return Booking.objects.create(
            listing_kind=unit.kind,
            listing_id=unit.pk,
            user=user or self.renter,
            start_date=start,
            end_date=start + timedelta(days=30),
            status=status,
            amount=unit.rent_amount,
        )

    def make_pg(self) -> PGListing:
        return PGListing.objects.create(owner=self.owner, title="PG Rooms", city="Pune", rent_amount=600_000)

    def make_payment(self, booking=None, suffix="1", provider=Payment.Provider.RAZORPAY, **fields) -> Payment:
        booking = booking or self.booking
        order_ref = f"order_{booking.pk}_170000000000{suffix}"
        defaults = {
            "booking": booking,
            "user": booking.user,
            "amount": booking.amount,
            "provider": provider,
            "order_ref": order_ref,
            "provider_order_id": order_ref if provider == Payment.Provider.CASHFREE else f"order_RZP{booking.pk}x{suffix}",
        }
        defaults.update(fields)
        return Payment.objects.create(**defaults)
