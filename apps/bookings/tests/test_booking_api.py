"""Integration tests for booking API endpoints."""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import patch

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.listings.models import FlatListing, PGListing, ReviewStatus
from apps.notifications.models import Notification
from apps.users.models import User


class BookingAPITests(APITestCase):
    """Covers creation, overlap conflicts and cancellation of bookings."""

    def setUp(self) -> None:
        self.renter = User.objects.create_user(
            email="renter@example.com",
            password="RenterPass123",
            role=User.Role.RENTER,
        )
        self.owner = User.objects.create_user(
            email="owner@example.com",
            password="OwnerPass123",
            role=User.Role.OWNER,
        )
        self.flat = FlatListing.objects.create(
            owner=self.owner,
            title="2BHK near the metro",
            city="Pune",
            colony="Baner",
            house_number="14B",
            rent_amount=1_500_000,
        )
        self.client.force_authenticate(self.renter)
        self.list_url = reverse("booking-list")
        self.start = date.today() + timedelta(days=1)

    def _payload(self, start: date, end: date, listing=None) -> dict[str, object]:
        listing = listing or self.flat
        return {
            "listing_kind": listing.kind,
            "listing_id": listing.pk,
            "start_date": str(start),
            "end_date": str(end),
        }

    def _booking(self, start: date, end: date, status_value=Booking.Status.PENDING, user=None) -> Booking:
        return Booking.objects.create(
            listing_kind=self.flat.kind,
            listing_id=self.flat.pk,
            user=user or self.renter,
            start_date=start,
            end_date=end,
            status=status_value,
            amount=self.flat.rent_amount,
        )

    def test_renter_can_create_booking(self) -> None:
        response = self.client.post(
            self.list_url, self._payload(self.start, self.start + timedelta(days=30)), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        booking = Booking.objects.get()
        self.assertEqual(booking.user, self.renter)
        self.assertEqual(booking.status, Booking.Status.PENDING)
        self.assertEqual(booking.amount, self.flat.rent_amount)
        self.assertEqual(response.data["nights"], 30)

    def test_pg_listing_can_be_booked(self) -> None:
        pg = PGListing.objects.create(owner=self.owner, title="Girls PG", city="Pune", rent_amount=800_000)

        response = self.client.post(
            self.list_url, self._payload(self.start, self.start + timedelta(days=7), listing=pg), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["listing_kind"], "pg")

    def test_prevent_double_booking_on_overlap(self) -> None:
        first = self.client.post(
            self.list_url, self._payload(self.start, self.start + timedelta(days=3)), format="json"
        )
        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)

        conflict = self.client.post(
            self.list_url,
            self._payload(self.start + timedelta(days=1), self.start + timedelta(days=4)),
            format="json",
        )

        self.assertEqual(conflict.status_code, status.HTTP_409_CONFLICT, conflict.data)
        self.assertEqual(conflict.data["code"], "booking_conflict")
        self.assertEqual(Booking.objects.count(), 1)

    def test_back_to_back_bookings_are_allowed(self) -> None:
        self._booking(self.start, self.start + timedelta(days=3))

        response = self.client.post(
            self.list_url,
            self._payload(self.start + timedelta(days=3), self.start + timedelta(days=5)),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(Booking.objects.count(), 2)

    def test_cancelled_booking_frees_the_dates(self) -> None:
        self._booking(self.start, self.start + timedelta(days=3), status_value=Booking.Status.CANCELLED)

        response = self.client.post(
            self.list_url, self._payload(self.start, self.start + timedelta(days=3)), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)

    def test_booked_unit_is_rejected(self) -> None:
        FlatListing.objects.filter(pk=self.flat.pk).update(booked=True)

        response = self.client.post(
            self.list_url, self._payload(self.start, self.start + timedelta(days=3)), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "unit_booked")
        self.assertFalse(Booking.objects.exists())

    def test_end_date_must_follow_start_date(self) -> None:
        response = self.client.post(self.list_url, self._payload(self.start, self.start), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Booking.objects.exists())

    def test_unknown_unit_returns_404(self) -> None:
        payload = self._payload(self.start, self.start + timedelta(days=2))
        payload["listing_id"] = self.flat.pk + 1000

        response = self.client.post(self.list_url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["code"], "unit_not_found")

    def test_stale_availability_read_still_loses_the_race(self) -> None:
        # Another renter's booking lands after the advisory read said "free".
        other = User.objects.create_user(email="other@example.com", password="OtherPass123")
        self._booking(self.start, self.start + timedelta(days=3), user=other)

        with patch("apps.bookings.services.is_available", return_value=True):
            response = self.client.post(
                self.list_url,
                self._payload(self.start + timedelta(days=1), self.start + timedelta(days=2)),
                format="json",
            )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(Booking.objects.count(), 1)

    def test_list_shows_only_own_bookings(self) -> None:
        other = User.objects.create_user(email="other@example.com", password="OtherPass123")
        mine = self._booking(self.start, self.start + timedelta(days=2))
        self._booking(self.start + timedelta(days=5), self.start + timedelta(days=7), user=other)

        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item["id"] for item in response.data], [mine.pk])

    def test_list_filters_by_status(self) -> None:
        self._booking(self.start, self.start + timedelta(days=2))
        cancelled = self._booking(
            self.start + timedelta(days=5), self.start + timedelta(days=7), status_value=Booking.Status.CANCELLED
        )

        response = self.client.get(self.list_url, {"status": "cancelled"})

        self.assertEqual([item["id"] for item in response.data], [cancelled.pk])

    def test_renter_can_cancel_and_owner_is_notified(self) -> None:
        booking = self._booking(self.start, self.start + timedelta(days=3))

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(reverse("booking-detail", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], Booking.Status.CANCELLED)
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.CANCELLED)
        self.assertIsNotNone(booking.cancelled_at)

        notification = Notification.objects.get()
        self.assertEqual(notification.user, self.owner)
        self.assertEqual(notification.type, Notification.Type.BOOKING_CANCELLED)
        self.assertEqual(notification.related_booking, booking)

    def test_cancelling_twice_is_a_no_op(self) -> None:
        booking = self._booking(self.start, self.start + timedelta(days=3))
        url = reverse("booking-detail", args=[booking.pk])

        with self.captureOnCommitCallbacks(execute=True):
            self.client.delete(url)
        with self.captureOnCommitCallbacks(execute=True):
            second = self.client.delete(url)

        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(Notification.objects.count(), 1)

    def test_only_the_renter_can_cancel(self) -> None:
        other = User.objects.create_user(email="other@example.com", password="OtherPass123")
        booking = self._booking(self.start, self.start + timedelta(days=3), user=other)

        response = self.client.delete(reverse("booking-detail", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "not_booking_owner")
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.PENDING)

    def test_completed_booking_cannot_be_cancelled(self) -> None:
        booking = self._booking(self.start, self.start + timedelta(days=3), status_value=Booking.Status.COMPLETED)

        response = self.client.delete(reverse("booking-detail", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "booking_not_cancellable")

    def test_cancelling_confirmed_flat_booking_releases_review(self) -> None:
        FlatListing.objects.filter(pk=self.flat.pk).update(review_status=ReviewStatus.UNDER_REVIEW)
        booking = self._booking(self.start, self.start + timedelta(days=3), status_value=Booking.Status.CONFIRMED)

        response = self.client.delete(reverse("booking-detail", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.flat.refresh_from_db()
        self.assertEqual(self.flat.review_status, ReviewStatus.NONE)

    def test_unknown_booking_cancel_returns_404(self) -> None:
        response = self.client.delete(reverse("booking-detail", args=[99999]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_anonymous_requests_are_rejected(self) -> None:
        self.client.force_authenticate(None)

        response = self.client.get(self.list_url)

        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))
