"""Tests for the broker handover and the guarded unit writes it relies on."""

from __future__ import annotations

from datetime import date, timedelta

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.listings.models import FlatListing, PGListing, ReviewStatus
from apps.listings.store import UnitRef, cas_review_status, get_unit, set_booked_flag
from apps.notifications.models import Notification
from apps.users.models import User
from shared.domain.exceptions import NotFoundError, ValidationError


class ConfirmHandoverAPITests(APITestCase):
    def setUp(self) -> None:
        self.owner = User.objects.create_user(email="owner@example.com", password="pass", role=User.Role.OWNER)
        self.renter = User.objects.create_user(email="renter@example.com", password="pass")
        self.broker = User.objects.create_user(email="broker@example.com", password="pass", role=User.Role.BROKER)
        self.admin = User.objects.create_user(email="admin@example.com", password="pass", role=User.Role.ADMIN)
        self.flat = FlatListing.objects.create(
            owner=self.owner,
            title="3BHK",
            city="Bengaluru",
            colony="Indiranagar",
            house_number="42",
            rent_amount=2_000_000,
            review_status=ReviewStatus.UNDER_REVIEW,
            assigned_broker=self.broker,
        )
        start = date.today() + timedelta(days=3)
        self.booking = Booking.objects.create(
            listing_kind="flat",
            listing_id=self.flat.pk,
            user=self.renter,
            start_date=start,
            end_date=start + timedelta(days=30),
            status=Booking.Status.CONFIRMED,
            amount=self.flat.rent_amount,
        )
        self.url = reverse("flat-confirm-handover", args=[self.flat.pk])

    def test_assigned_broker_confirms_handover(self) -> None:
        self.client.force_authenticate(self.broker)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["listing"]["review_status"], ReviewStatus.CONFIRMED)
        self.flat.refresh_from_db()
        self.assertEqual(self.flat.review_status, ReviewStatus.CONFIRMED)
        self.assertTrue(self.flat.booked)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.COMPLETED)

        notification = Notification.objects.get()
        self.assertEqual(notification.user, self.admin)
        self.assertEqual(notification.type, Notification.Type.PAYOUT_DUE)
        self.assertIn("42, Indiranagar, Bengaluru", notification.message)

    def test_unassigned_broker_is_forbidden(self) -> None:
        other_broker = User.objects.create_user(
            email="broker2@example.com", password="pass", role=User.Role.BROKER
        )
        self.client.force_authenticate(other_broker)

        response = self.client.post(self.url)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "broker_not_assigned")
        self.flat.refresh_from_db()
        self.assertEqual(self.flat.review_status, ReviewStatus.UNDER_REVIEW)
        self.assertFalse(self.flat.booked)

    def test_non_broker_is_forbidden(self) -> None:
        self.client.force_authenticate(self.renter)

        response = self.client.post(self.url)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["code"], "broker_role_required")

    def test_flat_not_under_review_is_a_conflict(self) -> None:
        FlatListing.objects.filter(pk=self.flat.pk).update(review_status=ReviewStatus.NONE)
        self.client.force_authenticate(self.broker)

        response = self.client.post(self.url)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "listing_not_under_review")
        self.flat.refresh_from_db()
        self.assertFalse(self.flat.booked)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.Status.CONFIRMED)

    def test_second_confirmation_is_rejected(self) -> None:
        self.client.force_authenticate(self.broker)
        self.client.post(self.url)

        response = self.client.post(self.url)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class ListingStoreTests(TestCase):
    def setUp(self) -> None:
        self.owner = User.objects.create_user(email="owner@example.com", password="pass", role=User.Role.OWNER)
        self.flat = FlatListing.objects.create(owner=self.owner, title="Flat", city="Pune", rent_amount=100)
        self.pg = PGListing.objects.create(owner=self.owner, title="PG", city="Pune", rent_amount=100)

    def test_cas_review_status_applies_only_from_expected_state(self) -> None:
        ref = self.flat.unit_ref

        self.assertTrue(cas_review_status(ref, ReviewStatus.NONE, ReviewStatus.UNDER_REVIEW))
        self.assertFalse(cas_review_status(ref, ReviewStatus.NONE, ReviewStatus.UNDER_REVIEW))
        self.flat.refresh_from_db()
        self.assertEqual(self.flat.review_status, ReviewStatus.UNDER_REVIEW)

    def test_illegal_transition_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            cas_review_status(self.flat.unit_ref, ReviewStatus.CONFIRMED, ReviewStatus.NONE)

    def test_pg_has_no_review_status(self) -> None:
        with self.assertRaises(ValidationError):
            cas_review_status(self.pg.unit_ref, ReviewStatus.NONE, ReviewStatus.UNDER_REVIEW)

    def test_set_booked_flag_reports_changes(self) -> None:
        self.assertTrue(set_booked_flag(self.pg.unit_ref, True))
        self.assertFalse(set_booked_flag(self.pg.unit_ref, True))
        self.assertTrue(get_unit(self.pg.unit_ref).booked)

    def test_get_unit_unknown_id(self) -> None:
        with self.assertRaises(NotFoundError):
            get_unit(UnitRef(kind="flat", unit_id=self.flat.pk + 100))

    def test_unit_ref_rejects_unknown_kind(self) -> None:
        with self.assertRaises(ValidationError):
            UnitRef(kind="villa", unit_id=1)
