"""Tests for notification fanout, delivery tasks and the notifications API."""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import patch

from django.core import mail
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.listings.models import FlatListing
from apps.notifications import services
from apps.notifications.models import Notification
from apps.notifications.tasks import purge_old_notifications, send_notification_email
from apps.payments.domain.events import PaymentAnomalyDetected, PaymentConfirmed
from apps.users.models import User


class NotifyTests(TestCase):
    def setUp(self) -> None:
        self.owner = User.objects.create_user(email="owner@example.com", password="pass", role=User.Role.OWNER)
        self.admin = User.objects.create_user(email="admin@example.com", password="pass", role=User.Role.ADMIN)
        self.superuser = User.objects.create_superuser(email="root@example.com", password="pass")
        flat = FlatListing.objects.create(owner=self.owner, title="Flat", city="Pune", rent_amount=250_000)
        self.booking = Booking.objects.create(
            listing_kind="flat",
            listing_id=flat.pk,
            user=self.owner,
            start_date=date(2026, 5, 1),
            end_date=date(2026, 6, 1),
            amount=250_000,
        )

    def test_notify_stores_and_emails(self) -> None:
        notification = services.notify(self.owner.pk, "Hello", Notification.Type.PAYMENT_RECEIVED)

        self.assertIsNotNone(notification)
        self.assertFalse(notification.is_read)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["owner@example.com"])
        self.assertEqual(mail.outbox[0].body, "Hello")

    def test_notify_never_raises(self) -> None:
        with patch.object(Notification.objects, "create", side_effect=DatabaseError("down")):
            result = services.notify(self.owner.pk, "Hello", Notification.Type.PAYMENT_RECEIVED)

        self.assertIsNone(result)

    def test_email_failure_keeps_the_notification(self) -> None:
        with patch("apps.notifications.services.send_mail", side_effect=OSError("smtp down")):
            notification = services.notify(self.owner.pk, "Hello", Notification.Type.PAYMENT_RECEIVED)

        self.assertTrue(Notification.objects.filter(pk=notification.pk).exists())

    def test_admins_include_superusers_but_not_inactive_accounts(self) -> None:
        User.objects.create_user(email="old@example.com", password="pass", role=User.Role.ADMIN, is_active=False)

        created = services.notify_admins("Check this", Notification.Type.PAYOUT_DUE)

        self.assertEqual({n.user_id for n in created}, {self.admin.pk, self.superuser.pk})

    def _payment_confirmed(self, review_opened: bool) -> PaymentConfirmed:
        return PaymentConfirmed(
            payment_id=999,
            booking_id=self.booking.pk,
            unit_kind="flat",
            unit_id=self.booking.listing_id,
            owner_id=self.owner.pk,
            renter_id=self.owner.pk,
            amount=250_000,
            currency="INR",
            trigger="webhook",
            review_opened=review_opened,
        )

    def test_payment_fanout_without_review_only_tells_the_owner(self) -> None:
        created = services.fanout_payment_confirmed(self._payment_confirmed(review_opened=False))

        self.assertEqual([n.user_id for n in created], [self.owner.pk])
        self.assertIn("2,500.00 INR", created[0].message)

    def test_payment_fanout_with_review_tells_admins(self) -> None:
        created = services.fanout_payment_confirmed(self._payment_confirmed(review_opened=True))

        types = sorted((n.user_id, n.type) for n in created)
        self.assertEqual(
            types,
            sorted(
                [
                    (self.owner.pk, Notification.Type.PAYMENT_RECEIVED),
                    (self.admin.pk, Notification.Type.FLAT_UNDER_REVIEW),
                    (self.superuser.pk, Notification.Type.FLAT_UNDER_REVIEW),
                ]
            ),
        )

    def test_anomaly_fanout_asks_admins_for_a_refund(self) -> None:
        created = services.fanout_payment_anomaly(
            PaymentAnomalyDetected(
                payment_id=5,
                booking_id=self.booking.pk,
                anomaly="cancelled_booking",
                provider="razorpay",
                provider_payment_id="pay_9",
                amount=100_000,
                currency="INR",
            )
        )

        self.assertEqual(len(created), 2)
        self.assertIn("Refund required", created[0].message)
        self.assertIn("already cancelled", created[0].message)


class NotificationTaskTests(TestCase):
    def setUp(self) -> None:
        self.user = User.objects.create_user(email="user@example.com", password="pass")

    def _notification(self, **fields) -> Notification:
        return Notification.objects.create(
            user=self.user, type=Notification.Type.BOOKING_CANCELLED, message="Cancelled", **fields
        )

    def test_send_email_for_missing_notification(self) -> None:
        self.assertFalse(send_notification_email(123456))
        self.assertEqual(mail.outbox, [])

    def test_send_email_uses_type_as_subject(self) -> None:
        notification = self._notification()

        self.assertTrue(send_notification_email(notification.pk))
        self.assertEqual(mail.outbox[0].subject, "Booking cancelled")

    @override_settings(NOTIFICATION_RETENTION_DAYS=21)
    def test_purge_removes_only_old_notifications(self) -> None:
        old = self._notification()
        recent = self._notification()
        Notification.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=22))
        Notification.objects.filter(pk=recent.pk).update(created_at=timezone.now() - timedelta(days=20))

        self.assertEqual(purge_old_notifications(), 1)
        self.assertEqual(list(Notification.objects.values_list("pk", flat=True)), [recent.pk])


class NotificationAPITests(APITestCase):
    def setUp(self) -> None:
        self.user = User.objects.create_user(email="user@example.com", password="pass")
        self.other = User.objects.create_user(email="other@example.com", password="pass")
        self.mine = Notification.objects.create(
            user=self.user, type=Notification.Type.PAYMENT_RECEIVED, message="Paid"
        )
        self.theirs = Notification.objects.create(
            user=self.other, type=Notification.Type.PAYMENT_RECEIVED, message="Paid"
        )
        self.client.force_authenticate(self.user)

    def test_list_shows_only_own_notifications(self) -> None:
        response = self.client.get(reverse("notification-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item["id"] for item in response.data], [self.mine.pk])

    def test_filter_unread(self) -> None:
        Notification.objects.filter(pk=self.mine.pk).update(is_read=True)

        response = self.client.get(reverse("notification-list"), {"is_read": "false"})

        self.assertEqual(response.data, [])

    def test_mark_read(self) -> None:
        response = self.client.post(reverse("notification-mark-read", args=[self.mine.pk]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["is_read"])
        self.mine.refresh_from_db()
        self.assertTrue(self.mine.is_read)

    def test_cannot_mark_someone_elses_notification(self) -> None:
        response = self.client.post(reverse("notification-mark-read", args=[self.theirs.pk]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.theirs.refresh_from_db()
        self.assertFalse(self.theirs.is_read)
