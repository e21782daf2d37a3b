"""Reconciliation engine tests."""

from __future__ import annotations

from unittest.mock import patch

from django.core import mail
from django.db import DatabaseError
from django.test import TestCase

from apps.bookings.models import Booking
from apps.bookings.services import cancel_booking
from apps.listings.models import FlatListing, ReviewStatus
from apps.listings.services import confirm_handover
from apps.notifications.models import Notification
from apps.payments import reconciliation
from apps.payments.models import Payment, PaymentEvent
from apps.payments.reconciliation import Outcome, apply_confirmed_payment, apply_failed_payment
from apps.users.models import User
from shared.domain.exceptions import ClientError, ConflictError, InternalError, NotFoundError

from .helpers import PaymentFixturesMixin

WEBHOOK = PaymentEvent.Trigger.WEBHOOK
VERIFY = PaymentEvent.Trigger.VERIFY


class ApplyConfirmedPaymentTests(PaymentFixturesMixin, TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.payment = self.make_payment()

    def _confirm(self, payment=None, provider_payment_id="pay_1", trigger=WEBHOOK, **kwargs):
        payment = payment or self.payment
        with self.captureOnCommitCallbacks(execute=True):
            return apply_confirmed_payment(payment.provider_order_id, provider_payment_id, trigger, **kwargs)

    def test_confirms_booking_payment_and_flat_together(self) -> None:
        result = self._confirm()

        self.assertEqual(result.outcome, Outcome.CONFIRMED)
        self.payment.refresh_from_db()
        self.booking.refresh_from_db()
        self.flat.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.COMPLETED)
        self.assertEqual(self.payment.provider_payment_id, "pay_1")
        self.assertIsNotNone(self.payment.paid_at)
        self.assertEqual(self.booking.status, Booking.Status.CONFIRMED)
        self.assertEqual(self.flat.review_status, ReviewStatus.UNDER_REVIEW)
        self.assertEqual(
            list(self.payment.events.values_list("trigger", "event")),
            [(WEBHOOK, "captured")],
        )

    def test_notifies_owner_and_admins_once(self) -> None:
        self._confirm()

        owner_note = Notification.objects.get(user=self.owner)
        admin_note = Notification.objects.get(user=self.admin)
        self.assertEqual(owner_note.type, Notification.Type.PAYMENT_RECEIVED)
        self.assertIn("12,000.00 INR", owner_note.message)
        self.assertEqual(admin_note.type, Notification.Type.FLAT_UNDER_REVIEW)
        self.assertEqual(admin_note.related_listing_kind, "flat")
        self.assertEqual(admin_note.related_listing_id, self.flat.pk)

    def test_renter_gets_a_receipt(self) -> None:
        self._confirm()

        receipts = [message for message in mail.outbox if message.to == [self.renter.email]]
        self.assertEqual(len(receipts), 1)
        self.assertIn("pay_1", receipts[0].body)

    def test_replayed_confirmation_is_idempotent(self) -> None:
        first = self._confirm(trigger=VERIFY)
        second = self._confirm(trigger=WEBHOOK)
        third = self._confirm(trigger=PaymentEvent.Trigger.POLL)

        self.assertEqual(first.outcome, Outcome.CONFIRMED)
        self.assertEqual(second.outcome, Outcome.ALREADY_CONFIRMED)
        self.assertEqual(third.outcome, Outcome.ALREADY_CONFIRMED)
        self.assertEqual(Notification.objects.count(), 2)
        self.assertEqual(PaymentEvent.objects.count(), 1)
        self.assertEqual(Payment.objects.filter(status=Payment.Status.COMPLETED).count(), 1)

    def test_pg_booking_notifies_owner_only(self) -> None:
        pg = self.make_pg()
        booking = self.make_booking(pg)
        payment = self.make_payment(booking=booking, suffix="9")

        result = self._confirm(payment=payment)

        self.assertEqual(result.outcome, Outcome.CONFIRMED)
        self.assertEqual(list(Notification.objects.values_list("user_id", flat=True)), [self.owner.pk])

    def test_flat_already_under_review_is_left_alone(self) -> None:
        FlatListing.objects.filter(pk=self.flat.pk).update(review_status=ReviewStatus.CONFIRMED)

        result = self._confirm()

        self.assertEqual(result.outcome, Outcome.CONFIRMED)
        self.flat.refresh_from_db()
        self.assertEqual(self.flat.review_status, ReviewStatus.CONFIRMED)
        self.assertFalse(Notification.objects.filter(user=self.admin).exists())

    def test_previously_failed_payment_can_still_complete(self) -> None:
        Payment.objects.filter(pk=self.payment.pk).update(status=Payment.Status.FAILED, failure_reason="expired")

        result = self._confirm()

        self.assertEqual(result.outcome, Outcome.CONFIRMED)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.COMPLETED)
        self.assertEqual(self.payment.failure_reason, "")

    def test_capture_after_cancellation_is_an_anomaly(self) -> None:
        Booking.objects.filter(pk=self.booking.pk).update(status=Booking.Status.CANCELLED)

        result = self._confirm()

        self.assertEqual(result.outcome, Outcome.ANOMALY)
        self.payment.refresh_from_db()
        self.booking.refresh_from_db()
        self.flat.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.FAILED)
        self.assertEqual(self.payment.anomaly, Payment.Anomaly.CANCELLED_BOOKING)
        self.assertEqual(self.booking.status, Booking.Status.CANCELLED)
        self.assertEqual(self.flat.review_status, ReviewStatus.NONE)

        notification = Notification.objects.get()
        self.assertEqual(notification.user, self.admin)
        self.assertEqual(notification.type, Notification.Type.PAYMENT_ANOMALY)

        replay = self._confirm()
        self.assertEqual(replay.outcome, Outcome.ANOMALY)
        self.assertEqual(Notification.objects.count(), 1)

    def test_second_capture_for_paid_booking_is_a_duplicate(self) -> None:
        self._confirm()
        second = self.make_payment(suffix="2")

        result = self._confirm(payment=second, provider_payment_id="pay_2")

        self.assertEqual(result.outcome, Outcome.ANOMALY)
        second.refresh_from_db()
        self.payment.refresh_from_db()
        self.assertEqual(second.anomaly, Payment.Anomaly.DUPLICATE_CAPTURE)
        self.assertEqual(second.status, Payment.Status.FAILED)
        self.assertEqual(self.payment.status, Payment.Status.COMPLETED)
        self.assertEqual(
            Notification.objects.filter(type=Notification.Type.PAYMENT_ANOMALY).count(), 1
        )

    def test_order_ref_for_another_booking_is_rejected(self) -> None:
        with self.assertRaises(ClientError) as ctx:
            self._confirm(order_ref="order_99999_1700000000000")

        self.assertEqual(ctx.exception.code, "order_ref_mismatch")
        self.payment.refresh_from_db()
        self.booking.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PENDING)
        self.assertEqual(self.booking.status, Booking.Status.PENDING)

    def test_unknown_order(self) -> None:
        with self.assertRaises(NotFoundError):
            apply_confirmed_payment("order_missing", "pay_1", WEBHOOK)

    def test_storage_failure_rolls_everything_back(self) -> None:
        with patch.object(reconciliation, "_record", side_effect=DatabaseError("disk full")):
            with self.captureOnCommitCallbacks(execute=True):
                with self.assertRaises(InternalError):
                    apply_confirmed_payment(self.payment.provider_order_id, "pay_1", WEBHOOK)

        self.payment.refresh_from_db()
        self.booking.refresh_from_db()
        self.flat.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PENDING)
        self.assertEqual(self.booking.status, Booking.Status.PENDING)
        self.assertEqual(self.flat.review_status, ReviewStatus.NONE)
        self.assertFalse(Notification.objects.exists())

    def test_persistent_contention_gives_up(self) -> None:
        with patch.object(reconciliation, "_confirm", side_effect=reconciliation._LostRace):
            with self.assertRaises(ConflictError) as ctx:
                apply_confirmed_payment(self.payment.provider_order_id, "pay_1", WEBHOOK)

        self.assertEqual(ctx.exception.code, "reconciliation_contention")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PENDING)


class ApplyFailedPaymentTests(PaymentFixturesMixin, TestCase):
    def test_pending_payment_fails_and_booking_stays_pending(self) -> None:
        payment = self.make_payment()

        result = apply_failed_payment(payment.provider_order_id, "pay_x", reason="Card declined")

        self.assertEqual(result.outcome, Outcome.FAILED)
        payment.refresh_from_db()
        self.booking.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.FAILED)
        self.assertEqual(payment.failure_reason, "Card declined")
        self.assertEqual(self.booking.status, Booking.Status.PENDING)
        self.assertEqual(list(payment.events.values_list("event", flat=True)), ["failed"])

    def test_failure_after_completion_is_ignored(self) -> None:
        payment = self.make_payment()
        apply_confirmed_payment(payment.provider_order_id, "pay_1", WEBHOOK)

        result = apply_failed_payment(payment.provider_order_id, "pay_1", reason="late failure")

        self.assertEqual(result.outcome, Outcome.ALREADY_CONFIRMED)
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.COMPLETED)

    def test_repeated_failure_records_one_event(self) -> None:
        payment = self.make_payment()

        apply_failed_payment(payment.provider_order_id, reason="declined")
        apply_failed_payment(payment.provider_order_id, reason="declined")

        self.assertEqual(payment.events.count(), 1)


class CancellationWithAnotherPaidBookingTests(PaymentFixturesMixin, TestCase):
    """A flat with two paid bookings keeps its review open when one is cancelled."""

    def setUp(self) -> None:
        super().setUp()
        self.broker = User.objects.create_user(email="broker@example.com", password="pass", role=User.Role.BROKER)
        FlatListing.objects.filter(pk=self.flat.pk).update(assigned_broker=self.broker)
        self.later = self.make_booking(self.flat, offset_days=40)
        for payment in (self.make_payment(suffix="1"), self.make_payment(booking=self.later, suffix="2")):
            with self.captureOnCommitCallbacks(execute=True):
                apply_confirmed_payment(payment.provider_order_id, f"pay_{payment.pk}", WEBHOOK)

    def test_cancelling_one_keeps_the_review_for_the_other(self) -> None:
        cancel_booking(booking_id=self.booking.pk, user=self.renter)

        self.flat.refresh_from_db()
        self.later.refresh_from_db()
        self.assertEqual(self.flat.review_status, ReviewStatus.UNDER_REVIEW)
        self.assertEqual(self.later.status, Booking.Status.CONFIRMED)

        confirm_handover(listing_id=self.flat.pk, broker=self.broker)

        self.flat.refresh_from_db()
        self.later.refresh_from_db()
        self.assertEqual(self.flat.review_status, ReviewStatus.CONFIRMED)
        self.assertEqual(self.later.status, Booking.Status.COMPLETED)

    def test_cancelling_both_releases_the_review(self) -> None:
        cancel_booking(booking_id=self.booking.pk, user=self.renter)
        cancel_booking(booking_id=self.later.pk, user=self.renter)

        self.flat.refresh_from_db()
        self.assertEqual(self.flat.review_status, ReviewStatus.NONE)


class StoredResultTests(PaymentFixturesMixin, TestCase):
    def test_open_payments_have_no_stored_outcome(self) -> None:
        pending = self.make_payment(suffix="1")
        failed = self.make_payment(suffix="2", status=Payment.Status.FAILED)

        self.assertFalse(pending.is_final)
        self.assertIsNone(reconciliation.stored_result(pending))
        self.assertIsNone(reconciliation.stored_result(failed))

    def test_completed_and_flagged_payments_are_final(self) -> None:
        completed = self.make_payment(suffix="1", status=Payment.Status.COMPLETED)
        flagged = self.make_payment(
            suffix="2", status=Payment.Status.FAILED, anomaly=Payment.Anomaly.CANCELLED_BOOKING
        )

        self.assertEqual(reconciliation.stored_result(completed).outcome, Outcome.ALREADY_CONFIRMED)
        self.assertEqual(reconciliation.stored_result(flagged).outcome, Outcome.ANOMALY)
