from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from elearning.enrollments.intents import EnrollmentIntentStore
from elearning.enrollments.models import Enrollment, EnrollmentIntent
from elearning.exceptions import CourseNotFound, EnrollmentIntentNotFound
from elearning.payments.descriptors import ProviderState
from elearning.payments.models import Payment
from elearning.payments.providers.gateways import use_payment_gateways

from elearning.tests.helpers import fake_gateways, make_course, make_payment, make_user


@override_settings(ENROLLMENT_INTENT_TTL_SECONDS=600)
class EnrollmentIntentStoreTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.student = make_user()
        cls.course = make_course()

    def setUp(self):
        self.store = EnrollmentIntentStore()

    def test_remember_then_consume(self):
        self.store.remember(self.student, self.course.pk, EnrollmentIntent.Kind.ONLINE)

        intent = self.store.consume(self.student, self.course.pk)

        self.assertEqual(intent.kind, EnrollmentIntent.Kind.ONLINE)
        self.assertFalse(EnrollmentIntent.objects.exists())

    def test_intent_is_consumed_once(self):
        self.store.remember(self.student, self.course.pk)
        self.store.consume(self.student, self.course.pk)

        with self.assertRaises(EnrollmentIntentNotFound):
            self.store.consume(self.student, self.course.pk)

    def test_remembering_again_refreshes_the_intent(self):
        self.store.remember(self.student, self.course.pk, EnrollmentIntent.Kind.ONLINE)
        self.store.remember(self.student, self.course.pk, EnrollmentIntent.Kind.PHYSICAL)

        intent = EnrollmentIntent.objects.get()
        self.assertEqual(intent.kind, EnrollmentIntent.Kind.PHYSICAL)
        self.assertGreater(intent.expires_at, timezone.now() + timedelta(seconds=590))

    def test_expired_intent_is_discarded(self):
        self.store.remember(self.student, self.course.pk)
        EnrollmentIntent.objects.update(expires_at=timezone.now() - timedelta(seconds=1))

        with self.assertRaises(EnrollmentIntentNotFound):
            self.store.consume(self.student, self.course.pk)
        self.assertFalse(EnrollmentIntent.objects.exists())

    def test_physical_intent_submits_offline_enrollment(self):
        self.store.remember(self.student, self.course.pk, EnrollmentIntent.Kind.PHYSICAL)

        intent, enrollment = self.store.fulfil(self.student, self.course.pk)

        self.assertEqual(intent.kind, EnrollmentIntent.Kind.PHYSICAL)
        self.assertEqual(enrollment.status, Enrollment.Status.PENDING)

    def test_online_intent_does_not_enroll(self):
        self.store.remember(self.student, self.course.pk, EnrollmentIntent.Kind.ONLINE)

        _, enrollment = self.store.fulfil(self.student, self.course.pk)

        self.assertIsNone(enrollment)
        self.assertFalse(Enrollment.objects.exists())

    def test_unknown_course(self):
        with self.assertRaises(CourseNotFound):
            self.store.remember(self.student, 999999)


class MaintenanceCommandTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.student = make_user()
        cls.course = make_course()

    def test_cleanup_deletes_only_expired_intents(self):
        other_course = make_course(title="Statistics")
        now = timezone.now()
        EnrollmentIntent.objects.create(
            student=self.student, course=self.course, expires_at=now - timedelta(minutes=5)
        )
        EnrollmentIntent.objects.create(
            student=self.student, course=other_course, expires_at=now + timedelta(minutes=5)
        )

        out = StringIO()
        call_command("cleanup_enrollment_intents", "--dry-run", stdout=out)
        self.assertIn("Would delete 1", out.getvalue())
        self.assertEqual(EnrollmentIntent.objects.count(), 2)

        out = StringIO()
        call_command("cleanup_enrollment_intents", stdout=out)
        self.assertIn("Deleted 1", out.getvalue())
        self.assertEqual(list(EnrollmentIntent.objects.values_list("course_id", flat=True)), [other_course.pk])

    def test_reconcile_verifies_stale_pending_payments(self):
        payment = make_payment(self.student, self.course, stripe_payment_intent_id="pi_1")
        gateways = fake_gateways(card_status=ProviderState.SUCCEEDED)

        out = StringIO()
        with use_payment_gateways(gateways):
            call_command("reconcile_pending_payments", "--older-than-minutes", "0", stdout=out)

        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertIsNotNone(payment.enrollment_id)
        self.assertIn("verified=1", out.getvalue())

    def test_reconcile_skips_recent_payments(self):
        make_payment(self.student, self.course)

        out = StringIO()
        with use_payment_gateways(fake_gateways(card_status=ProviderState.SUCCEEDED)):
            call_command("reconcile_pending_payments", stdout=out)

        self.assertIn("No payments to reconcile", out.getvalue())
        self.assertEqual(Payment.objects.get().status, Payment.Status.PENDING)
