from django.test import TestCase

from elearning.certificates.models import CertificateRequest
from elearning.certificates.services import CertificateAwarder
from elearning.enrollments.models import Enrollment
from elearning.exceptions import EnrollmentNotFound, InvalidCertificateTransition
from elearning.notifications.models import NotificationEvent

from elearning.tests.helpers import make_course, make_user


class CertificateAwarderTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.student = make_user()
        cls.reviewer = make_user("reviewer", is_staff=True)
        cls.course = make_course()

    def setUp(self):
        self.awarder = CertificateAwarder()

    def _enrollment(self, progress=100, status=Enrollment.Status.ACTIVE):
        return Enrollment.objects.create(
            student=self.student, course=self.course, status=status, progress=progress, payment_verified=True
        )

    def test_award_issues_one_request_and_completes(self):
        enrollment = self._enrollment()

        certificate = self.awarder.award(enrollment.pk)

        enrollment.refresh_from_db()
        self.assertIsNotNone(certificate)
        self.assertEqual(certificate.enrollment, enrollment)
        self.assertEqual(certificate.course, self.course)
        self.assertEqual(enrollment.status, Enrollment.Status.COMPLETED)
        self.assertIsNotNone(enrollment.completed_at)
        self.assertEqual(NotificationEvent.objects.get().topic, "certificate.requested")

    def test_second_award_is_a_no_op(self):
        enrollment = self._enrollment()
        self.awarder.award(enrollment.pk)

        self.assertIsNone(self.awarder.award(enrollment.pk))
        self.assertEqual(CertificateRequest.objects.count(), 1)
        self.assertEqual(NotificationEvent.objects.count(), 1)

    def test_unfinished_enrollment_gets_nothing(self):
        enrollment = self._enrollment(progress=99)

        self.assertIsNone(self.awarder.award(enrollment.pk))
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.status, Enrollment.Status.ACTIVE)

    def test_dropped_enrollment_gets_nothing(self):
        enrollment = self._enrollment(status=Enrollment.Status.DROPPED)
        self.assertIsNone(self.awarder.award(enrollment.pk))
        self.assertFalse(CertificateRequest.objects.exists())

    def test_unknown_enrollment(self):
        with self.assertRaises(EnrollmentNotFound):
            self.awarder.award(999999)

    def test_approve(self):
        certificate = self.awarder.award(self._enrollment().pk)

        approved = self.awarder.approve(certificate, reviewer=self.reviewer)

        self.assertEqual(approved.status, CertificateRequest.Status.APPROVED)
        self.assertEqual(approved.approved_by, self.reviewer)
        self.assertIsNotNone(approved.approved_at)
        self.assertTrue(NotificationEvent.objects.filter(topic="certificate.approved").exists())

    def test_reject_with_reason(self):
        certificate = self.awarder.award(self._enrollment().pk)

        rejected = self.awarder.reject(certificate.pk, reason="Final project missing", reviewer=self.reviewer)

        self.assertEqual(rejected.status, CertificateRequest.Status.REJECTED)
        self.assertEqual(rejected.rejection_reason, "Final project missing")
        event = NotificationEvent.objects.get(topic="certificate.rejected")
        self.assertEqual(event.message, "Final project missing")

    def test_reviewed_request_cannot_be_reviewed_again(self):
        certificate = self.awarder.award(self._enrollment().pk)
        self.awarder.approve(certificate, reviewer=self.reviewer)

        with self.assertRaises(InvalidCertificateTransition):
            self.awarder.reject(certificate, reason="late")

    def test_review_of_unknown_request(self):
        with self.assertRaises(InvalidCertificateTransition) as ctx:
            self.awarder.approve(999999, reviewer=self.reviewer)
        self.assertEqual(ctx.exception.status_code, 404)
