"""
Certificate Awarder

Issues exactly one CertificateRequest per enrollment, triggered when the
enrollment's progress reaches 100. The same operation completes the
enrollment (`status=completed`, `completed_at`).

Duplicate triggers (progress re-sent, retried jobs) are no-ops: the existing
request is detected up front and the one-to-one column on `enrollment`
rejects any concurrent second insert.

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging
from typing import Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from ..enrollments.models import Enrollment
from ..enrollments.services import EnrollmentStateManager
from ..exceptions import EnrollmentNotFound, InvalidCertificateTransition
from ..notifications.channel import Topics, publish
from .models import CertificateRequest

logger = logging.getLogger(__name__)


class CertificateAwarder:
    def __init__(self, enrollments: Optional[EnrollmentStateManager] = None) -> None:
        self.enrollments = enrollments or EnrollmentStateManager()

    def award(self, enrollment_id) -> Optional[CertificateRequest]:
        """
        Issue the certificate request for a finished enrollment.

        Returns:
            The new CertificateRequest, or None when nothing was issued
            (progress below 100, enrollment not active/completed, or already issued)
        """
        with transaction.atomic():
            enrollment = (
                Enrollment.objects.select_for_update()
                .select_related("course", "student")
                .filter(pk=getattr(enrollment_id, "pk", enrollment_id))
                .first()
            )
            if enrollment is None:
                raise EnrollmentNotFound(details={"enrollment_id": enrollment_id})

            if enrollment.progress < 100:
                logger.debug("Enrollment %s at %s%%; no certificate yet", enrollment.pk, enrollment.progress)
                return None
            if not enrollment.grants_access:
                logger.info("Enrollment %s is %s; no certificate", enrollment.pk, enrollment.status)
                return None
            if CertificateRequest.objects.filter(enrollment=enrollment).exists():
                logger.debug("Certificate already issued for enrollment %s", enrollment.pk)
                return None

            try:
                with transaction.atomic():
                    certificate = CertificateRequest.objects.create(
                        student=enrollment.student,
                        course=enrollment.course,
                        enrollment=enrollment,
                    )
            except IntegrityError:
                logger.info("Concurrent certificate issuance for enrollment %s ignored", enrollment.pk)
                return None

            self.enrollments.mark_completed(enrollment)
            logger.info(
                "Certificate request %s issued for enrollment %s (user %s, course %s)",
                certificate.pk,
                enrollment.pk,
                enrollment.student_id,
                enrollment.course_id,
            )
            publish(
                Topics.CERTIFICATE_REQUESTED,
                enrollment.student,
                {"certificate_id": certificate.pk, "enrollment_id": enrollment.pk, "course_id": enrollment.course_id},
                title="Course completed",
                message=f"You completed {enrollment.course.title}. Your certificate is being reviewed.",
                related_id=certificate.pk,
                link="/certificates",
            )
        return certificate

    # ---------- review ----------

    @staticmethod
    def _lock_pending(certificate) -> CertificateRequest:
        pk = getattr(certificate, "pk", certificate)
        locked = (
            CertificateRequest.objects.select_for_update()
            .select_related("course", "student")
            .filter(pk=pk)
            .first()
        )
        if locked is None:
            raise InvalidCertificateTransition(message="Certificate request not found", status_code=404)
        if locked.status != CertificateRequest.Status.PENDING:
            raise InvalidCertificateTransition(details={"status": str(locked.status)})
        return locked

    def approve(self, certificate, reviewer) -> CertificateRequest:
        with transaction.atomic():
            certificate = self._lock_pending(certificate)
            certificate.status = CertificateRequest.Status.APPROVED
            certificate.approved_at = timezone.now()
            certificate.approved_by = reviewer
            certificate.save(update_fields=["status", "approved_at", "approved_by", "updated_at"])
            logger.info("Certificate request %s approved by %s", certificate.pk, reviewer.pk)
            publish(
                Topics.CERTIFICATE_APPROVED,
                certificate.student,
                {"certificate_id": certificate.pk, "course_id": certificate.course_id},
                title="Certificate approved",
                message=f"Your certificate for {certificate.course.title} is ready.",
                related_id=certificate.pk,
                link="/certificates",
            )
        return certificate

    def reject(self, certificate, reason: str = "", reviewer=None) -> CertificateRequest:
        with transaction.atomic():
            certificate = self._lock_pending(certificate)
            certificate.status = CertificateRequest.Status.REJECTED
            certificate.rejection_reason = reason or ""
            certificate.save(update_fields=["status", "rejection_reason", "updated_at"])
            logger.info(
                "Certificate request %s rejected by %s: %s",
                certificate.pk,
                getattr(reviewer, "pk", None) or "system",
                reason,
            )
            publish(
                Topics.CERTIFICATE_REJECTED,
                certificate.student,
                {"certificate_id": certificate.pk, "course_id": certificate.course_id, "reason": reason},
                title="Certificate request rejected",
                message=reason or f"Your certificate request for {certificate.course.title} was rejected.",
                related_id=certificate.pk,
            )
        return certificate
