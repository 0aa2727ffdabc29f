"""
Enrollment State Manager

Owns every write to `Enrollment`. State machine:

    none -> active                 free course, or verified online payment
    none -> pending                physical/offline enrollment
    pending -> active              administrative approval or verified payment
    active -> completed            progress reached 100
    pending | active -> dropped    administrative exit

At most one non-dropped enrollment exists per (student, course). The partial
unique constraint on the table is the arbiter; inserts run in a savepoint and
a losing concurrent insert re-reads the winner's row instead of failing.

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from django.db import IntegrityError, transaction
from django.utils import timezone

from ..courses.models import Course
from ..exceptions import (
    CourseNotFound,
    CourseNotFree,
    CourseNotPriced,
    EnrollmentNotFound,
    InvalidEnrollmentTransition,
    InvalidProgress,
    Unauthenticated,
)
from ..notifications.channel import Topics, publish
from .models import Enrollment
from .signals import progress_completed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivationResult:
    """
    Outcome of activating an enrollment for a verified payment.

    Attributes:
        enrollment: The single open enrollment for (student, course)
        created: A new enrollment row was inserted
        activated: A pending enrollment was moved to active
        duplicate_prevented: An active/completed enrollment already existed and
            was reused as-is
    """

    enrollment: Enrollment
    created: bool = False
    activated: bool = False
    duplicate_prevented: bool = False


def _require_student(user) -> None:
    if user is None or not getattr(user, "is_authenticated", False):
        raise Unauthenticated()


def _get_course(course_id) -> Course:
    course = Course.objects.filter(pk=course_id).first()
    if course is None:
        raise CourseNotFound(details={"course_id": course_id})
    return course


class EnrollmentStateManager:
    """Single writer of `Enrollment` rows."""

    # ---------- lookups ----------

    @staticmethod
    def open_enrollment(student, course, for_update: bool = False) -> Optional[Enrollment]:
        qs = Enrollment.objects.filter(student=student, course=course).exclude(
            status=Enrollment.Status.DROPPED
        )
        if for_update:
            qs = qs.select_for_update()
        return qs.first()

    @staticmethod
    def get(enrollment: Union[Enrollment, int], for_update: bool = False) -> Enrollment:
        pk = enrollment.pk if isinstance(enrollment, Enrollment) else enrollment
        qs = Enrollment.objects.select_related("course", "student")
        if for_update:
            qs = qs.select_for_update()
        found = qs.filter(pk=pk).first()
        if found is None:
            raise EnrollmentNotFound(details={"enrollment_id": pk})
        return found

    def _insert(self, student, course, **fields):
        """
        Insert an open enrollment or return the one that already exists.

        Returns:
            (enrollment, created)
        """
        try:
            with transaction.atomic():
                return Enrollment.objects.create(student=student, course=course, **fields), True
        except IntegrityError:
            existing = self.open_enrollment(student, course)
            if existing is None:
                raise
            logger.info(
                "Concurrent enrollment for user %s, course %s resolved to enrollment %s",
                student.pk,
                course.pk,
                existing.pk,
            )
            return existing, False

    def _transition(self, enrollment: Enrollment, target: str, **changes) -> Enrollment:
        if not enrollment.can_transition_to(target):
            raise InvalidEnrollmentTransition(str(enrollment.status), str(target))
        previous = enrollment.status
        enrollment.status = target
        for name, value in changes.items():
            setattr(enrollment, name, value)
        enrollment.save(update_fields=["status", "updated_at", *changes.keys()])
        logger.info("Enrollment %s: %s -> %s", enrollment.pk, previous, target)
        return enrollment

    # ---------- student actions ----------

    def enroll_free(self, user, course_id) -> Enrollment:
        """Enroll directly into a free course (active, no payment)."""
        _require_student(user)
        course = _get_course(course_id)
        if not course.is_free:
            raise CourseNotFree(details={"course_id": course.pk})

        existing = self.open_enrollment(user, course)
        if existing is not None:
            return existing

        with transaction.atomic():
            enrollment, created = self._insert(
                user, course, status=Enrollment.Status.ACTIVE, payment_verified=False
            )
            if created:
                logger.info("Free enrollment %s created for user %s, course %s", enrollment.pk, user.pk, course.pk)
                publish(
                    Topics.ENROLLMENT_ACTIVATED,
                    user,
                    {"enrollment_id": enrollment.pk, "course_id": course.pk, "free": True},
                    title="Enrollment confirmed",
                    message=f"You are now enrolled in {course.title}.",
                    related_id=enrollment.pk,
                    link=f"/courses/{course.pk}",
                )
        return enrollment

    def enroll_physical(self, user, course_id) -> Enrollment:
        """Submit an offline (bank transfer) enrollment awaiting approval."""
        _require_student(user)
        course = _get_course(course_id)
        if course.is_free:
            raise CourseNotPriced(details={"course_id": course.pk})

        existing = self.open_enrollment(user, course)
        if existing is not None:
            return existing

        with transaction.atomic():
            enrollment, created = self._insert(
                user, course, status=Enrollment.Status.PENDING, payment_verified=False
            )
            if created:
                logger.info(
                    "Physical enrollment %s pending for user %s, course %s", enrollment.pk, user.pk, course.pk
                )
                publish(
                    Topics.ENROLLMENT_PENDING,
                    user,
                    {"enrollment_id": enrollment.pk, "course_id": course.pk},
                    title="Enrollment submitted",
                    message=f"Your enrollment in {course.title} is awaiting payment confirmation.",
                    related_id=enrollment.pk,
                )
        return enrollment

    # ---------- verification ----------

    def activate_for_payment(self, student, course) -> ActivationResult:
        """
        Upsert the enrollment for a provider-verified payment.

        Must run inside the verifier's transaction. Creates an active, verified
        enrollment when none is open, promotes a pending one, and reuses an
        active/completed one without changing its status.
        """
        enrollment = self.open_enrollment(student, course, for_update=True)
        created = False
        if enrollment is None:
            enrollment, created = self._insert(
                student, course, status=Enrollment.Status.ACTIVE, payment_verified=True
            )
            if created:
                logger.info(
                    "Enrollment %s created active for user %s, course %s", enrollment.pk, student.pk, course.pk
                )
                return ActivationResult(enrollment, created=True)

        if enrollment.status == Enrollment.Status.PENDING:
            self._transition(enrollment, Enrollment.Status.ACTIVE, payment_verified=True)
            return ActivationResult(enrollment, activated=True)

        if not enrollment.payment_verified:
            enrollment.payment_verified = True
            enrollment.save(update_fields=["payment_verified", "updated_at"])
        logger.info(
            "Enrollment %s already %s; payment reuses it", enrollment.pk, enrollment.status
        )
        return ActivationResult(enrollment, duplicate_prevented=True)

    # ---------- administrative ----------

    def approve(self, enrollment, actor=None) -> Enrollment:
        """Approve a pending physical enrollment once the transfer arrived."""
        with transaction.atomic():
            enrollment = self.get(enrollment, for_update=True)
            self._transition(enrollment, Enrollment.Status.ACTIVE, payment_verified=True)
            logger.info(
                "Enrollment %s approved by %s", enrollment.pk, getattr(actor, "pk", None) or "system"
            )
            publish(
                Topics.ENROLLMENT_ACTIVATED,
                enrollment.student,
                {"enrollment_id": enrollment.pk, "course_id": enrollment.course_id, "approved": True},
                title="Enrollment approved",
                message=f"Your enrollment in {enrollment.course.title} has been approved.",
                related_id=enrollment.pk,
                link=f"/courses/{enrollment.course_id}",
            )
        return enrollment

    def drop(self, enrollment, actor=None) -> Enrollment:
        with transaction.atomic():
            enrollment = self.get(enrollment, for_update=True)
            self._transition(enrollment, Enrollment.Status.DROPPED)
            logger.info(
                "Enrollment %s dropped by %s", enrollment.pk, getattr(actor, "pk", None) or "system"
            )
        return enrollment

    def update_progress(self, enrollment, progress) -> Enrollment:
        """
        Record course progress for an active enrollment.

        Reaching 100 sends `progress_completed`, which issues the certificate.
        """
        if isinstance(progress, bool):
            raise InvalidProgress()
        try:
            value = int(progress)
        except (TypeError, ValueError):
            raise InvalidProgress()
        if isinstance(progress, float) and progress != value:
            raise InvalidProgress()
        if not 0 <= value <= 100:
            raise InvalidProgress()

        with transaction.atomic():
            enrollment = self.get(enrollment, for_update=True)
            if enrollment.status != Enrollment.Status.ACTIVE:
                if enrollment.status == Enrollment.Status.COMPLETED and value == enrollment.progress:
                    return enrollment
                raise InvalidProgress(
                    message="Progress can only be recorded on an active enrollment",
                    details={"status": str(enrollment.status)},
                )

            previous = enrollment.progress
            enrollment.progress = value
            enrollment.save(update_fields=["progress", "updated_at"])
            logger.debug("Enrollment %s progress %s -> %s", enrollment.pk, previous, value)

            if value == 100 and previous < 100:
                progress_completed.send(sender=Enrollment, enrollment=enrollment)
                enrollment.refresh_from_db()
        return enrollment

    def mark_completed(self, enrollment: Enrollment) -> Enrollment:
        """Move an active enrollment to completed. No-op if already completed."""
        if enrollment.status == Enrollment.Status.COMPLETED:
            if enrollment.completed_at is None:
                enrollment.completed_at = timezone.now()
                enrollment.save(update_fields=["completed_at", "updated_at"])
            return enrollment
        return self._transition(
            enrollment, Enrollment.Status.COMPLETED, completed_at=enrollment.completed_at or timezone.now()
        )
