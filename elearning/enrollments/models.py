"""
Enrollment Models

This module defines the durable records of a student's relationship to a course.

Models:
- Enrollment: Access/progress state of one student in one course
- EnrollmentIntent: Short-lived, server-side memory of an enrollment the
  student started before a redirect (sign-in, payment page)

Lifecycle:
    none -> pending -> active -> completed
    pending -> dropped, active -> dropped   (administrative exits)

Invariant:
    At most one Enrollment per (student, course) whose status is not `dropped`.
    The invariant is enforced by a partial unique constraint in the database,
    not only by application checks, because the offline and online enrollment
    paths can race.

Author: LearnHub Development Team
Version: 1.0.0
"""

from datetime import datetime
from typing import Optional

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ..courses.models import Course


class Enrollment(models.Model):
    """
    A student's enrollment in a course.

    Attributes:
        student: Enrolled user
        course: Course enrolled in
        status: pending | active | completed | dropped
        payment_verified: True once a provider-verified payment (or an
            administrator, for offline payments) settled the enrollment
        progress: Integer percent in [0, 100], driven by course consumption
        enrolled_at: Creation time
        completed_at: Set when progress reached 100 and a certificate was requested
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        ACTIVE = "active", _("Active")
        COMPLETED = "completed", _("Completed")
        DROPPED = "dropped", _("Dropped")

    TRANSITIONS = {
        "pending": {"active", "dropped"},
        "active": {"completed", "dropped"},
        "completed": set(),
        "dropped": set(),
    }

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollments",
        verbose_name=_("Student"),
    )

    course = models.ForeignKey(
        Course,
        on_delete=models.PROTECT,
        related_name="enrollments",
        verbose_name=_("Course"),
    )

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )

    payment_verified = models.BooleanField(default=False)

    progress = models.PositiveSmallIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text=_("Course progress in percent (0-100)"),
    )

    enrolled_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Enrollment")
        verbose_name_plural = _("Enrollments")
        ordering = ["-enrolled_at"]
        db_table = "elearning_enrollment"
        constraints = [
            models.UniqueConstraint(
                fields=["student", "course"],
                condition=~Q(status="dropped"),
                name="uniq_open_enrollment_per_student_course",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.student} in {self.course} ({self.status})"

    def can_transition_to(self, target: str) -> bool:
        return str(target) in self.TRANSITIONS.get(str(self.status), set())

    @property
    def grants_access(self) -> bool:
        return self.status in (self.Status.ACTIVE, self.Status.COMPLETED)


class EnrollmentIntent(models.Model):
    """
    Server-side record of an enrollment the student wants to resume after a
    redirect. Keyed by (student, course), expires after
    `ENROLLMENT_INTENT_TTL_SECONDS` and is read-and-cleared atomically by the
    handler consuming it.
    """

    class Kind(models.TextChoices):
        ONLINE = "online", _("Online (provider payment)")
        PHYSICAL = "physical", _("Physical (offline bank transfer)")

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollment_intents",
    )
    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name="enrollment_intents",
    )
    kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.ONLINE)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(db_index=True)

    class Meta:
        verbose_name = _("Enrollment Intent")
        verbose_name_plural = _("Enrollment Intents")
        db_table = "elearning_enrollment_intent"
        constraints = [
            models.UniqueConstraint(
                fields=["student", "course"],
                name="uniq_enrollment_intent_per_student_course",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.kind} intent of {self.student} for {self.course}"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or timezone.now()) >= self.expires_at
