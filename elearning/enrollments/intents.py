"""
Enrollment Intent Store

Remembers, on the server, which course a student was enrolling in before a
redirect (sign-in, provider payment page) so the flow can resume afterwards.
Intents are keyed by (student, course), expire after
`ENROLLMENT_INTENT_TTL_SECONDS` and are read-and-deleted in one transaction,
so an intent is consumed at most once.

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ..courses.models import Course
from ..exceptions import CourseNotFound, EnrollmentIntentNotFound, Unauthenticated
from .models import Enrollment, EnrollmentIntent
from .services import EnrollmentStateManager

logger = logging.getLogger(__name__)


class EnrollmentIntentStore:
    """
    Example:
        >>> store = EnrollmentIntentStore()
        >>> store.remember(user, course_id=3, kind="physical")
        >>> intent, enrollment = store.fulfil(user, course_id=3)  # after sign-in
    """

    def __init__(self, enrollments: Optional[EnrollmentStateManager] = None, ttl_seconds: Optional[int] = None) -> None:
        self.enrollments = enrollments or EnrollmentStateManager()
        self.ttl_seconds = ttl_seconds or settings.ENROLLMENT_INTENT_TTL_SECONDS

    def remember(self, user, course_id, kind: str = EnrollmentIntent.Kind.ONLINE) -> EnrollmentIntent:
        if user is None or not getattr(user, "is_authenticated", False):
            raise Unauthenticated()
        course = Course.objects.filter(pk=course_id).first()
        if course is None:
            raise CourseNotFound(details={"course_id": course_id})

        expires_at = timezone.now() + timedelta(seconds=self.ttl_seconds)
        intent, created = EnrollmentIntent.objects.update_or_create(
            student=user,
            course=course,
            defaults={"kind": kind, "expires_at": expires_at},
        )
        logger.info(
            "%s enrollment intent for user %s, course %s (%s, expires %s)",
            "Stored" if created else "Refreshed",
            user.pk,
            course.pk,
            kind,
            expires_at.isoformat(),
        )
        return intent

    def consume(self, user, course_id) -> EnrollmentIntent:
        """
        Read and delete the student's intent for a course.

        Raises:
            EnrollmentIntentNotFound: No intent, or it expired
        """
        if user is None or not getattr(user, "is_authenticated", False):
            raise Unauthenticated()

        with transaction.atomic():
            intent = (
                EnrollmentIntent.objects.select_for_update()
                .filter(student=user, course_id=course_id)
                .first()
            )
            if intent is None:
                raise EnrollmentIntentNotFound(details={"course_id": course_id})
            intent.delete()

        if intent.is_expired():
            logger.info("Discarded expired enrollment intent of user %s, course %s", user.pk, course_id)
            raise EnrollmentIntentNotFound(details={"course_id": course_id, "expired": True})
        return intent

    def fulfil(self, user, course_id) -> Tuple[EnrollmentIntent, Optional[Enrollment]]:
        """
        Consume the intent and resume the flow.

        A physical intent submits the pending offline enrollment. An online
        intent only tells the client to continue to payment.
        """
        intent = self.consume(user, course_id)
        enrollment = None
        if intent.kind == EnrollmentIntent.Kind.PHYSICAL:
            enrollment = self.enrollments.enroll_physical(user, course_id)
        return intent, enrollment

    @staticmethod
    def purge_expired(now: Optional[datetime] = None) -> int:
        deleted, _ = EnrollmentIntent.objects.filter(expires_at__lte=now or timezone.now()).delete()
        if deleted:
            logger.info("Purged %s expired enrollment intent(s)", deleted)
        return deleted
