"""
E-Learning Application Models Registry

This module serves as the central models registry for the E-Learning application.
It imports and exposes all models from the logical submodules so they are
registered with Django's ORM under the single `elearning` app label.

Architecture:
- courses/: Course catalog (read-only for the enrollment core)
- enrollments/: Enrollment lifecycle and server-side enrollment intents
- payments/: Payment records for both providers
- certificates/: Certificate requests issued on completion
- notifications/: Durable notification event log

Author: LearnHub Development Team
Version: 1.0.0
"""

from .courses.models import Course
from .enrollments.models import Enrollment, EnrollmentIntent
from .payments.models import Payment
from .certificates.models import CertificateRequest
from .notifications.models import NotificationEvent

__all__ = [
    "Course",
    "Enrollment",
    "EnrollmentIntent",
    "Payment",
    "CertificateRequest",
    "NotificationEvent",
]
