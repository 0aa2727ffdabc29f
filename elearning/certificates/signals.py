"""
Connects the certificate awarder to enrollment progress.

Registered from ElearningConfig.ready().
"""

from django.dispatch import receiver

from ..enrollments.models import Enrollment
from ..enrollments.signals import progress_completed
from .services import CertificateAwarder



@receiver(progress_completed, sender=Enrollment, dispatch_uid="elearning_award_certificate")
def award_certificate_on_completion(sender, enrollment: Enrollment, **kwargs):
    CertificateAwarder().award(enrollment.pk)
