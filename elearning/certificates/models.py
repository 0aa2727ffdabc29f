from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ..courses.models import Course
from ..enrollments.models import Enrollment

User = settings.AUTH_USER_MODEL


class CertificateRequest(models.Model):
    """
    Certificate issued once per enrollment when progress reaches 100%.
    Reviewed by staff afterwards (approved / rejected).
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")

    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="certificate_requests")
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="certificate_requests")
    enrollment = models.OneToOneField(
        Enrollment,
        on_delete=models.CASCADE,
        related_name="certificate_request",
    )
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.PENDING
    )
    requested_at = models.DateTimeField(default=timezone.now)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        User,
        related_name="approved_certificates",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    rejection_reason = models.TextField(blank=True, default="")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Certificate Request")
        verbose_name_plural = _("Certificate Requests")
        ordering = ["-requested_at"]
        db_table = "elearning_certificate_request"

    def __str__(self):
        return f"Certificate for {self.course} by {self.student} ({self.status})"
