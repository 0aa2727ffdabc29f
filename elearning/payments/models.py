"""
Payment Models

The `Payment` row is the single source of truth for what was charged, through
which provider, and for which course/enrollment.

Lifecycle:
    pending -> completed   (only after provider-confirmed verification)
    pending -> failed      (provider-confirmed failure, or provider unreachable
                            while the transaction was being opened)

A payment never moves backward. A failed payment is terminal: the student
starts a new attempt, which creates a new Payment row.

Author: LearnHub Development Team
Version: 1.0.0
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from ..courses.models import Course
from ..enrollments.models import Enrollment


class Payment(models.Model):
    """
    One attempted charge through one provider for one course.

    Provider correlation fields:
        card provider (Stripe):     stripe_payment_intent_id, stripe_session_id
        regional provider (Paystack): paystack_reference, paystack_access_code
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        COMPLETED = "completed", _("Completed")
        FAILED = "failed", _("Failed")

    class Method(models.TextChoices):
        CARD = "card", _("Card network (Stripe)")
        REGIONAL = "regional", _("Regional (Paystack)")

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payments",
    )
    course = models.ForeignKey(
        Course,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    enrollment = models.ForeignKey(
        Enrollment,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text=_("Linked once the payment has been verified"),
    )

    # What was charged, in the catalog currency
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3)
    payment_method = models.CharField(max_length=10, choices=Method.choices)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )

    # What the provider settles (differs from amount/currency after conversion)
    settlement_amount = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    settlement_currency = models.CharField(max_length=3, blank=True, default="")
    exchange_rate = models.DecimalField(
        max_digits=18, decimal_places=6, null=True, blank=True
    )

    # Card provider correlation
    stripe_payment_intent_id = models.CharField(
        max_length=255, blank=True, null=True, db_index=True
    )
    stripe_session_id = models.CharField(
        max_length=255, blank=True, null=True, db_index=True
    )

    # Regional provider correlation
    paystack_reference = models.CharField(
        max_length=100, blank=True, null=True, unique=True
    )
    paystack_access_code = models.CharField(max_length=100, blank=True, null=True)

    # Payer details captured at intent time
    full_name = models.CharField(max_length=200, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    address = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    state = models.CharField(max_length=100, blank=True, default="")
    country = models.CharField(max_length=100, blank=True, default="")
    postal_code = models.CharField(max_length=20, blank=True, default="")

    failure_reason = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _("Payment")
        verbose_name_plural = _("Payments")
        ordering = ["-created_at"]
        db_table = "elearning_payment"
        indexes = [
            models.Index(fields=["student", "course"], name="payment_student_course_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment {self.pk} ({self.payment_method}, {self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.Status.COMPLETED, self.Status.FAILED)

    @property
    def charged_amount(self):
        """Amount the provider is asked to collect."""
        return self.settlement_amount if self.settlement_amount is not None else self.amount

    @property
    def charged_currency(self) -> str:
        return self.settlement_currency or self.currency
