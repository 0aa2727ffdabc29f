"""
Payment Verification Service

The only component allowed to move a payment to `completed` and, as a
consequence, to activate a paid enrollment. It never trusts client-reported
success: every pending payment is re-queried at its provider.

verify(payment):
    completed -> already verified; repair the enrollment link if a previous
                 run was interrupted (missing/pending enrollment)
    failed    -> not verified (terminal, a new payment is required)
    pending   -> ask the provider:
                 success      -> complete payment + upsert enrollment + link,
                                 in one transaction
                 failure      -> mark payment failed
                 inconclusive -> leave pending; the caller polls again

Client-initiated verification and provider webhooks race freely; the row lock
on the payment, the conditional status write and the enrollment uniqueness
constraint make the outcome independent of their order.

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from django.db import transaction

from ..enrollments.models import Enrollment
from ..enrollments.services import EnrollmentStateManager
from ..exceptions import PaymentNotFound, ProviderUnavailable, Unauthenticated
from ..notifications.channel import Topics, publish
from .descriptors import ProviderStatus
from .models import Payment
from .providers.gateways import PaymentGateways, get_payment_gateways
from .records import PaymentRecordManager

logger = logging.getLogger(__name__)


class VerificationOutcome(str, Enum):
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"
    REPAIRED = "repaired"
    FAILED = "failed"
    PENDING = "pending"
    PROVIDER_UNAVAILABLE = "provider_unavailable"


RETRYABLE_OUTCOMES = {VerificationOutcome.PENDING, VerificationOutcome.PROVIDER_UNAVAILABLE}


@dataclass(frozen=True)
class VerificationResult:
    verified: bool
    outcome: VerificationOutcome
    payment_id: int
    enrollment_id: Optional[int] = None
    duplicate_prevented: bool = False
    reason: str = ""

    @property
    def retryable(self) -> bool:
        return self.outcome in RETRYABLE_OUTCOMES

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "verified": self.verified,
            "status": self.outcome.value,
            "paymentId": self.payment_id,
            "enrollmentId": self.enrollment_id,
            "retryable": self.retryable,
        }
        if self.reason:
            data["reason"] = self.reason
        return data


class VerificationService:
    """
    Example:
        >>> result = VerificationService().verify(request.user, payment_id=12, correlation_id="cs_test_...")
        >>> result.verified, result.enrollment_id
        (True, 7)
    """

    def __init__(
        self,
        gateways: Optional[PaymentGateways] = None,
        records: Optional[PaymentRecordManager] = None,
        enrollments: Optional[EnrollmentStateManager] = None,
    ) -> None:
        self._gateways = gateways
        self.records = records or PaymentRecordManager()
        self.enrollments = enrollments or EnrollmentStateManager()

    @property
    def gateways(self) -> PaymentGateways:
        if self._gateways is None:
            self._gateways = get_payment_gateways()
        return self._gateways

    # ---------- entry points ----------

    def verify(self, user, payment_id, correlation_id: Optional[str] = None) -> VerificationResult:
        """
        Verify a payment on behalf of its student.

        Raises:
            Unauthenticated: Anonymous caller, or the payment is someone else's
            PaymentNotFound: Unknown payment id
            CorrelationMismatch: `correlation_id` belongs to another payment
        """
        if user is None or not getattr(user, "is_authenticated", False):
            raise Unauthenticated()

        payment = self._load(payment_id)
        if payment.student_id != user.pk:
            logger.warning("User %s tried to verify payment %s of user %s", user.pk, payment.pk, payment.student_id)
            raise Unauthenticated(message="Payment does not belong to the current user")

        return self._reconcile(payment, correlation_id)

    def verify_from_provider_event(self, payment_id, correlation_id: Optional[str] = None) -> VerificationResult:
        """Re-drive verification from a provider webhook (no user session)."""
        payment = self._load(payment_id)
        logger.info("Provider event re-drives verification of payment %s", payment.pk)
        return self._reconcile(payment, correlation_id)

    @staticmethod
    def _load(payment_id) -> Payment:
        try:
            pk = int(payment_id)
        except (TypeError, ValueError):
            raise PaymentNotFound(details={"payment_id": payment_id})
        payment = Payment.objects.select_related("course", "student", "enrollment").filter(pk=pk).first()
        if payment is None:
            raise PaymentNotFound(details={"payment_id": pk})
        return payment

    # ---------- state machine ----------

    def _reconcile(self, payment: Payment, correlation_id: Optional[str]) -> VerificationResult:
        if payment.is_terminal:
            return self._settled_result(payment)

        provider = self.gateways.for_payment(payment)
        try:
            status = provider.fetch_status(payment, correlation_id)
        except ProviderUnavailable as exc:
            logger.warning("Verification of payment %s inconclusive: %s", payment.pk, exc.message)
            return VerificationResult(
                False, VerificationOutcome.PROVIDER_UNAVAILABLE, payment.pk, reason=exc.message
            )

        if status.succeeded:
            return self._settle(payment, status)
        if status.failed:
            return self._fail(payment, status)

        logger.info("Payment %s still pending at %s (%s)", payment.pk, provider.name, status.raw_status)
        return VerificationResult(False, VerificationOutcome.PENDING, payment.pk)

    def _settle(self, payment: Payment, status: ProviderStatus) -> VerificationResult:
        with transaction.atomic():
            locked = Payment.objects.select_for_update().select_related("course", "student").get(pk=payment.pk)
            if locked.is_terminal:
                return self._settled_result(locked)

            self.records.complete(locked, status)
            activation = self.enrollments.activate_for_payment(locked.student, locked.course)
            self.records.link_enrollment(locked, activation.enrollment)

            publish(
                Topics.PAYMENT_COMPLETED,
                locked.student,
                {
                    "payment_id": locked.pk,
                    "course_id": locked.course_id,
                    "amount": str(locked.amount),
                    "currency": locked.currency,
                },
                title="Payment received",
                message=f"Your payment for {locked.course.title} was confirmed.",
                related_id=locked.pk,
            )
            if activation.created or activation.activated:
                self._publish_activation(activation.enrollment)

        if activation.duplicate_prevented:
            logger.info(
                "Payment %s linked to existing enrollment %s (duplicate prevented)",
                locked.pk,
                activation.enrollment.pk,
            )
        return VerificationResult(
            True,
            VerificationOutcome.VERIFIED,
            locked.pk,
            enrollment_id=activation.enrollment.pk,
            duplicate_prevented=activation.duplicate_prevented,
        )

    def _fail(self, payment: Payment, status: ProviderStatus) -> VerificationResult:
        if self.records.fail(payment, status.reason or status.raw_status):
            publish(
                Topics.PAYMENT_FAILED,
                payment.student,
                {"payment_id": payment.pk, "course_id": payment.course_id, "reason": payment.failure_reason},
                title="Payment failed",
                message=f"Your payment for {payment.course.title} did not go through.",
                related_id=payment.pk,
            )
            return VerificationResult(False, VerificationOutcome.FAILED, payment.pk, reason=payment.failure_reason)

        # Another caller settled the row first; report what it decided.
        return self._settled_result(payment)

    def _settled_result(self, payment: Payment) -> VerificationResult:
        if payment.status == Payment.Status.COMPLETED:
            return self._ensure_enrollment(payment)
        return VerificationResult(False, VerificationOutcome.FAILED, payment.pk, reason=payment.failure_reason)

    def _ensure_enrollment(self, payment: Payment) -> VerificationResult:
        """
        Completed payment: make sure its enrollment exists, is active and is linked.

        A consistent pair is returned without any write. A dropped enrollment is
        an administrative decision and is left as is.
        """
        enrollment = payment.enrollment
        if enrollment is not None and enrollment.status != Enrollment.Status.PENDING:
            return VerificationResult(
                True, VerificationOutcome.ALREADY_VERIFIED, payment.pk, enrollment_id=enrollment.pk
            )

        with transaction.atomic():
            locked = Payment.objects.select_for_update().select_related("course", "student").get(pk=payment.pk)
            activation = self.enrollments.activate_for_payment(locked.student, locked.course)
            self.records.link_enrollment(locked, activation.enrollment)
            if activation.created or activation.activated:
                self._publish_activation(activation.enrollment)

        logger.warning(
            "Repaired completed payment %s: enrollment %s is now %s",
            locked.pk,
            activation.enrollment.pk,
            activation.enrollment.status,
        )
        return VerificationResult(
            True,
            VerificationOutcome.REPAIRED,
            locked.pk,
            enrollment_id=activation.enrollment.pk,
            duplicate_prevented=activation.duplicate_prevented,
        )

    @staticmethod
    def _publish_activation(enrollment: Enrollment) -> None:
        publish(
            Topics.ENROLLMENT_ACTIVATED,
            enrollment.student,
            {"enrollment_id": enrollment.pk, "course_id": enrollment.course_id},
            title="Enrollment confirmed",
            message=f"You are now enrolled in {enrollment.course.title}.",
            related_id=enrollment.pk,
            link=f"/courses/{enrollment.course_id}",
        )
