"""
Payment Record Manager

Creates and updates the durable `Payment` row. Status only moves forward:

    pending -> completed | failed

Both terminal transitions are conditional writes (`UPDATE ... WHERE
status = 'pending'`), so two racing callers cannot both complete the same row
and a completed row can never be failed afterwards.

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging
from typing import Optional

from django.utils import timezone

from ..courses.models import Course
from ..enrollments.models import Enrollment
from .descriptors import Payer, ProviderStatus, Quote
from .models import Payment

logger = logging.getLogger(__name__)


class PaymentRecordManager:
    """Single writer of `Payment` rows."""

    def create_pending(
        self,
        *,
        student,
        course: Course,
        method: str,
        quote: Quote,
        payer: Optional[Payer] = None,
    ) -> Payment:
        """Insert the pending row that exists before any provider call returns."""
        payer_fields = (payer or Payer()).as_model_fields()
        payment = Payment.objects.create(
            student=student,
            course=course,
            payment_method=method,
            amount=quote.amount,
            currency=quote.currency,
            settlement_amount=quote.settlement_amount,
            settlement_currency=quote.settlement_currency,
            exchange_rate=quote.exchange_rate,
            status=Payment.Status.PENDING,
            **payer_fields,
        )
        logger.info(
            "Created pending %s payment %s for user %s, course %s (%s %s)",
            method,
            payment.pk,
            student.pk,
            course.pk,
            quote.amount,
            quote.currency,
        )
        return payment

    def attach_provider_refs(self, payment: Payment, **refs) -> Payment:
        """Store provider correlation ids (intent/session id, reference, access code)."""
        allowed = {
            "stripe_payment_intent_id",
            "stripe_session_id",
            "paystack_reference",
            "paystack_access_code",
        }
        unknown = set(refs) - allowed
        if unknown:
            raise ValueError(f"Unknown provider reference fields: {sorted(unknown)}")

        changed = [name for name, value in refs.items() if value and getattr(payment, name) != value]
        for name in changed:
            setattr(payment, name, refs[name])
        if changed:
            payment.save(update_fields=changed + ["updated_at"])
        return payment

    def complete(self, payment: Payment, confirmation: ProviderStatus) -> bool:
        """
        Mark a pending payment completed.

        Only a provider-confirmed success is accepted. Returns False when the row
        was not pending anymore (another caller settled it first).
        """
        if not confirmation.succeeded:
            raise ValueError("A payment can only be completed from a provider-confirmed success")

        now = timezone.now()
        fields = {"status": Payment.Status.COMPLETED, "completed_at": now, "updated_at": now}
        payment_intent = confirmation.extra.get("payment_intent")
        if payment_intent and not payment.stripe_payment_intent_id:
            fields["stripe_payment_intent_id"] = payment_intent

        updated = Payment.objects.filter(pk=payment.pk, status=Payment.Status.PENDING).update(**fields)
        if updated:
            for name, value in fields.items():
                setattr(payment, name, value)
            logger.info(
                "Payment %s completed (provider status=%s, ref=%s)",
                payment.pk,
                confirmation.raw_status,
                confirmation.correlation_id,
            )
        else:
            payment.refresh_from_db()
        return bool(updated)

    def fail(self, payment: Payment, reason: str = "") -> bool:
        """Mark a pending payment failed. Never touches a completed payment."""
        now = timezone.now()
        reason = (reason or "")[:255]
        updated = Payment.objects.filter(pk=payment.pk, status=Payment.Status.PENDING).update(
            status=Payment.Status.FAILED, failure_reason=reason, updated_at=now
        )
        if updated:
            payment.status = Payment.Status.FAILED
            payment.failure_reason = reason
            payment.updated_at = now
            logger.info("Payment %s failed: %s", payment.pk, reason or "no reason given")
        else:
            payment.refresh_from_db()
        return bool(updated)

    def link_enrollment(self, payment: Payment, enrollment: Enrollment) -> None:
        if payment.enrollment_id == enrollment.pk:
            return
        Payment.objects.filter(pk=payment.pk).update(
            enrollment=enrollment, updated_at=timezone.now()
        )
        payment.enrollment = enrollment
        logger.info("Linked payment %s to enrollment %s", payment.pk, enrollment.pk)
