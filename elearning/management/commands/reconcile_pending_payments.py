"""
Reconcile Pending Payments Command - LearnHub

Re-drives verification for payments that are still `pending` some time after
creation (student closed the tab, webhook lost). Each payment is re-queried
at its provider; a stale pending payment is never treated as paid without a
provider confirmation.

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging
from collections import Counter
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from elearning.exceptions import EnrollmentFlowError
from elearning.payments.models import Payment
from elearning.payments.verification import VerificationService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """
    Usage:
        python manage.py reconcile_pending_payments
        python manage.py reconcile_pending_payments --older-than-minutes 60 --limit 100
        python manage.py reconcile_pending_payments --include-completed
    """

    help = "Re-verify stale pending payments with their provider"

    def add_arguments(self, parser):
        parser.add_argument(
            "--older-than-minutes",
            type=int,
            default=30,
            help="Only payments created at least this many minutes ago (default: 30)",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=200,
            help="Maximum number of payments to process (default: 200)",
        )
        parser.add_argument(
            "--include-completed",
            action="store_true",
            help="Also re-check completed payments without an enrollment link (repair)",
        )

    def handle(self, *args, **options):
        cutoff = timezone.now() - timedelta(minutes=options["older_than_minutes"])
        queryset = Payment.objects.filter(status=Payment.Status.PENDING, created_at__lte=cutoff)
        if options["include_completed"]:
            queryset = queryset | Payment.objects.filter(
                status=Payment.Status.COMPLETED, enrollment__isnull=True
            )
        payment_ids = list(queryset.order_by("created_at").values_list("pk", flat=True)[: options["limit"]])

        if not payment_ids:
            self.stdout.write(self.style.SUCCESS("No payments to reconcile"))
            return

        verifier = VerificationService()
        outcomes = Counter()
        for payment_id in payment_ids:
            try:
                result = verifier.verify_from_provider_event(payment_id)
                outcomes[result.outcome.value] += 1
            except EnrollmentFlowError as exc:
                outcomes["error"] += 1
                logger.error("Reconciliation of payment %s failed: %s", payment_id, exc.message)

        summary = ", ".join(f"{name}={count}" for name, count in sorted(outcomes.items()))
        self.stdout.write(self.style.SUCCESS(f"Reconciled {len(payment_ids)} payment(s): {summary}"))
