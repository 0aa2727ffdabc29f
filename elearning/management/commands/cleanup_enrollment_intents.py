"""
Cleanup Enrollment Intents Command - LearnHub

Deletes expired server-side enrollment intents. Expired intents are already
ignored when consumed; this keeps the table small. Can run manually or from a
cron job.

Author: LearnHub Development Team
Version: 1.0.0
"""

from django.core.management.base import BaseCommand
from django.utils import timezone

from elearning.enrollments.intents import EnrollmentIntentStore
from elearning.enrollments.models import EnrollmentIntent


class Command(BaseCommand):
    """
    Usage:
        python manage.py cleanup_enrollment_intents
        python manage.py cleanup_enrollment_intents --dry-run
    """

    help = "Delete expired enrollment intents"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only show how many intents would be deleted",
        )

    def handle(self, *args, **options):
        now = timezone.now()
        expired = EnrollmentIntent.objects.filter(expires_at__lte=now).count()

        if expired == 0:
            self.stdout.write(self.style.SUCCESS("No expired enrollment intents found"))
            return

        if options["dry_run"]:
            self.stdout.write(self.style.WARNING(f"Would delete {expired} expired enrollment intent(s)"))
            return

        deleted = EnrollmentIntentStore.purge_expired(now)
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} expired enrollment intent(s)"))
