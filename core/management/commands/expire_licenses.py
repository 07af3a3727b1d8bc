"""
Django management command to persist the expired status of licenses.

Validation already treats a past expiry as expired at read time; this
command only brings the stored status in line for reporting. It should be
run periodically (e.g., via cron or Celery beat).
"""

import logging

from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand
from django.utils import timezone

from core.domain.exceptions import InvalidStateTransitionError
from core.metrics import license_transitions_total
from licenses.domain.state_machine import expire_license
from licenses.infrastructure.repositories.django_license_repository import DjangoLicenseRepository

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Command to mark expired licenses."""

    help = "Persist the expired status of active licenses whose expiry has passed"

    def add_arguments(self, parser):
        """Add command arguments."""
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Dry run mode - don't actually update licenses",
        )

    def handle(self, *args, **options):
        """Execute the command."""
        repository = DjangoLicenseRepository()
        now = timezone.now()
        expired = async_to_sync(repository.find_expired_active)(now)
        self.stdout.write(f"Found {len(expired)} expired license(s)")

        if options["dry_run"]:
            # pylint: disable=no-member
            self.stdout.write(self.style.WARNING("DRY RUN - No changes will be made"))
            for license in expired[:10]:
                self.stdout.write(f"  - License {license.id} expired at {license.expires_at}")
            return

        updated = 0
        for license in expired:
            try:
                async_to_sync(repository.apply_transition)(expire_license(license, now))
            except InvalidStateTransitionError as e:
                # Changed by a concurrent request since it was loaded
                logger.warning("Skipped license %s: %s", license.id, e.code)
                continue
            license_transitions_total.labels(transition="expire").inc()
            updated += 1
            logger.info("Marked license %s as expired", license.id)

        self.stdout.write(
            # pylint: disable=no-member
            self.style.SUCCESS(f"Successfully marked {updated} license(s) as expired")
        )
