"""
Django management command to delete old processed-webhook markers.

A provider stops retrying an event long before the retention window ends,
so markers older than it no longer protect against replays.
"""

import logging
from datetime import timedelta

from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from core.config import get_licensing_config
from webhooks.infrastructure.repositories.django_webhook_event_repository import (
    DjangoWebhookEventRepository,
)

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Command to prune processed webhook event markers."""

    help = "Delete processed webhook event markers older than the retention window"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Retention in days (defaults to LICENSING['WEBHOOK_EVENT_RETENTION_DAYS'])",
        )

    def handle(self, *args, **options):
        days = options["days"]
        if days is None:
            days = get_licensing_config().webhook_event_retention_days
        if days < 1:
            raise CommandError("--days must be at least 1")

        cutoff = timezone.now() - timedelta(days=days)
        deleted = async_to_sync(DjangoWebhookEventRepository().prune)(cutoff)
        logger.info("Pruned %d webhook event marker(s) older than %s", deleted, cutoff.isoformat())
        # pylint: disable=no-member
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} webhook event marker(s)"))
