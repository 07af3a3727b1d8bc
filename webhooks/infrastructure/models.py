"""
Processed webhook event model.
"""
import uuid

from django.db import models


class ProcessedWebhookEvent(models.Model):
    """
    Replay-protection marker for a payment provider event.

    One row per (provider, event id). Rows older than the retention window
    are removed by the ``prune_webhook_events`` command.
    """

    PROVIDER_CHOICES = [
        ("stripe", "Stripe"),
        ("paypal", "PayPal"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    provider = models.CharField(max_length=20, choices=PROVIDER_CHOICES)
    event_id = models.CharField(max_length=255)
    event_type = models.CharField(max_length=100)
    license_id = models.UUIDField(null=True, blank=True)
    processed_at = models.DateTimeField(db_index=True)

    class Meta:
        db_table = "processed_webhook_events"
        ordering = ["-processed_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "event_id"], name="unique_webhook_event_per_provider"
            ),
        ]

    def __str__(self):
        return f"{self.provider}:{self.event_id} ({self.event_type})"
