"""
Django admin configuration for webhooks app.
"""

from django.contrib import admin

from webhooks.infrastructure.models import ProcessedWebhookEvent


@admin.register(ProcessedWebhookEvent)
class ProcessedWebhookEventAdmin(admin.ModelAdmin):
    """Read-only view of processed provider events."""

    list_display = ["provider", "event_id", "event_type", "license_id", "processed_at"]
    list_filter = ["provider", "event_type", "processed_at"]
    search_fields = ["event_id"]
    readonly_fields = ["id", "provider", "event_id", "event_type", "license_id", "processed_at"]

    def has_add_permission(self, request):
        return False
