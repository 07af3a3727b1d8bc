"""
Django admin configuration for core app.
"""
import json

from django.contrib import admin
from django.utils.html import format_html

from core.infrastructure.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Admin interface for AuditLog model."""

    list_display = [
        "created_at",
        "category",
        "action",
        "severity",
        "license_key_partial",
        "ip_address",
        "success",
    ]
    list_filter = ["category", "severity", "success", "created_at"]
    search_fields = ["action", "license_key_partial", "ip_address"]
    readonly_fields = [field.name for field in AuditLog._meta.fields if field.name != "metadata"] + [
        "metadata_display"
    ]
    exclude = ["metadata"]

    def metadata_display(self, obj):
        """Display metadata in a formatted way."""
        if obj.metadata:
            return format_html(
                '<pre style="background: #f5f5f5; padding: 10px; '
                'border-radius: 4px; overflow-x: auto;">{}</pre>',
                json.dumps(obj.metadata, indent=2),
            )
        return "-"

    metadata_display.short_description = "Metadata"

    def has_add_permission(self, request):
        """Audit logs are read-only."""
        return False

    def has_change_permission(self, request, obj=None):
        """Audit logs are read-only."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Audit logs should not be deleted."""
        return False
