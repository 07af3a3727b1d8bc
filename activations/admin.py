"""
Django admin configuration for activations app.
"""

from django.contrib import admin
from django.utils.html import format_html

from activations.infrastructure.models import Activation


@admin.register(Activation)
class ActivationAdmin(admin.ModelAdmin):
    """
    Read-only admin interface for Activation model.

    Only hints of machine identifiers are shown. Seat counts are maintained
    by the activation repository, so rows cannot be edited here.
    """

    list_display = [
        "license",
        "fingerprint_hint",
        "machine_id_hint",
        "is_active_display",
        "activated_at",
        "deactivated_at",
        "revoked_at",
    ]
    list_filter = ["is_active", "revoked", "activated_at"]
    search_fields = ["license__key_hint", "license__customer_email", "fingerprint_hint"]
    readonly_fields = [
        "id",
        "license",
        "fingerprint_hint",
        "machine_id_hint",
        "is_active",
        "revoked",
        "revoked_reason",
        "ip_address",
        "activated_at",
        "deactivated_at",
        "revoked_at",
    ]
    exclude = ["fingerprint_hash", "machine_id_hash"]

    def is_active_display(self, obj):
        """Display active status with color."""
        if obj.revoked:
            return format_html('<span style="color: red; font-weight: bold;">✗ Revoked</span>')
        if obj.is_active:
            return format_html('<span style="color: green; font-weight: bold;">✓ Active</span>')
        return format_html('<span style="color: gray;">Deactivated</span>')

    is_active_display.short_description = "Status"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        """Optimize queryset."""
        return super().get_queryset(request).select_related("license")
