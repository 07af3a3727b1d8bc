"""
Django admin configuration for licenses app.

Status changes go through the lifecycle handlers so the admin follows the
same transition rules, cascades and events as the API.
"""
from asgiref.sync import async_to_sync
from django.contrib import admin, messages
from django.utils.html import format_html

from core.domain.exceptions import DomainException
from licenses.application.commands.reactivate_license import ReactivateLicenseCommand
from licenses.application.commands.revoke_license import RevokeLicenseCommand
from licenses.application.commands.suspend_license import SuspendLicenseCommand
from licenses.application.handlers.license_lifecycle_handlers import (
    ReactivateLicenseHandler,
    RevokeLicenseHandler,
    SuspendLicenseHandler,
)
from licenses.infrastructure.models import License, Subscription
from licenses.infrastructure.repositories.django_license_repository import DjangoLicenseRepository
from licenses.infrastructure.repositories.django_subscription_repository import (
    DjangoSubscriptionRepository,
)


class SubscriptionInline(admin.StackedInline):
    model = Subscription
    extra = 0
    can_delete = False
    readonly_fields = [
        "external_id",
        "provider",
        "status",
        "auto_renew",
        "last_payment_at",
        "canceled_at",
        "created_at",
        "updated_at",
    ]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(License)
class LicenseAdmin(admin.ModelAdmin):
    """Admin interface for License model."""

    list_display = [
        "key_hint",
        "product",
        "customer_email",
        "status_display",
        "license_type",
        "max_activations",
        "activation_count",
        "expires_at",
        "created_at",
    ]
    list_filter = ["status", "license_type", "requires_machine_id", "expires_at", "created_at"]
    search_fields = ["key_hint", "customer_email", "product__name"]
    readonly_fields = [
        "id",
        "key_hash",
        "key_hint",
        "status",
        "activation_count",
        "revoked_at",
        "created_at",
        "updated_at",
    ]
    fieldsets = (
        (
            "Basic Information",
            {
                "fields": ("id", "key_hint", "key_hash", "product", "order", "customer_email"),
            },
        ),
        (
            "Status",
            {
                "fields": ("status", "license_type", "expires_at", "revoked_at"),
            },
        ),
        (
            "Activations",
            {
                "fields": ("max_activations", "activation_count", "requires_machine_id"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )
    inlines = [SubscriptionInline]
    actions = ["suspend_licenses", "reactivate_licenses", "revoke_licenses"]

    def status_display(self, obj):
        """Display status with color coding."""
        colors = {
            "active": "green",
            "suspended": "orange",
            "revoked": "red",
            "expired": "gray",
        }
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            colors.get(obj.status, "black"),
            obj.status.upper(),
        )

    status_display.short_description = "Status"

    def get_queryset(self, request):
        """Optimize queryset."""
        return super().get_queryset(request).select_related("product", "order")

    def _run(self, request, queryset, handler, make_command, verb):
        done = 0
        for license in queryset:
            try:
                async_to_sync(handler.handle)(make_command(license))
                done += 1
            except DomainException as exc:
                self.message_user(request, f"{license}: {exc.message}", level=messages.WARNING)
        if done:
            self.message_user(request, f"{done} license(s) {verb}.", level=messages.SUCCESS)

    def _handler(self, handler_class):
        return handler_class(DjangoLicenseRepository(), DjangoSubscriptionRepository())

    @admin.action(description="Suspend selected licenses")
    def suspend_licenses(self, request, queryset):
        self._run(
            request,
            queryset,
            self._handler(SuspendLicenseHandler),
            lambda license: SuspendLicenseCommand(license_id=license.id, reason="admin"),
            "suspended",
        )

    @admin.action(description="Reactivate selected licenses (including revoked)")
    def reactivate_licenses(self, request, queryset):
        self._run(
            request,
            queryset,
            self._handler(ReactivateLicenseHandler),
            lambda license: ReactivateLicenseCommand(
                license_id=license.id, admin_override=True, reason="admin"
            ),
            "reactivated",
        )

    @admin.action(description="Revoke selected licenses")
    def revoke_licenses(self, request, queryset):
        self._run(
            request,
            queryset,
            self._handler(RevokeLicenseHandler),
            lambda license: RevokeLicenseCommand(license_id=license.id, reason="admin"),
            "revoked",
        )
