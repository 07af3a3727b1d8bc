"""
Django admin configuration for orders app.
"""

from django.contrib import admin

from orders.infrastructure.models import Order, Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Admin interface for Product model."""

    list_display = [
        "name",
        "slug",
        "key_prefix",
        "max_activations",
        "license_duration_days",
        "is_subscription",
        "created_at",
    ]
    list_filter = ["is_subscription", "is_trial", "requires_machine_id"]
    search_fields = ["name", "slug"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin interface for Order model."""

    list_display = ["id", "customer_email", "status", "payment_intent_id", "completed_at", "created_at"]
    list_filter = ["status", "created_at"]
    search_fields = ["customer_email", "payment_intent_id", "transaction_id"]
    readonly_fields = ["id", "created_at", "updated_at", "completed_at"]
    filter_horizontal = ["products"]
