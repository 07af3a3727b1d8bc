"""
License and Subscription models.
"""
import uuid

from django.db import models


class License(models.Model):
    """
    A license grants access to a specific product.

    Only the SHA-256 hash of the key is stored, plus a masked hint for
    support staff.
    """

    STATUS_CHOICES = [
        ("active", "Active"),
        ("suspended", "Suspended"),
        ("revoked", "Revoked"),
        ("expired", "Expired"),
    ]
    TYPE_CHOICES = [
        ("perpetual", "Perpetual"),
        ("subscription", "Subscription"),
        ("trial", "Trial"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    key_hash = models.CharField(max_length=64, unique=True, help_text="SHA-256 of the license key")
    key_hint = models.CharField(max_length=32, blank=True, default="")
    product = models.ForeignKey("orders.Product", on_delete=models.PROTECT, related_name="licenses")
    order = models.ForeignKey(
        "orders.Order", on_delete=models.PROTECT, null=True, blank=True, related_name="licenses"
    )
    customer_email = models.EmailField(db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active", db_index=True)
    license_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default="perpetual")
    max_activations = models.PositiveIntegerField(default=1)
    activation_count = models.PositiveIntegerField(default=0)
    requires_machine_id = models.BooleanField(default=False)
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    revoked_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "licenses"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "expires_at"]),
        ]

    def __str__(self):
        return f"{self.key_hint or self.id} ({self.status})"


class Subscription(models.Model):
    """
    Recurring-billing record of a license. At most one per license.
    """

    STATUS_CHOICES = [
        ("active", "Active"),
        ("suspended", "Suspended"),
        ("canceled", "Canceled"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    license = models.OneToOneField(License, on_delete=models.CASCADE, related_name="subscription")
    external_id = models.CharField(
        max_length=255, null=True, blank=True, unique=True, help_text="Payment provider subscription id"
    )
    provider = models.CharField(max_length=20, blank=True, default="")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active")
    auto_renew = models.BooleanField(default=True)
    last_payment_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "subscriptions"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.external_id or self.id} ({self.status})"
