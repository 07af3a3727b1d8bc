"""
Product and Order models.
"""
import uuid

from django.db import models


class Product(models.Model):
    """
    A licensable product. Its fields set the terms of issued licenses.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, help_text="Product display name")
    slug = models.SlugField(max_length=100, unique=True, help_text="URL-safe identifier")
    key_prefix = models.CharField(max_length=10, default="LIC", help_text="License key prefix")
    max_activations = models.PositiveIntegerField(default=1)
    license_duration_days = models.PositiveIntegerField(
        null=True, blank=True, help_text="Leave empty for perpetual licenses"
    )
    is_subscription = models.BooleanField(default=False)
    is_trial = models.BooleanField(default=False)
    requires_machine_id = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "products"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Order(models.Model):
    """
    A customer purchase. One license is issued per ordered product once the
    order completes.
    """

    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("completed", "Completed"),
        ("refunded", "Refunded"),
        ("failed", "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer_email = models.EmailField(db_index=True)
    products = models.ManyToManyField(Product, related_name="orders")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending", db_index=True)
    payment_intent_id = models.CharField(
        max_length=255, unique=True, null=True, blank=True, help_text="Stripe payment intent id"
    )
    transaction_id = models.CharField(
        max_length=255, null=True, blank=True, db_index=True, help_text="Provider charge or sale id"
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Order {self.id} ({self.status})"
