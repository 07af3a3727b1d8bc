"""
Core Django ORM models.
"""
import uuid

from django.db import models


class AuditLog(models.Model):
    """
    Audit trail for license operations, webhooks and security events.

    Stores partial license keys and partial machine identifiers only.
    """

    CATEGORY_CHOICES = [
        ("payment", "Payment"),
        ("webhook", "Webhook"),
        ("license", "License"),
        ("security", "Security"),
    ]
    SEVERITY_CHOICES = [
        ("critical", "Critical"),
        ("high", "High"),
        ("medium", "Medium"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, db_index=True)
    action = models.CharField(max_length=100, db_index=True)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, blank=True, default="")
    license_id = models.UUIDField(null=True, blank=True, db_index=True)
    license_key_partial = models.CharField(max_length=32, blank=True, default="")
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, default="")
    machine_fingerprint_partial = models.CharField(max_length=32, blank=True, default="")
    machine_id_partial = models.CharField(max_length=32, blank=True, default="")
    success = models.BooleanField(default=True)
    failure_reason = models.CharField(max_length=255, blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "license_audit_logs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["license_id", "created_at"]),
            models.Index(fields=["category", "action"]),
        ]

    def __str__(self):
        return f"{self.category}:{self.action} ({'ok' if self.success else 'failed'})"
