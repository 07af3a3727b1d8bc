"""
Activation Django ORM model.

This is the infrastructure layer model for activations.
Domain entities are in activations.domain.activation.
"""
import uuid

from django.db import models
from django.db.models import Q


class Activation(models.Model):
    """
    Binding of a license to one machine. Consumes a seat from the license.

    Machine identifiers are stored as keyed hashes plus a short masked hint.
    Rows are never deleted; deactivated and revoked bindings stay for history.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    license = models.ForeignKey(
        "licenses.License",
        on_delete=models.CASCADE,
        related_name="activations",
    )
    fingerprint_hash = models.CharField(max_length=64)
    machine_id_hash = models.CharField(max_length=64, blank=True, default="")
    fingerprint_hint = models.CharField(max_length=32, blank=True, default="")
    machine_id_hint = models.CharField(max_length=32, blank=True, default="")
    is_active = models.BooleanField(default=True, db_index=True)
    revoked = models.BooleanField(default=False)
    revoked_reason = models.CharField(max_length=255, blank=True, default="")
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    activated_at = models.DateTimeField(auto_now_add=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)
    revoked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "activations"
        ordering = ["-activated_at"]
        indexes = [
            models.Index(fields=["license", "is_active"]),
            models.Index(fields=["license", "fingerprint_hash", "machine_id_hash"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["license", "fingerprint_hash", "machine_id_hash"],
                condition=Q(is_active=True, revoked=False),
                name="unique_live_activation_per_machine",
            ),
        ]

    def __str__(self):
        return f"{self.license_id} @ {self.fingerprint_hint or self.fingerprint_hash[:8]}"
