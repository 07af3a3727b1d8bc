"""
Serializers for License API endpoints.
"""

from rest_framework import serializers


class MachineRequestSerializer(serializers.Serializer):
    """Machine identifiers sent by the client application."""

    machine_fingerprint = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=500
    )
    machine_id = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=500
    )


class RevokeActivationRequestSerializer(MachineRequestSerializer):
    """Admin revocation; no machine data revokes every binding."""

    reason = serializers.CharField(required=False, max_length=255, default="Admin revocation")


class LifecycleRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class ExtendRequestSerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, max_value=3650)


class BatchOperationSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=["validate", "activate", "deactivate", "status"])
    license_key = serializers.CharField()
    machine_fingerprint = serializers.CharField(required=False, allow_null=True)
    machine_id = serializers.CharField(required=False, allow_null=True)


class BatchRequestSerializer(serializers.Serializer):
    """Schema only; the service validates the batch itself."""

    operations = BatchOperationSerializer(many=True)


class RateLimitSerializer(serializers.Serializer):
    remaining = serializers.IntegerField()
    reset_at = serializers.DateTimeField()


class LicenseResponseSerializer(serializers.Serializer):
    """Envelope of every license operation response."""

    success = serializers.BooleanField()
    error = serializers.CharField(required=False)
    code = serializers.CharField(required=False)
    rate_limit = RateLimitSerializer(required=False)
    timestamp = serializers.DateTimeField()


class LicenseSerializer(serializers.Serializer):
    """Serializer for LicenseDTO."""

    id = serializers.UUIDField()
    product_id = serializers.UUIDField()
    order_id = serializers.UUIDField(allow_null=True)
    license_key = serializers.CharField()
    status = serializers.CharField()
    license_type = serializers.CharField()
    max_activations = serializers.IntegerField()
    activation_count = serializers.IntegerField()
    activations_remaining = serializers.IntegerField()
    requires_machine_id = serializers.BooleanField()
    expires_at = serializers.DateTimeField(allow_null=True)
    created_at = serializers.DateTimeField()
