"""
Unit tests for core value objects.
"""
import pytest

from core.domain.value_objects import Email, LicenseStatus, LicenseType, OrderStatus, SubscriptionStatus


class TestEmail:
    """Tests for Email value object."""

    def test_valid_email(self):
        """Test valid email creation."""
        email = Email("test@example.com")
        assert str(email) == "test@example.com"
        assert email.value == "test@example.com"

    def test_email_is_normalized(self):
        """Test casing and surrounding whitespace are dropped."""
        assert Email("  Owner@Example.COM ") == Email("owner@example.com")

    def test_invalid_email_no_at(self):
        """Test invalid email without @."""
        with pytest.raises(ValueError, match="Invalid email"):
            Email("invalid-email")

    def test_invalid_email_empty(self):
        """Test invalid empty email."""
        with pytest.raises(ValueError, match="Invalid email"):
            Email("")

    def test_hashable(self):
        assert len({Email("a@example.com"), Email("A@example.com")}) == 1


class TestStatusEnums:
    """Tests for the stored status enums."""

    def test_license_status_values(self):
        assert LicenseStatus("active") is LicenseStatus.ACTIVE
        assert LicenseStatus.REVOKED.value == "revoked"
        assert {status.value for status in LicenseStatus} == {"active", "suspended", "revoked", "expired"}

    def test_license_type_values(self):
        assert LicenseType.SUBSCRIPTION == "subscription"
        assert LicenseType("trial") is LicenseType.TRIAL

    def test_subscription_status_values(self):
        assert SubscriptionStatus.CANCELED.value == "canceled"

    def test_order_status_values(self):
        assert OrderStatus("refunded") is OrderStatus.REFUNDED
