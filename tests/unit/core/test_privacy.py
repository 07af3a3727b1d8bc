"""
Unit tests for the privacy helpers.
"""

from core.infrastructure.privacy import (
    REDACTED,
    hash_machine_data,
    mask_email,
    partial_license_key,
    partial_machine_data,
    sanitize,
)


class TestHashMachineData:
    """Tests for hash_machine_data."""

    def test_same_input_same_digest(self):
        assert hash_machine_data("fp-123", "salt") == hash_machine_data("fp-123", "salt")

    def test_whitespace_is_ignored(self):
        assert hash_machine_data("  fp-123 ", "salt") == hash_machine_data("fp-123", "salt")

    def test_salt_changes_digest(self):
        assert hash_machine_data("fp-123", "salt-a") != hash_machine_data("fp-123", "salt-b")

    def test_digest_is_hex_sha256(self):
        digest = hash_machine_data("fp-123", "salt")
        assert len(digest) == 64
        assert "fp-123" not in digest

    def test_empty_values(self):
        assert hash_machine_data(None, "salt") is None
        assert hash_machine_data("", "salt") is None
        assert hash_machine_data("   ", "salt") is None


class TestPartialLicenseKey:
    """Tests for partial_license_key."""

    def test_long_key(self):
        assert partial_license_key("LIC-ABCD-EFGH-IJKL-MNOP") == "LIC-****MNOP"

    def test_short_key(self):
        assert partial_license_key("ABCDEFGH") == "****"

    def test_empty_key(self):
        assert partial_license_key("") == "unknown"
        assert partial_license_key(None) == "unknown"


class TestPartialMachineData:
    """Tests for partial_machine_data."""

    def test_long_value_keeps_at_most_eight_characters(self):
        assert partial_machine_data("abcdefghijklmnopqrstuvwxyz") == "abcdefgh..."

    def test_medium_value_keeps_half(self):
        assert partial_machine_data("abcdefghij") == "abcde..."

    def test_short_value(self):
        assert partial_machine_data("abcd") == "****"

    def test_empty_value(self):
        assert partial_machine_data(None) == "unknown"


class TestMaskEmail:
    """Tests for mask_email."""

    def test_mask(self):
        assert mask_email("jane.doe@example.com") == "j***@example.com"

    def test_invalid(self):
        assert mask_email("not-an-email") == "unknown"
        assert mask_email(None) == "unknown"


class TestSanitize:
    """Tests for sanitize."""

    def test_masks_sensitive_fields(self):
        result = sanitize(
            {
                "license_key": "LIC-ABCD-EFGH-IJKL-MNOP",
                "machine_fingerprint": "abcdefghijklmnop",
                "customer_email": "jane@example.com",
                "card_number": "4242424242424242",
                "endpoint": "activate",
            }
        )

        assert result == {
            "license_key": "LIC-****MNOP",
            "machine_fingerprint": "abcdefgh...",
            "customer_email": "j***@example.com",
            "card_number": REDACTED,
            "endpoint": "activate",
        }

    def test_nested_structures(self):
        result = sanitize(
            {
                "payment": {"card": {"number": "4242424242424242", "cvc": "123"}},
                "keys": [{"key": "LIC-ABCD-EFGH-IJKL-MNOP"}],
            }
        )

        assert result["payment"]["card"] == {"number": REDACTED, "cvc": REDACTED}
        assert result["keys"] == [{"key": "LIC-****MNOP"}]

    def test_field_names_are_case_insensitive(self):
        assert sanitize({"Authorization": "Bearer abc"}) == {"Authorization": REDACTED}

    def test_empty(self):
        assert sanitize(None) == {}
        assert sanitize({}) == {}

    def test_none_values_stay_none(self):
        assert sanitize({"license_key": None}) == {"license_key": None}
