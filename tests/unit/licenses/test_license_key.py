"""
Unit tests for license key helpers.
"""

import re

from licenses.domain.license_key import (
    generate_license_key,
    hash_license_key,
    key_hint,
    normalize_license_key,
    verify_license_key,
)


class TestLicenseKey:
    """Tests for license key generation and hashing."""

    def test_generate_format(self):
        """Test generated keys follow PREFIX-XXXX-XXXX-XXXX-XXXX."""
        key = generate_license_key("PRO")

        assert re.fullmatch(r"PRO(-[A-Z0-9]{4}){4}", key)

    def test_generated_keys_are_unique(self):
        assert len({generate_license_key("LIC") for _ in range(50)}) == 50

    def test_hash_ignores_case_and_whitespace(self):
        assert normalize_license_key("  lic-abcd-efgh ") == "LIC-ABCD-EFGH"
        assert hash_license_key("lic-abcd-efgh-ijkl-mnop") == hash_license_key(
            "LIC-ABCD-EFGH-IJKL-MNOP"
        )

    def test_hint_is_masked(self):
        assert key_hint("lic-abcd-efgh-ijkl-mnop") == "LIC-****MNOP"

    def test_verify(self):
        stored = hash_license_key("LIC-ABCD-EFGH-IJKL-MNOP")

        assert verify_license_key("LIC-ABCD-EFGH-IJKL-MNOP", stored)
        assert not verify_license_key("LIC-ABCD-EFGH-IJKL-MNOQ", stored)
