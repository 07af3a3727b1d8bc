"""
License key generation and hashing.

Keys are shown to the customer once at issuance; the store keeps only the
SHA-256 lookup hash and a masked hint.
"""

import hashlib
import secrets
import string

from core.infrastructure.privacy import partial_license_key

KEY_ALPHABET = string.ascii_uppercase + string.digits


def generate_license_key(prefix: str) -> str:
    """
    Generate a license key in format: PREFIX-XXXX-XXXX-XXXX-XXXX.

    Args:
        prefix: Product key prefix (e.g., 'LIC')

    Returns:
        Generated license key string
    """
    parts = ["".join(secrets.choice(KEY_ALPHABET) for _ in range(4)) for _ in range(4)]
    return f"{prefix}-{'-'.join(parts)}"


def normalize_license_key(raw_key: str) -> str:
    """Keys are case-insensitive and ignore surrounding whitespace."""
    return (raw_key or "").strip().upper()


def hash_license_key(raw_key: str) -> str:
    """Return the lookup hash of a license key."""
    return hashlib.sha256(normalize_license_key(raw_key).encode()).hexdigest()


def key_hint(raw_key: str) -> str:
    """Return the masked form stored alongside the hash."""
    return partial_license_key(normalize_license_key(raw_key))


def verify_license_key(raw_key: str, key_hash: str) -> bool:
    """
    Verify a raw license key against a stored hash.

    Args:
        raw_key: The raw license key to verify
        key_hash: Stored hash

    Returns:
        True if key matches, False otherwise
    """
    return secrets.compare_digest(hash_license_key(raw_key), key_hash)
