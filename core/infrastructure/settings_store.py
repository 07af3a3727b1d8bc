"""
Read-only settings store.

Resolves dotted keys such as ``webhooks.stripe.charge_refunded`` against the
nested ``FEATURE_SETTINGS`` dict.
"""

from typing import Any, Mapping, Optional

_MISSING = object()


class SettingsStore:
    """Dotted-key lookups over a nested mapping."""

    TRUE_VALUES = frozenset({"1", "true", "yes", "on"})

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values = values or {}

    @classmethod
    def from_django_settings(cls) -> "SettingsStore":
        from django.conf import settings

        return cls(getattr(settings, "FEATURE_SETTINGS", {}))

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self._values
        for part in key.split("."):
            if not isinstance(node, Mapping):
                return default
            node = node.get(part, _MISSING)
            if node is _MISSING:
                return default
        return node

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in self.TRUE_VALUES
        return bool(value)

    def get_str(self, key: str, default: str = "") -> str:
        value = self.get(key, default)
        return default if value is None else str(value)
