"""
License operation commands.

Each command carries the raw client input plus the request context that
ends up, sanitized, in the audit log.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class MachineCommand:
    """Base command for operations that name a license and a machine."""

    license_key: str
    machine_fingerprint: Optional[str] = None
    machine_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class ValidateLicenseCommand(MachineCommand):
    """Command to validate a license, optionally for one machine."""


@dataclass
class ActivateLicenseCommand(MachineCommand):
    """Command to bind a machine to a license."""


@dataclass
class DeactivateLicenseCommand(MachineCommand):
    """Command to release a machine's seat."""


@dataclass
class RevokeActivationCommand(MachineCommand):
    """Admin command to revoke machine bindings; no machine data revokes all."""

    reason: str = "Admin revocation"
