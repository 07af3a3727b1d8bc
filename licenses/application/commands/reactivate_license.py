"""
ReactivateLicenseCommand.

Command to reactivate a suspended, expired or (with admin override) revoked license.
"""
import uuid
from dataclasses import dataclass
from typing import Optional


@dataclass
class ReactivateLicenseCommand:
    """Command to reactivate a license."""

    license_id: Optional[uuid.UUID] = None
    license_key: Optional[str] = None
    admin_override: bool = False
    reason: str = ""
