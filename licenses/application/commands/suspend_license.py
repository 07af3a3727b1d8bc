"""
SuspendLicenseCommand.

Command to suspend a license.
"""
import uuid
from dataclasses import dataclass
from typing import Optional


@dataclass
class SuspendLicenseCommand:
    """Command to suspend a license, by id or by raw key."""

    license_id: Optional[uuid.UUID] = None
    license_key: Optional[str] = None
    reason: str = ""
