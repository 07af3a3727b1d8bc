"""
RevokeLicenseCommand.

Command to revoke a license together with its activations and subscription.
"""
import uuid
from dataclasses import dataclass
from typing import Optional


@dataclass
class RevokeLicenseCommand:
    """Command to revoke a license."""

    license_id: Optional[uuid.UUID] = None
    license_key: Optional[str] = None
    reason: str = ""
