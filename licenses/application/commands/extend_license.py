"""
ExtendLicenseCommand.

Command to push a license's expiry back.
"""
import uuid
from dataclasses import dataclass
from typing import Optional


@dataclass
class ExtendLicenseCommand:
    """Command to extend a license by a number of days."""

    days: int
    license_id: Optional[uuid.UUID] = None
    license_key: Optional[str] = None
    record_payment: bool = False
