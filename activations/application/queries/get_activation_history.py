"""
GetActivationHistoryQuery - admin view of a license's machine bindings.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class GetActivationHistoryQuery:
    """Query for the most recent bindings of a license."""

    license_key: str
    limit: int = 50
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
