"""
IssueLicenseCommand.

Command to issue the licenses of a completed order.
"""

import uuid
from dataclasses import dataclass
from typing import Optional


@dataclass
class IssueLicenseCommand:
    """
    Command to issue licenses for an order.

    One license is created per product of the order. Re-issuing an order
    that already has licenses returns the existing ones without keys.
    """

    order_id: uuid.UUID
    provider: str = ""
    subscription_external_id: Optional[str] = None
