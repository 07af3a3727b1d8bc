"""
License DTOs for API responses.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from licenses.domain.license import License


@dataclass
class LicenseDTO:
    """DTO for license information. Carries the masked key only."""

    id: uuid.UUID
    product_id: uuid.UUID
    order_id: Optional[uuid.UUID]
    license_key: str
    status: str
    license_type: str
    max_activations: int
    activation_count: int
    activations_remaining: int
    requires_machine_id: bool
    expires_at: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_entity(cls, license: License, now: Optional[datetime] = None) -> "LicenseDTO":
        return cls(
            id=license.id,
            product_id=license.product_id,
            order_id=license.order_id,
            license_key=license.key_hint,
            status=license.effective_status(now).value,
            license_type=license.license_type.value,
            max_activations=license.max_activations,
            activation_count=license.activation_count,
            activations_remaining=license.remaining_activations,
            requires_machine_id=license.requires_machine_id,
            expires_at=license.expires_at,
            created_at=license.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "product_id": str(self.product_id),
            "order_id": str(self.order_id) if self.order_id else None,
            "license_key": self.license_key,
            "status": self.status,
            "license_type": self.license_type,
            "max_activations": self.max_activations,
            "activation_count": self.activation_count,
            "activations_remaining": self.activations_remaining,
            "requires_machine_id": self.requires_machine_id,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class IssuedLicenseDTO:
    """
    DTO for a freshly issued license.

    ``license_key`` is the raw key; it is returned once, at issuance, and
    never stored.
    """

    license: LicenseDTO
    license_key: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        data = self.license.to_dict()
        if self.license_key:
            data["license_key"] = self.license_key
        return data
