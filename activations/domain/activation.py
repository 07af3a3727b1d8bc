"""
Activation domain entity.

This is the core domain entity representing a machine binding.
It contains business logic and is independent of infrastructure.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional

from django.utils import timezone

from core.domain.exceptions import InvalidRequestError
from core.infrastructure.privacy import hash_machine_data, partial_machine_data


@dataclass(frozen=True)
class MachineIdentity:
    """
    Hashed identity of a client machine.

    Built from the raw fingerprint and machine id sent by a client; the raw
    values are dropped once the digests and masked hints are computed.
    An absent machine id hashes to the empty string.
    """

    fingerprint_hash: Optional[str]
    machine_id_hash: str
    fingerprint_hint: str
    machine_id_hint: str

    @classmethod
    def from_raw(
        cls, fingerprint: Optional[str], machine_id: Optional[str], salt: str
    ) -> "MachineIdentity":
        fingerprint_hash = hash_machine_data(fingerprint, salt)
        machine_id_hash = hash_machine_data(machine_id, salt)
        return cls(
            fingerprint_hash=fingerprint_hash,
            machine_id_hash=machine_id_hash or "",
            fingerprint_hint=partial_machine_data(fingerprint) if fingerprint_hash else "",
            machine_id_hint=partial_machine_data(machine_id) if machine_id_hash else "",
        )

    @property
    def has_fingerprint(self) -> bool:
        return bool(self.fingerprint_hash)

    @property
    def has_machine_id(self) -> bool:
        return bool(self.machine_id_hash)

    @property
    def is_empty(self) -> bool:
        return not (self.has_fingerprint or self.has_machine_id)

    def missing_error(
        self, requires_machine_id: bool = False, require_fingerprint: bool = True
    ) -> Optional[InvalidRequestError]:
        """
        Check the identity carries the parts an operation needs.

        Returns:
            The error to report, or None if the identity is complete
        """
        if require_fingerprint and not self.has_fingerprint:
            return InvalidRequestError("Machine fingerprint required", code="FINGERPRINT_REQUIRED")
        if requires_machine_id and not self.has_machine_id:
            return InvalidRequestError("Machine ID required", code="MACHINE_ID_REQUIRED")
        return None


@dataclass(frozen=True)
class Activation:
    """
    Activation domain entity.

    Binding of a license to one machine. Bindings are never deleted: a
    deactivated or revoked binding stays for the activation history.
    """

    id: uuid.UUID
    license_id: uuid.UUID
    fingerprint_hash: str
    machine_id_hash: str
    fingerprint_hint: str
    machine_id_hint: str
    is_active: bool
    revoked: bool
    revoked_reason: str
    ip_address: Optional[str]
    activated_at: datetime
    deactivated_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate activation entity."""
        if not self.license_id:
            raise ValueError("License ID is required")
        if not self.fingerprint_hash:
            raise ValueError("Fingerprint hash is required")

    @classmethod
    def create(
        cls,
        license_id: uuid.UUID,
        identity: MachineIdentity,
        ip_address: Optional[str] = None,
        activation_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> "Activation":
        """
        Create a new live Activation.

        Args:
            license_id: License UUID
            identity: Hashed machine identity
            ip_address: Originating IP
            activation_id: Optional UUID (generated if not provided)
            now: Activation time

        Returns:
            Activation entity instance
        """
        return cls(
            id=activation_id or uuid.uuid4(),
            license_id=license_id,
            fingerprint_hash=identity.fingerprint_hash,
            machine_id_hash=identity.machine_id_hash,
            fingerprint_hint=identity.fingerprint_hint,
            machine_id_hint=identity.machine_id_hint,
            is_active=True,
            revoked=False,
            revoked_reason="",
            ip_address=ip_address,
            activated_at=now or timezone.now(),
        )

    @property
    def is_live(self) -> bool:
        """Active and not revoked: the binding holds a seat."""
        return self.is_active and not self.revoked

    def matches(self, identity: MachineIdentity) -> bool:
        """
        Check the binding against the supplied identity parts.

        Only the parts the client sent are compared.
        """
        if identity.has_fingerprint and identity.fingerprint_hash != self.fingerprint_hash:
            return False
        if identity.has_machine_id and identity.machine_id_hash != self.machine_id_hash:
            return False
        return not identity.is_empty

    def binds(self, identity: MachineIdentity) -> bool:
        """Exact (fingerprint, machine id) tuple match."""
        return (
            self.fingerprint_hash == identity.fingerprint_hash
            and self.machine_id_hash == identity.machine_id_hash
        )

    def deactivate(self, now: Optional[datetime] = None) -> "Activation":
        if not self.is_active:
            return self
        return replace(self, is_active=False, deactivated_at=now or timezone.now())

    def revoke(self, reason: str, now: Optional[datetime] = None) -> "Activation":
        now = now or timezone.now()
        return replace(
            self,
            is_active=False,
            revoked=True,
            revoked_reason=reason,
            revoked_at=now,
            deactivated_at=self.deactivated_at or now,
        )

    def to_history_entry(self) -> Dict[str, Any]:
        """Admin view of the binding; machine data in masked form only."""
        return {
            "id": str(self.id),
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "deactivated_at": self.deactivated_at.isoformat() if self.deactivated_at else None,
            "ip_address": self.ip_address,
            "active": self.is_active,
            "revoked": self.revoked,
            "revoked_at": self.revoked_at.isoformat() if self.revoked_at else None,
            "revoked_reason": self.revoked_reason or None,
            "machine_fingerprint_partial": self.fingerprint_hint or None,
            "machine_id_partial": self.machine_id_hint or None,
        }
