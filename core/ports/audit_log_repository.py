"""
Audit log repository port (interface).
"""
from abc import ABC, abstractmethod
from typing import List, Optional
import uuid

from core.domain.audit import AuditRecord


class AuditLogRepository(ABC):
    """Append-only store for audit records."""

    @abstractmethod
    async def append(self, record: AuditRecord) -> AuditRecord:
        """
        Persist an audit record.

        Args:
            record: Sanitized audit record

        Returns:
            Stored record
        """

    @abstractmethod
    async def find_by_license(
        self, license_id: uuid.UUID, limit: int = 50, action: Optional[str] = None
    ) -> List[AuditRecord]:
        """
        Find the most recent records for a license.

        Args:
            license_id: License UUID
            limit: Maximum records returned
            action: Optional action filter

        Returns:
            Records ordered newest first
        """
