"""
Django implementation of AuditLogRepository port.
"""

import uuid
from typing import List, Optional

from asgiref.sync import sync_to_async

from core.domain.audit import AuditCategory, AuditRecord, SecuritySeverity
from core.infrastructure.models import AuditLog as AuditLogModel
from core.ports.audit_log_repository import AuditLogRepository


class DjangoAuditLogRepository(AuditLogRepository):
    """Django ORM implementation of AuditLogRepository."""

    def _to_domain(self, model: AuditLogModel) -> AuditRecord:
        return AuditRecord(
            id=model.id,
            category=AuditCategory(model.category),
            action=model.action,
            success=model.success,
            license_id=model.license_id,
            license_key_partial=model.license_key_partial,
            ip_address=model.ip_address,
            user_agent=model.user_agent,
            machine_fingerprint_partial=model.machine_fingerprint_partial,
            machine_id_partial=model.machine_id_partial,
            failure_reason=model.failure_reason,
            severity=SecuritySeverity(model.severity) if model.severity else None,
            metadata=model.metadata or {},
            created_at=model.created_at,
        )

    def _create(self, record: AuditRecord) -> AuditLogModel:
        # pylint: disable=no-member
        return AuditLogModel.objects.create(
            id=record.id,
            category=record.category.value,
            action=record.action[:100],
            severity=record.severity.value if record.severity else "",
            license_id=record.license_id,
            license_key_partial=record.license_key_partial[:32],
            ip_address=record.ip_address or None,
            user_agent=(record.user_agent or "")[:500],
            machine_fingerprint_partial=record.machine_fingerprint_partial[:32],
            machine_id_partial=record.machine_id_partial[:32],
            success=record.success,
            failure_reason=(record.failure_reason or "")[:255],
            metadata=record.metadata,
        )

    async def append(self, record: AuditRecord) -> AuditRecord:
        model = await sync_to_async(self._create)(record)
        return self._to_domain(model)

    async def find_by_license(
        self, license_id: uuid.UUID, limit: int = 50, action: Optional[str] = None
    ) -> List[AuditRecord]:
        def query():
            queryset = AuditLogModel.objects.filter(license_id=license_id)  # pylint: disable=no-member
            if action:
                queryset = queryset.filter(action=action)
            return list(queryset.order_by("-created_at")[:limit])

        models = await sync_to_async(query)()
        return [self._to_domain(model) for model in models]
