"""
GetLicenseStatusHandler.

Handler for getting license status query.
"""

from datetime import datetime
from typing import Callable

from django.utils import timezone

from core.domain.exceptions import LicenseNotFoundError
from core.domain.results import OperationResult
from core.infrastructure.privacy import partial_license_key
from licenses.application.queries.get_license_status import GetLicenseStatusQuery
from licenses.ports.license_repository import LicenseRepository


class GetLicenseStatusHandler:
    """Handler for GetLicenseStatusQuery."""

    def __init__(
        self,
        license_repository: LicenseRepository,
        clock: Callable[[], datetime] = timezone.now,
    ):
        """Initialize handler with repositories."""
        self.license_repository = license_repository
        self.clock = clock

    async def handle(self, query: GetLicenseStatusQuery) -> OperationResult:
        """
        Handle get license status query.

        Only a limited summary is returned: no customer data, no ids and the
        key in masked form.

        Args:
            query: GetLicenseStatusQuery

        Returns:
            OperationResult with the license summary
        """
        license = None
        if query.license_key and query.license_key.strip():
            license = await self.license_repository.find_by_key(query.license_key)
        if not license:
            return OperationResult.fail(LicenseNotFoundError())

        return OperationResult.ok(
            license_key=partial_license_key(query.license_key),
            status=license.effective_status(self.clock()).value,
            expires_at=license.expires_at.isoformat() if license.expires_at else None,
            max_activations=license.max_activations,
            activation_count=license.activation_count,
            requires_machine_id=license.requires_machine_id,
            license_type=license.license_type.value,
        )
