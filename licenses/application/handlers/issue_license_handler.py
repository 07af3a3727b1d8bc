"""
IssueLicenseHandler.

Handles the issue license command.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from django.utils import timezone

from core.domain.events import EventBus
from core.domain.exceptions import DomainException, OrderNotFoundError
from core.infrastructure.events import event_bus as default_event_bus
from core.metrics import license_transitions_total
from licenses.application.commands.issue_license import IssueLicenseCommand
from licenses.application.dto.license_dto import IssuedLicenseDTO, LicenseDTO
from licenses.domain.services import LicenseIssuer
from licenses.ports.license_repository import LicenseRepository
from orders.ports.order_repository import OrderRepository, ProductRepository

logger = logging.getLogger(__name__)


class IssueLicenseHandler:
    """Handler for IssueLicenseCommand."""

    def __init__(
        self,
        order_repository: OrderRepository,
        product_repository: ProductRepository,
        license_repository: LicenseRepository,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        """Initialize handler with repositories."""
        self.order_repository = order_repository
        self.product_repository = product_repository
        self.license_repository = license_repository
        self.event_bus = event_bus or default_event_bus
        self.clock = clock

    async def handle(self, command: IssueLicenseCommand) -> List[IssuedLicenseDTO]:
        """
        Handle issue license command.

        Args:
            command: IssueLicenseCommand

        Returns:
            One IssuedLicenseDTO per product. Raw keys are only present
            when the licenses were created by this call.

        Raises:
            OrderNotFoundError: If order not found
            InvalidStateError: If the order is not completed
            DomainException: If a product of the order no longer exists
        """
        order = await self.order_repository.find_by_id(command.order_id)
        if not order:
            raise OrderNotFoundError(f"Order {command.order_id} not found")

        now = self.clock()
        existing = await self.license_repository.find_by_order(order.id)
        if existing:
            logger.info("Order %s already has %d license(s)", order.id, len(existing))
            return [
                IssuedLicenseDTO(license=LicenseDTO.from_entity(license, now), license_key=None)
                for license in existing
            ]

        products = []
        for product_id in order.product_ids:
            product = await self.product_repository.find_by_id(product_id)
            if not product:
                raise DomainException(f"Product {product_id} not found", code="PRODUCT_NOT_FOUND")
            products.append(product)

        issued = LicenseIssuer.plan(
            order,
            products,
            provider=command.provider,
            subscription_external_id=command.subscription_external_id,
            now=now,
        )
        saved = await self.license_repository.apply_transitions([item.transition for item in issued])
        license_transitions_total.labels(transition="issue").inc(len(saved))

        for item in issued:
            for event in item.transition.events:
                await self.event_bus.publish(event)

        logger.info("Issued %d license(s) for order %s", len(saved), order.id)
        return [
            IssuedLicenseDTO(license=LicenseDTO.from_entity(license, now), license_key=item.raw_key)
            for item, license in zip(issued, saved)
        ]
