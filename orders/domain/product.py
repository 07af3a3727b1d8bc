"""
Product domain entity.

A product defines the terms of every license issued for it.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from django.utils import timezone

from core.domain.value_objects import LicenseType


@dataclass(frozen=True)
class Product:
    """
    Product domain entity.

    Represents a product that can be licensed.
    """

    id: uuid.UUID
    name: str
    slug: str
    key_prefix: str
    max_activations: int
    license_duration_days: Optional[int]
    is_subscription: bool
    requires_machine_id: bool
    is_trial: bool
    created_at: datetime
    updated_at: datetime

    def __post_init__(self):
        """Validate product entity."""
        if not self.name or len(self.name.strip()) == 0:
            raise ValueError("Product name cannot be empty")
        if self.max_activations < 1:
            raise ValueError("Max activations must be at least 1")
        if self.license_duration_days is not None and self.license_duration_days < 1:
            raise ValueError("License duration must be at least 1 day")
        if not self.key_prefix.isalnum():
            raise ValueError("Key prefix must be alphanumeric")

    @classmethod
    def create(
        cls,
        name: str,
        slug: str,
        key_prefix: str = "LIC",
        max_activations: int = 1,
        license_duration_days: Optional[int] = None,
        is_subscription: bool = False,
        requires_machine_id: bool = False,
        is_trial: bool = False,
        product_id: Optional[uuid.UUID] = None,
    ) -> "Product":
        """
        Create a new Product entity.

        Args:
            name: Product display name
            slug: URL-safe identifier
            key_prefix: Prefix of generated license keys
            max_activations: Machines allowed per license
            license_duration_days: License lifetime; None for perpetual
            is_subscription: Whether licenses renew through a subscription
            requires_machine_id: Whether clients must send a machine id
            is_trial: Whether licenses are trials
            product_id: Optional UUID (generated if not provided)

        Returns:
            Product entity instance
        """
        now = timezone.now()
        return cls(
            id=product_id or uuid.uuid4(),
            name=name.strip(),
            slug=slug,
            key_prefix=key_prefix.upper(),
            max_activations=max_activations,
            license_duration_days=license_duration_days,
            is_subscription=is_subscription,
            requires_machine_id=requires_machine_id,
            is_trial=is_trial,
            created_at=now,
            updated_at=now,
        )

    @property
    def license_duration(self) -> Optional[timedelta]:
        """Lifetime of one license period, None for perpetual products."""
        if self.license_duration_days is None:
            return None
        return timedelta(days=self.license_duration_days)

    @property
    def license_type(self) -> LicenseType:
        """License type issued for this product."""
        if self.is_subscription:
            return LicenseType.SUBSCRIPTION
        if self.is_trial:
            return LicenseType.TRIAL
        return LicenseType.PERPETUAL
