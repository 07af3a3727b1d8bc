"""
License repository port (interface).

This defines the contract for license persistence operations.
Implementations are in the infrastructure layer.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
import uuid

from licenses.domain.license import License
from licenses.domain.state_machine import LicenseTransition


class LicenseRepository(ABC):
    """
    Abstract repository for License aggregates.

    Lifecycle changes go through ``apply_transition`` so the license row,
    its subscription and its activations change in one transaction.
    """

    @abstractmethod
    async def find_by_id(self, license_id: uuid.UUID) -> Optional[License]:
        """
        Find a license by ID.

        Args:
            license_id: License UUID

        Returns:
            License entity or None if not found
        """

    @abstractmethod
    async def find_by_key(self, raw_key: str) -> Optional[License]:
        """
        Find a license by its raw key.

        The key is hashed before lookup; raw keys are never stored.

        Args:
            raw_key: License key as supplied by the client

        Returns:
            License entity or None if not found
        """

    @abstractmethod
    async def find_by_order(self, order_id: uuid.UUID) -> List[License]:
        """Find licenses issued for an order."""

    @abstractmethod
    async def find_by_customer_email(self, email: str) -> List[License]:
        """Find licenses of a customer, newest first."""

    @abstractmethod
    async def find_by_subscription_external_id(self, external_id: str) -> Optional[License]:
        """Find the license of a provider subscription id."""

    @abstractmethod
    async def find_expired_active(self, now) -> List[License]:
        """Find licenses stored as active whose expiry has passed."""

    @abstractmethod
    async def apply_transition(self, transition: LicenseTransition) -> License:
        """
        Apply a lifecycle transition atomically.

        Args:
            transition: Transition computed by the state machine

        Returns:
            Updated license entity

        Raises:
            InvalidStateTransitionError: If the stored license changed since
                the transition was computed
        """

    @abstractmethod
    async def apply_transitions(self, transitions: List[LicenseTransition]) -> List[License]:
        """Apply several transitions as one atomic unit, in order."""


class SubscriptionRepository(ABC):
    """Abstract repository for Subscription entities."""

    @abstractmethod
    async def find_by_license(self, license_id: uuid.UUID):
        """
        Find the subscription of a license.

        Returns:
            Subscription entity or None
        """

    @abstractmethod
    async def find_by_external_id(self, external_id: str):
        """Find a subscription by its payment provider id."""
