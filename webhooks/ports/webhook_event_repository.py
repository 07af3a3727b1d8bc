"""
Processed webhook event repository port (interface).
"""
from abc import ABC, abstractmethod
from datetime import datetime

from webhooks.domain.outcome import ProcessedEvent, StateChanges
from webhooks.domain.provider_event import PaymentProvider


class WebhookEventRepository(ABC):
    """
    Abstract repository for processed-event markers.

    The marker and the state changes of an event are committed together, so
    an event is either fully applied and marked, or neither.
    """

    @abstractmethod
    async def is_processed(self, provider: PaymentProvider, event_id: str) -> bool:
        """Check whether an event id was already applied."""

    @abstractmethod
    async def commit(self, marker: ProcessedEvent, changes: StateChanges) -> bool:
        """
        Apply the changes of an event and record its marker atomically.

        Args:
            marker: Marker to record
            changes: Order updates, issued licenses and lifecycle transitions

        Returns:
            False if a concurrent delivery recorded the same marker first;
            nothing is applied in that case

        Raises:
            InvalidStateTransitionError: If a license changed since the
                transitions were computed
        """

    @abstractmethod
    async def prune(self, before: datetime) -> int:
        """
        Delete markers processed before a cutoff.

        Returns:
            Number of markers deleted
        """
