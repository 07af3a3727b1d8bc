"""
Order domain entity.
"""
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Tuple

from django.utils import timezone

from core.domain.exceptions import InvalidStateTransitionError
from core.domain.value_objects import Email, OrderStatus


@dataclass(frozen=True)
class Order:
    """
    Order domain entity.

    An order buys one license per product in ``product_ids``. Licenses are
    issued once the order is completed.
    """

    id: uuid.UUID
    customer_email: Email
    product_ids: Tuple[uuid.UUID, ...]
    status: OrderStatus
    payment_intent_id: Optional[str]
    transaction_id: Optional[str]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate order entity."""
        if not self.product_ids:
            raise ValueError("Order must contain at least one product")

    @classmethod
    def create(
        cls,
        customer_email: str,
        product_ids,
        payment_intent_id: Optional[str] = None,
        order_id: Optional[uuid.UUID] = None,
    ) -> "Order":
        """Create a new pending order."""
        now = timezone.now()
        return cls(
            id=order_id or uuid.uuid4(),
            customer_email=Email(customer_email),
            product_ids=tuple(product_ids),
            status=OrderStatus.PENDING,
            payment_intent_id=payment_intent_id,
            transaction_id=None,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED

    def mark_completed(self, transaction_id: Optional[str] = None, now: Optional[datetime] = None) -> "Order":
        """
        Complete a pending order.

        Completing an already completed order is a no-op.

        Raises:
            InvalidStateTransitionError: If the order was refunded or failed
        """
        if self.is_completed:
            return self
        if self.status != OrderStatus.PENDING:
            raise InvalidStateTransitionError(
                f"Cannot complete order in status {self.status.value}"
            )
        now = now or timezone.now()
        return replace(
            self,
            status=OrderStatus.COMPLETED,
            transaction_id=transaction_id or self.transaction_id,
            completed_at=now,
            updated_at=now,
        )

    def mark_refunded(self, now: Optional[datetime] = None) -> "Order":
        """Mark a completed order as refunded."""
        now = now or timezone.now()
        return replace(self, status=OrderStatus.REFUNDED, updated_at=now)
