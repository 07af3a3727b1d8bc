"""
Order and product repository ports (interfaces).

The webhook layer reads orders to resolve licenses and completes them when
a payment succeeds.
"""
from abc import ABC, abstractmethod
from typing import Optional
import uuid

from orders.domain.order import Order
from orders.domain.product import Product


class ProductRepository(ABC):
    """Abstract repository for Product entities."""

    @abstractmethod
    async def save(self, product: Product) -> Product:
        """Save a product entity."""

    @abstractmethod
    async def find_by_id(self, product_id: uuid.UUID) -> Optional[Product]:
        """
        Find a product by ID.

        Args:
            product_id: Product UUID

        Returns:
            Product entity or None if not found
        """


class OrderRepository(ABC):
    """Abstract repository for Order entities."""

    @abstractmethod
    async def save(self, order: Order) -> Order:
        """
        Save an order entity.

        Args:
            order: Order entity to save

        Returns:
            Saved order entity
        """

    @abstractmethod
    async def find_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        """Find an order by ID."""

    @abstractmethod
    async def find_by_reference(self, reference: str) -> Optional[Order]:
        """
        Find an order by a payment provider reference.

        The reference may be the order UUID, a Stripe payment intent id or a
        provider transaction id.

        Args:
            reference: Order reference taken from a webhook payload

        Returns:
            Order entity or None if not found
        """
