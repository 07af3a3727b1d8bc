"""
Django implementations of the order and product repository ports.
"""

import uuid
from typing import Optional

from asgiref.sync import sync_to_async

from core.domain.value_objects import Email, OrderStatus
from orders.domain.order import Order
from orders.domain.product import Product
from orders.infrastructure.models import Order as OrderModel
from orders.infrastructure.models import Product as ProductModel
from orders.ports.order_repository import OrderRepository, ProductRepository


class DjangoProductRepository(ProductRepository):
    """Django ORM implementation of ProductRepository."""

    def _to_domain(self, model: ProductModel) -> Product:
        return Product(
            id=model.id,
            name=model.name,
            slug=model.slug,
            key_prefix=model.key_prefix,
            max_activations=model.max_activations,
            license_duration_days=model.license_duration_days,
            is_subscription=model.is_subscription,
            requires_machine_id=model.requires_machine_id,
            is_trial=model.is_trial,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @sync_to_async
    def save(self, product: Product) -> Product:
        model, _ = ProductModel.objects.update_or_create(  # pylint: disable=no-member
            id=product.id,
            defaults={
                "name": product.name,
                "slug": product.slug,
                "key_prefix": product.key_prefix,
                "max_activations": product.max_activations,
                "license_duration_days": product.license_duration_days,
                "is_subscription": product.is_subscription,
                "is_trial": product.is_trial,
                "requires_machine_id": product.requires_machine_id,
            },
        )
        return self._to_domain(model)

    @sync_to_async
    def find_by_id(self, product_id: uuid.UUID) -> Optional[Product]:
        try:
            return self._to_domain(ProductModel.objects.get(id=product_id))  # pylint: disable=no-member
        except ProductModel.DoesNotExist:  # pylint: disable=no-member
            return None


class DjangoOrderRepository(OrderRepository):
    """
    Django ORM implementation of OrderRepository.

    ``save_sync`` is exposed so the webhook unit of work can complete an
    order inside its own transaction.
    """

    def _to_domain(self, model: OrderModel) -> Order:
        return Order(
            id=model.id,
            customer_email=Email(model.customer_email),
            product_ids=tuple(model.products.order_by("name").values_list("id", flat=True)),
            status=OrderStatus(model.status),
            payment_intent_id=model.payment_intent_id,
            transaction_id=model.transaction_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
            completed_at=model.completed_at,
        )

    def save_sync(self, order: Order) -> Order:
        """Persist an order (blocking)."""
        model, _ = OrderModel.objects.update_or_create(  # pylint: disable=no-member
            id=order.id,
            defaults={
                "customer_email": str(order.customer_email),
                "status": order.status.value,
                "payment_intent_id": order.payment_intent_id,
                "transaction_id": order.transaction_id,
                "completed_at": order.completed_at,
            },
        )
        model.products.set(order.product_ids)
        return self._to_domain(model)

    async def save(self, order: Order) -> Order:
        return await sync_to_async(self.save_sync)(order)

    @sync_to_async
    def find_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        try:
            return self._to_domain(OrderModel.objects.get(id=order_id))  # pylint: disable=no-member
        except OrderModel.DoesNotExist:  # pylint: disable=no-member
            return None

    @sync_to_async
    def find_by_reference(self, reference: str) -> Optional[Order]:
        if not reference:
            return None
        queryset = OrderModel.objects.all()  # pylint: disable=no-member
        try:
            order_id = uuid.UUID(str(reference))
        except ValueError:
            order_id = None
        if order_id is not None:
            model = queryset.filter(id=order_id).first()
            if model:
                return self._to_domain(model)
        model = (
            queryset.filter(payment_intent_id=reference).first()
            or queryset.filter(transaction_id=reference).first()
        )
        return self._to_domain(model) if model else None
