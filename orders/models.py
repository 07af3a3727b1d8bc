"""
Model registry for the orders app.
"""
from orders.infrastructure.models import Order, Product  # noqa: F401
