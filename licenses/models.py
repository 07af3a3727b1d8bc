"""
Model registry for the licenses app.
"""
from licenses.infrastructure.models import License, Subscription  # noqa: F401
