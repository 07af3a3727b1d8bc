"""
Model registry for the webhooks app.
"""
from webhooks.infrastructure.models import ProcessedWebhookEvent  # noqa: F401
