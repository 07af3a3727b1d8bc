"""
App configuration for License Server.
"""

import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class LicenseServerConfig(AppConfig):
    """Wires event handlers and tracing once the apps are loaded."""

    name = "LicenseServer"
    verbose_name = "License Server"

    def ready(self):
        """Called when Django starts."""
        from core.config import get_licensing_config
        from core.infrastructure.event_handlers import register_event_handlers

        register_event_handlers(get_licensing_config())

        endpoint = getattr(settings, "OTEL_EXPORTER_OTLP_ENDPOINT", "")
        if endpoint:
            from core.instrumentation import setup_opentelemetry

            setup_opentelemetry(
                endpoint=endpoint,
                service_name=settings.OTEL_SERVICE_NAME,
                service_version=settings.SERVICE_VERSION,
                environment=settings.ENVIRONMENT,
            )
            logger.info("OpenTelemetry configured", extra={"endpoint": endpoint})
