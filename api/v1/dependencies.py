"""
Object graph of the API.

Views build their services here so every collaborator receives the same
``LicensingConfig`` and the Django adapters of the ports.
"""
from typing import Optional

from activations.application.handlers.license_operation_handlers import (
    ActivateLicenseHandler,
    DeactivateLicenseHandler,
    GetActivationHistoryHandler,
    RevokeActivationHandler,
    ValidateLicenseHandler,
)
from activations.infrastructure.repositories.django_activation_repository import (
    DjangoActivationRepository,
)
from core.config import LicensingConfig, get_licensing_config
from core.infrastructure.audit import AuditLogger
from core.infrastructure.error_tracking import ErrorReporter
from core.infrastructure.rate_limiter import RateLimiter
from core.infrastructure.repositories.django_audit_log_repository import DjangoAuditLogRepository
from core.infrastructure.settings_store import SettingsStore
from licenses.application.handlers.issue_license_handler import IssueLicenseHandler
from licenses.application.handlers.license_lifecycle_handlers import (
    ExtendLicenseHandler,
    ReactivateLicenseHandler,
    RevokeLicenseHandler,
    SuspendLicenseHandler,
)
from licenses.application.handlers.get_license_status_handler import GetLicenseStatusHandler
from licenses.application.services.secure_license_service import SecureLicenseService
from licenses.infrastructure.repositories.django_license_repository import DjangoLicenseRepository
from licenses.infrastructure.repositories.django_subscription_repository import (
    DjangoSubscriptionRepository,
)
from licenses.infrastructure.tokens import LicenseTokenSigner
from orders.infrastructure.repositories.django_order_repository import (
    DjangoOrderRepository,
    DjangoProductRepository,
)
from webhooks.application.dispatcher import WebhookDispatcher
from webhooks.application.resolver import LicenseResolver
from webhooks.domain.provider_event import PaymentProvider
from webhooks.infrastructure.repositories.django_webhook_event_repository import (
    DjangoWebhookEventRepository,
)
from webhooks.infrastructure.verifiers import PayPalSignatureVerifier, StripeSignatureVerifier


def audit_logger(config: Optional[LicensingConfig] = None) -> AuditLogger:
    return AuditLogger(config or get_licensing_config(), DjangoAuditLogRepository())


def license_service(config: Optional[LicensingConfig] = None) -> SecureLicenseService:
    """Build the client-facing license service."""
    config = config or get_licensing_config()
    licenses = DjangoLicenseRepository()
    activations = DjangoActivationRepository()
    return SecureLicenseService(
        config=config,
        rate_limiter=RateLimiter(config),
        audit_logger=audit_logger(config),
        error_reporter=ErrorReporter(config),
        token_signer=LicenseTokenSigner(config),
        validate_handler=ValidateLicenseHandler(config, licenses, activations),
        activate_handler=ActivateLicenseHandler(config, licenses, activations),
        deactivate_handler=DeactivateLicenseHandler(config, licenses, activations),
        status_handler=GetLicenseStatusHandler(licenses),
        revoke_activation_handler=RevokeActivationHandler(config, licenses, activations),
        history_handler=GetActivationHistoryHandler(config, licenses, activations),
    )


def lifecycle_handler(handler_class):
    """Build a suspend/reactivate/revoke/extend handler."""
    return handler_class(DjangoLicenseRepository(), DjangoSubscriptionRepository())


LIFECYCLE_HANDLERS = {
    "suspend": SuspendLicenseHandler,
    "reactivate": ReactivateLicenseHandler,
    "revoke": RevokeLicenseHandler,
    "extend": ExtendLicenseHandler,
}


def issue_license_handler() -> IssueLicenseHandler:
    return IssueLicenseHandler(
        DjangoOrderRepository(), DjangoProductRepository(), DjangoLicenseRepository()
    )


def webhook_dispatcher(config: Optional[LicensingConfig] = None) -> WebhookDispatcher:
    """Build the payment webhook dispatcher."""
    config = config or get_licensing_config()
    licenses = DjangoLicenseRepository()
    orders = DjangoOrderRepository()
    products = DjangoProductRepository()
    return WebhookDispatcher(
        config=config,
        verifiers={
            PaymentProvider.STRIPE: StripeSignatureVerifier(config),
            PaymentProvider.PAYPAL: PayPalSignatureVerifier(config),
        },
        repository=DjangoWebhookEventRepository(licenses=licenses, orders=orders),
        resolver=LicenseResolver(licenses, orders, DjangoSubscriptionRepository()),
        product_repository=products,
        audit_logger=audit_logger(config),
        error_reporter=ErrorReporter(config),
        settings_store=SettingsStore.from_django_settings(),
    )
