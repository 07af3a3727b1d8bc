"""
Base Django settings for LicenseServer.

These settings are shared across all environments.
Environment-specific overrides are in dev.py, test.py, and prod.py
"""
import os
from pathlib import Path

from .logging import get_logging_config

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent.parent

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get(
    "SECRET_KEY", "django-insecure-8q!v_2m#k0x@r7l$w4n&e1t^y6u(i9o)p3a*s5d+f=g-h"
)

# Application definition
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third party
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "LicenseServer.apps.LicenseServerConfig",
    "core",
    "orders",
    "licenses",
    "activations",
    "webhooks",
    "api",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    # Custom middleware
    "core.middleware.observability.ObservabilityMiddleware",
    "core.middleware.metrics.MetricsMiddleware",
]

ROOT_URLCONF = "LicenseServer.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# Database
# https://docs.djangoproject.com/en/4.2/ref/settings/#databases
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.environ.get("DB_NAME", "license_server"),
        "USER": os.environ.get("DB_USER", "postgres"),
        "PASSWORD": os.environ.get("DB_PASSWORD", "postgres"),
        "HOST": os.environ.get("DB_HOST", "localhost"),
        "PORT": os.environ.get("DB_PORT", "5432"),
        "OPTIONS": {
            "connect_timeout": 10,
        },
    }
}

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# REST Framework
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    # Staff endpoints only; client endpoints are keyed by the license itself.
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [],
    "EXCEPTION_HANDLER": "api.exceptions.custom_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

# drf-spectacular settings
SPECTACULAR_SETTINGS = {
    "TITLE": "License Server API",
    "DESCRIPTION": (
        "License validation and activation service. Client applications "
        "validate and activate licenses; payment providers drive the license "
        "lifecycle through webhooks."
    ),
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "COMPONENT_SPLIT_REQUEST": True,
    "SCHEMA_PATH_PREFIX": "/api/v1",
    "TAGS": [
        {"name": "Licenses", "description": "Client-facing license operations"},
        {"name": "License Administration", "description": "Staff-only license management"},
        {"name": "Webhooks", "description": "Payment provider webhooks"},
        {"name": "Health", "description": "Health check endpoints"},
    ],
}

# Redis Cache (rate limit counters)
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": os.environ.get("REDIS_URL", "redis://127.0.0.1:6379/1"),
        "OPTIONS": {
            "socket_connect_timeout": 5,
            "socket_timeout": 5,
        },
    }
}

# Licensing
LICENSING = {
    "machine_hash_salt": os.environ.get("MACHINE_HASH_SALT", "dev-machine-salt"),
    "jwt_secret": os.environ.get("JWT_SECRET", "dev-jwt-secret"),
    "jwt_ttl_seconds": int(os.environ.get("JWT_TTL_SECONDS", "300")),
    "batch_max_operations": int(os.environ.get("BATCH_MAX_OPERATIONS", "10")),
    "rate_limit_fail_open": os.environ.get("RATE_LIMIT_FAIL_OPEN", "true").lower() == "true",
    "stripe_webhook_secret": os.environ.get("STRIPE_WEBHOOK_SECRET", ""),
    "paypal_webhook_id": os.environ.get("PAYPAL_WEBHOOK_ID", ""),
    "paypal_client_id": os.environ.get("PAYPAL_CLIENT_ID", ""),
    "paypal_client_secret": os.environ.get("PAYPAL_CLIENT_SECRET", ""),
    "paypal_api_base": os.environ.get("PAYPAL_API_BASE", "https://api-m.sandbox.paypal.com"),
    "security_alert_url": os.environ.get("SECURITY_ALERT_URL", ""),
    "notification_url": os.environ.get("NOTIFICATION_URL", ""),
    "error_tracking_url": os.environ.get("ERROR_TRACKING_URL", ""),
    "outbound_signing_secret": os.environ.get("OUTBOUND_SIGNING_SECRET", ""),
    "outbound_timeout_seconds": float(os.environ.get("OUTBOUND_TIMEOUT_SECONDS", "5")),
    "webhook_timeout_seconds": float(os.environ.get("WEBHOOK_TIMEOUT_SECONDS", "30")),
    "webhook_event_retention_days": int(os.environ.get("WEBHOOK_EVENT_RETENTION_DAYS", "90")),
    # Number of reverse proxies in front of the service that append X-Forwarded-For
    "trusted_proxy_count": int(os.environ.get("TRUSTED_PROXY_COUNT", "0")),
}

# Runtime switches, resolved by core.infrastructure.settings_store.SettingsStore.
# Per-event keys look like webhooks.stripe.charge_refunded; missing keys are enabled.
FEATURE_SETTINGS = {
    "webhooks": {
        "enabled": os.environ.get("WEBHOOKS_ENABLED", "true").lower() == "true",
        "stripe": {},
        "paypal": {},
    },
}

# Celery
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://127.0.0.1:6379/0")
CELERY_TASK_IGNORE_RESULT = True
CELERY_TASK_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_ACKS_LATE = True
CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP = True

# Observability
OTEL_EXPORTER_OTLP_ENDPOINT = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", "")
OTEL_SERVICE_NAME = os.environ.get("OTEL_SERVICE_NAME", "license-server")
SERVICE_VERSION = os.environ.get("SERVICE_VERSION", "1.0.0")

LOGGING = get_logging_config(ENVIRONMENT)
