"""
Model registry for the core app.

Django only imports ``<app>.models`` on startup; the ORM models live in
``core.infrastructure.models``.
"""
from core.infrastructure.models import AuditLog  # noqa: F401
