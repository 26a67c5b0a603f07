"""Tenants and their lifecycle status."""

from .models import Tenant, TenantStatus

__all__ = [
    "Tenant",
    "TenantStatus",
]
