"""Database models."""

from taxdesk.models.tenant import Tenant, User, FieldConfiguration
from taxdesk.models.tax import Tax
from taxdesk.models.audit_log import AuditLog

__all__ = ["Tenant", "User", "FieldConfiguration", "Tax", "AuditLog"]
