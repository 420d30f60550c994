"""Models package."""

from backend.app.models.record_orm import ProductLineORM, ProductORM
from backend.app.models.audit_orm import AuditLogORM
from backend.app.models.user_orm import UserORM

__all__ = [
    "ProductLineORM",
    "ProductORM",
    "AuditLogORM",
    "UserORM",
]
