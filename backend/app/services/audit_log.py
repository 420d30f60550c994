"""
Audit Log - append-only trail of record mutations.

Policy: strict dual-write. The audit row is inserted by the same session,
inside the same transaction, as the primary mutation. If the insert fails
the whole operation rolls back, so a committed mutation always has exactly
one audit row and a rolled-back one has none.
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.logging import correlation_id_ctx
from backend.app.core.security import Principal
from backend.app.models.audit_orm import AuditLogORM

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def snapshot(values: Optional[Mapping[str, Any]]) -> Optional[dict]:
    """JSON-safe copy of a row; decimals keep their exact text."""
    if values is None:
        return None
    return jsonable_encoder(dict(values), custom_encoder={Decimal: str})


class AuditLog:
    """Writes audit entries through the caller's session."""

    async def append(
        self,
        session: AsyncSession,
        action: AuditAction,
        entity_type: str,
        entity_id: Any,
        principal: Principal,
        details: Optional[Mapping[str, Any]] = None,
    ) -> AuditLogORM:
        entry = AuditLogORM(
            action=AuditAction(action).value,
            table_name=entity_type,
            document_id=str(entity_id),
            user_id=principal.id,
            user_display_name=principal.display_name,
            details=snapshot(details),
            trace_id=correlation_id_ctx.get(),
        )
        session.add(entry)
        await session.flush()
        logger.debug(
            f"Audit {entry.action} {entity_type}/{entity_id} by {principal.id}",
            extra={"extra_data": {"audit_id": entry.id}},
        )
        return entry
