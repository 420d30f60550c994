"""
Audit Trail ORM Model.

One row per committed create/update/delete on a catalog record.
Rows are append-only: the service never updates or deletes them.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, func
from backend.app.core.database import Base


class AuditLogORM(Base):
    """Persistent audit trail entry for a record mutation."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(20), nullable=False)  # CREATE | UPDATE | DELETE
    table_name = Column(String(100), nullable=False, index=True)
    document_id = Column(String(64), nullable=False, index=True)

    user_id = Column(String(128), nullable=False)
    user_display_name = Column(String(255), nullable=True)
    details = Column(JSON, nullable=True)

    # Request correlation ID
    trace_id = Column(String(128), nullable=True)

    logged_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.user_id} on {self.table_name}/{self.document_id}>"
