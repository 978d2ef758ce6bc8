"""
Audit Log Database Model.

Tracks every committed fleet transition for compliance and troubleshooting.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from fleetflow.app.core.clock import utcnow
from fleetflow.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Entries are written inside the same transaction as the change they
    describe, so a rolled-back transition leaves no entry.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Primary entity of the transition
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
