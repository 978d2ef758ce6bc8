"""
Sequence counter database model.

One row per numbered entity kind; incremented atomically inside the unit of
work that creates the entity.
"""

from sqlalchemy import Column, Integer, String
from fleetflow.app.db.session import Base


class SequenceCounter(Base):
    """Per-kind monotonically increasing counter."""
    __tablename__ = "sequence_counters"

    kind = Column(String(50), primary_key=True)
    value = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<SequenceCounter(kind='{self.kind}', value={self.value})>"
