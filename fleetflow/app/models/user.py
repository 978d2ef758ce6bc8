"""
User database model.

Drivers are users with the DRIVER role; they carry the duty status and trip
counters the transition core maintains.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from fleetflow.app.core.clock import utcnow
from fleetflow.app.db.session import Base
from fleetflow.app.models.enums import UserRole, DutyStatus, LicenceType


class User(Base):
    """
    User model.

    Authentication lives outside the core; only the fields the fleet
    transitions read or write are kept here.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(30), unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    role = Column(Enum(UserRole), default=UserRole.DRIVER, nullable=False, index=True)

    # Driver-specific fields
    licence_number = Column(String(100), nullable=True)
    licence_type = Column(Enum(LicenceType), nullable=True)
    licence_expiry = Column(DateTime, nullable=True)
    duty_status = Column(Enum(DutyStatus), default=DutyStatus.OFF_DUTY, nullable=False, index=True)

    # Trip statistics for reliability tracking
    total_trips = Column(Integer, default=0, nullable=False)
    completed_trips = Column(Integer, default=0, nullable=False)
    cancelled_trips = Column(Integer, default=0, nullable=False)

    # Optimistic concurrency token, bumped on every UPDATE
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER

    def __repr__(self):
        return f"<User(id={self.id}, name='{self.name}', role='{self.role.value}', duty='{self.duty_status.value}')>"
