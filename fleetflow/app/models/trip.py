"""
Trip database model.

Trips claim one vehicle and one driver while DISPATCHED.
"""

from sqlalchemy import Column, Integer, String, Float, Text, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from fleetflow.app.core.clock import utcnow
from fleetflow.app.db.session import Base
from fleetflow.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    Lifecycle: DRAFT -> DISPATCHED -> COMPLETED, or DRAFT/DISPATCHED -> CANCELLED.
    Only DRAFT trips may be edited or deleted.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_number = Column(String(20), unique=True, nullable=False, index=True)

    # Resource references
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Status
    status = Column(Enum(TripStatus), default=TripStatus.DRAFT, nullable=False, index=True)

    # Route
    origin_address = Column(String(255), nullable=False)
    origin_latitude = Column(Float, nullable=True)
    origin_longitude = Column(Float, nullable=True)
    destination_address = Column(String(255), nullable=False)
    destination_latitude = Column(Float, nullable=True)
    destination_longitude = Column(Float, nullable=True)

    # Load and planning
    cargo_weight = Column(Float, nullable=False)  # kg
    distance = Column(Float, default=0, nullable=False)  # km
    estimated_duration = Column(Float, default=0, nullable=False)  # hours
    scheduled_start_time = Column(DateTime, nullable=False)
    actual_start_time = Column(DateTime, nullable=True)
    actual_end_time = Column(DateTime, nullable=True)

    # Accumulated costs
    fuel_consumed = Column(Float, default=0, nullable=False)  # liters
    fuel_cost = Column(Float, default=0, nullable=False)
    revenue = Column(Float, default=0, nullable=False)

    notes = Column(Text, nullable=True)
    created_by_id = Column(Integer, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    vehicle = relationship("Vehicle", foreign_keys=[vehicle_id], lazy="raise")
    driver = relationship("User", foreign_keys=[driver_id], lazy="raise")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Trip(id={self.id}, number='{self.trip_number}', status='{self.status.value}')>"
