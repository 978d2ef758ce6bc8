"""
Vehicle database model.

Vehicles are registered by fleet managers and claimed by trips and service
logs through their lifecycle status.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from fleetflow.app.core.clock import utcnow
from fleetflow.app.db.session import Base
from fleetflow.app.models.enums import VehicleStatus, VehicleType


class Vehicle(Base):
    """
    Vehicle model.

    Lifecycle invariants:
    - status == ON_TRIP  <=> current_trip_id is set
    - status == IN_SHOP  =>  current_trip_id is unset

    Lifecycle fields (status, current_trip_id, assigned_driver_id) are only
    written by the transition coordinator. Vehicles are never hard-deleted.
    """
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identification
    name = Column(String(100), nullable=False, index=True)
    model = Column(String(100), nullable=False)
    license_plate = Column(String(20), unique=True, nullable=False, index=True)
    vehicle_type = Column(Enum(VehicleType), default=VehicleType.VAN, nullable=False)

    # Capacity and telemetry
    max_load_capacity = Column(Float, nullable=False)  # kg
    odometer = Column(Float, default=0, nullable=False)  # km
    fuel_efficiency = Column(Float, default=0, nullable=False)  # km/L
    region = Column(String(100), default="Central", nullable=False, index=True)

    # Lifecycle
    status = Column(Enum(VehicleStatus), default=VehicleStatus.AVAILABLE, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Weak back-references (lookup only)
    assigned_driver_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    current_trip_id = Column(Integer, nullable=True, index=True)

    # Asset details
    acquisition_cost = Column(Float, default=0, nullable=False)
    insurance_expiry = Column(DateTime, nullable=True)
    last_maintenance_date = Column(DateTime, nullable=True)
    next_maintenance_due = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    assigned_driver = relationship("User", foreign_keys=[assigned_driver_id], lazy="raise")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Vehicle(id={self.id}, plate='{self.license_plate}', status='{self.status.value}')>"
