"""
Service log (maintenance) database model.
"""

from sqlalchemy import Column, Integer, String, Float, Text, ForeignKey, DateTime, Enum, JSON
from sqlalchemy.orm import relationship
from fleetflow.app.core.clock import utcnow
from fleetflow.app.db.session import Base
from fleetflow.app.models.maintenance_enums import ServiceStatus, ServiceType, ServicePriority


class ServiceLog(Base):
    """
    Service log model.

    An open log (NEW or IN_PROGRESS) holds its vehicle IN_SHOP. The vehicle
    status is the mutual-exclusion flag, so a vehicle has at most one open log.
    """
    __tablename__ = "service_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    log_number = Column(String(20), unique=True, nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=False, index=True)

    issue_or_service = Column(String(255), nullable=False)
    description = Column(Text, default="", nullable=False)
    service_type = Column(Enum(ServiceType), default=ServiceType.REPAIR, nullable=False)
    priority = Column(Enum(ServicePriority), default=ServicePriority.MEDIUM, nullable=False)
    status = Column(Enum(ServiceStatus), default=ServiceStatus.NEW, nullable=False, index=True)

    scheduled_date = Column(DateTime, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    cost = Column(Float, default=0, nullable=False)
    estimated_cost = Column(Float, default=0, nullable=False)
    odometer_reading = Column(Float, nullable=True)

    service_provider = Column(String(150), default="In-House", nullable=False)
    mechanic_name = Column(String(150), nullable=True)
    # [{"part_name": str, "part_cost": float, "quantity": int}]
    parts_replaced = Column(JSON, default=list, nullable=False)
    notes = Column(Text, nullable=True)
    created_by_id = Column(Integer, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    vehicle = relationship("Vehicle", foreign_keys=[vehicle_id], lazy="raise")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<ServiceLog(id={self.id}, number='{self.log_number}', status='{self.status.value}')>"
