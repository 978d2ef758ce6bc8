"""
Maintenance (service log) schemas.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from fleetflow.app.models.maintenance_enums import ServiceStatus, ServiceType, ServicePriority
from fleetflow.app.schemas.vehicle import VehicleSummary, VehicleResponse


class PartReplaced(BaseModel):
    """One replaced part on a service log."""
    part_name: str = Field(..., min_length=1, max_length=150)
    part_cost: float = Field(0, ge=0)
    quantity: int = Field(1, ge=1)


class ServiceLogCreate(BaseModel):
    """Schema for opening a service log, which sends the vehicle to the shop."""
    vehicle_id: int
    issue_or_service: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    service_type: ServiceType = ServiceType.REPAIR
    priority: ServicePriority = ServicePriority.MEDIUM
    scheduled_date: Optional[datetime] = None
    estimated_cost: float = Field(0, ge=0)
    odometer_reading: Optional[float] = Field(None, ge=0)
    service_provider: str = Field("In-House", max_length=150)
    mechanic_name: Optional[str] = Field(None, max_length=150)
    notes: Optional[str] = None


class ServiceLogUpdate(BaseModel):
    """Schema for editing an open service log."""
    issue_or_service: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    service_type: Optional[ServiceType] = None
    priority: Optional[ServicePriority] = None
    scheduled_date: Optional[datetime] = None
    estimated_cost: Optional[float] = Field(None, ge=0)
    service_provider: Optional[str] = Field(None, max_length=150)
    mechanic_name: Optional[str] = Field(None, max_length=150)
    notes: Optional[str] = None


class ServiceComplete(BaseModel):
    """Work report applied when a service is completed."""
    cost: Optional[float] = Field(None, ge=0)
    odometer_reading: Optional[float] = Field(None, ge=0)
    parts_replaced: Optional[List[PartReplaced]] = None
    mechanic_name: Optional[str] = Field(None, max_length=150)
    notes: Optional[str] = None


class ServiceCancel(BaseModel):
    """Optional cancellation reason, prefixed to the log notes."""
    reason: Optional[str] = Field(None, max_length=500)


class ServiceLogResponse(BaseModel):
    """Schema for service log response."""
    id: int
    log_number: str
    vehicle_id: int
    issue_or_service: str
    description: str
    service_type: ServiceType
    priority: ServicePriority
    status: ServiceStatus
    scheduled_date: datetime
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    cost: float
    estimated_cost: float
    odometer_reading: Optional[float]
    service_provider: str
    mechanic_name: Optional[str]
    parts_replaced: List[PartReplaced] = []
    notes: Optional[str]
    created_by_id: Optional[int]
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ServiceLogDetailResponse(ServiceLogResponse):
    """Service log with its vehicle."""
    vehicle: Optional[VehicleSummary] = None


class ServiceTransitionResponse(BaseModel):
    """Post-commit snapshot of the log and its vehicle."""
    service_log: Optional[ServiceLogResponse] = None
    vehicle: VehicleResponse


class ServiceLogListResponse(BaseModel):
    """Schema for paginated service log list."""
    items: List[ServiceLogDetailResponse]
    total: int
    page: int
    limit: int
