"""
Vehicle Pydantic schemas.

Defines request and response models for vehicle registration and the
fleet registry.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from fleetflow.app.models.enums import VehicleStatus, VehicleType


class VehicleCreate(BaseModel):
    """Schema for registering a new vehicle."""
    name: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    license_plate: str = Field(..., min_length=1, max_length=20, description="Unique registration plate")
    vehicle_type: VehicleType = VehicleType.VAN

    # Capacity constraints
    max_load_capacity: float = Field(..., description="Maximum cargo weight in kg")
    odometer: float = Field(0, ge=0, description="Current odometer in km")
    region: str = Field("Central", max_length=100)

    # Asset details
    acquisition_cost: float = Field(0, ge=0)
    insurance_expiry: Optional[datetime] = None


class VehicleUpdate(BaseModel):
    """
    Schema for updating non-lifecycle vehicle fields.

    Status and trip/driver references are owned by transitions and cannot be
    set here.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    vehicle_type: Optional[VehicleType] = None
    max_load_capacity: Optional[float] = Field(None, gt=0)
    region: Optional[str] = Field(None, max_length=100)
    acquisition_cost: Optional[float] = Field(None, ge=0)
    insurance_expiry: Optional[datetime] = None


class VehicleRetire(BaseModel):
    """Optional reason recorded in the audit trail."""
    reason: Optional[str] = Field(None, max_length=500)


class VehicleSummary(BaseModel):
    """Compact vehicle view embedded in trip and log details."""
    id: int
    name: str
    license_plate: str
    status: VehicleStatus

    class Config:
        from_attributes = True


class VehicleResponse(BaseModel):
    """Schema for vehicle response."""
    id: int
    name: str
    model: str
    license_plate: str
    vehicle_type: VehicleType
    max_load_capacity: float
    odometer: float
    fuel_efficiency: float
    region: str
    status: VehicleStatus
    is_active: bool
    assigned_driver_id: Optional[int]
    current_trip_id: Optional[int]
    acquisition_cost: float
    insurance_expiry: Optional[datetime]
    last_maintenance_date: Optional[datetime]
    next_maintenance_due: Optional[datetime]
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VehicleListResponse(BaseModel):
    """Schema for paginated vehicle list."""
    items: List[VehicleResponse]
    total: int
    page: int
    limit: int
