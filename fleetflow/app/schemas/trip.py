"""
Trip schemas.

Request payloads for each trip transition and the flat/detail responses.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from fleetflow.app.models.trip_enums import TripStatus
from fleetflow.app.schemas.vehicle import VehicleSummary, VehicleResponse
from fleetflow.app.schemas.driver import DriverSummary, DriverResponse


class TripCreate(BaseModel):
    """Schema for creating a DRAFT trip."""
    vehicle_id: int
    driver_id: int

    origin_address: str = Field(..., min_length=1, max_length=255)
    origin_latitude: Optional[float] = Field(None, ge=-90, le=90)
    origin_longitude: Optional[float] = Field(None, ge=-180, le=180)
    destination_address: str = Field(..., min_length=1, max_length=255)
    destination_latitude: Optional[float] = Field(None, ge=-90, le=90)
    destination_longitude: Optional[float] = Field(None, ge=-180, le=180)

    cargo_weight: float = Field(..., gt=0, description="Cargo weight in kg")
    distance: float = Field(0, ge=0, description="Planned distance in km")
    estimated_duration: float = Field(0, ge=0, description="Planned duration in hours")
    scheduled_start_time: datetime
    revenue: float = Field(0, ge=0)
    notes: Optional[str] = None


class TripUpdate(BaseModel):
    """Schema for editing a DRAFT trip. Only supplied fields change."""
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None

    origin_address: Optional[str] = Field(None, min_length=1, max_length=255)
    origin_latitude: Optional[float] = Field(None, ge=-90, le=90)
    origin_longitude: Optional[float] = Field(None, ge=-180, le=180)
    destination_address: Optional[str] = Field(None, min_length=1, max_length=255)
    destination_latitude: Optional[float] = Field(None, ge=-90, le=90)
    destination_longitude: Optional[float] = Field(None, ge=-180, le=180)

    cargo_weight: Optional[float] = Field(None, gt=0)
    distance: Optional[float] = Field(None, ge=0)
    estimated_duration: Optional[float] = Field(None, ge=0)
    scheduled_start_time: Optional[datetime] = None
    revenue: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class TripComplete(BaseModel):
    """Completion report from the driver."""
    final_odometer: Optional[float] = Field(None, ge=0)
    fuel_consumed: Optional[float] = Field(None, ge=0)
    fuel_cost: Optional[float] = Field(None, ge=0)
    revenue: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class TripCancel(BaseModel):
    """Optional cancellation reason, stored in the trip notes."""
    reason: Optional[str] = Field(None, max_length=500)


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    trip_number: str
    vehicle_id: int
    driver_id: int
    status: TripStatus
    origin_address: str
    origin_latitude: Optional[float]
    origin_longitude: Optional[float]
    destination_address: str
    destination_latitude: Optional[float]
    destination_longitude: Optional[float]
    cargo_weight: float
    distance: float
    estimated_duration: float
    scheduled_start_time: datetime
    actual_start_time: Optional[datetime]
    actual_end_time: Optional[datetime]
    fuel_consumed: float
    fuel_cost: float
    revenue: float
    notes: Optional[str]
    created_by_id: Optional[int]
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TripDetailResponse(TripResponse):
    """Trip with its vehicle and driver."""
    vehicle: Optional[VehicleSummary] = None
    driver: Optional[DriverSummary] = None


class TripTransitionResponse(BaseModel):
    """Post-commit snapshot of every entity a trip transition touched."""
    trip: TripResponse
    vehicle: Optional[VehicleResponse] = None
    driver: Optional[DriverResponse] = None


class TripListResponse(BaseModel):
    """Schema for paginated trip list."""
    items: List[TripDetailResponse]
    total: int
    page: int
    limit: int
