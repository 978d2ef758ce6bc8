"""
Driver schemas.

Drivers are users with the DRIVER role.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from fleetflow.app.models.enums import DutyStatus, LicenceType, UserRole


class DriverCreate(BaseModel):
    """Schema for registering a driver."""
    name: str = Field(..., min_length=1, max_length=150)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str = Field(..., min_length=5, max_length=30)
    licence_number: str = Field(..., min_length=1, max_length=100)
    licence_type: LicenceType
    licence_expiry: Optional[datetime] = None
    duty_status: DutyStatus = DutyStatus.OFF_DUTY


class DutyStatusUpdate(BaseModel):
    """Duty toggle requested by a driver or dispatcher."""
    duty_status: DutyStatus


class DriverSummary(BaseModel):
    """Compact driver view embedded in trip and expense details."""
    id: int
    name: str
    phone: str
    duty_status: DutyStatus

    class Config:
        from_attributes = True


class DriverResponse(BaseModel):
    """Schema for driver response."""
    id: int
    name: str
    email: str
    phone: str
    role: UserRole
    is_active: bool
    licence_number: Optional[str]
    licence_type: Optional[LicenceType]
    licence_expiry: Optional[datetime]
    duty_status: DutyStatus
    total_trips: int
    completed_trips: int
    cancelled_trips: int
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DriverListResponse(BaseModel):
    """Schema for paginated driver list."""
    items: List[DriverResponse]
    total: int
    page: int
    limit: int
