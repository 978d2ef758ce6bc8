"""
Expense log schemas.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from fleetflow.app.models.expense_enums import ExpenseCategory, FuelType, MiscExpenseType, PaymentMethod
from fleetflow.app.schemas.vehicle import VehicleSummary, VehicleResponse
from fleetflow.app.schemas.driver import DriverSummary
from fleetflow.app.schemas.trip import TripResponse


class ExpenseCreate(BaseModel):
    """
    Schema for recording an expense.

    FUEL requires liters and cost_per_liter (total_cost defaults to their
    product); MISC requires misc_expense_type and total_cost.
    """
    vehicle_id: int
    driver_id: int
    trip_id: Optional[int] = None
    expense_category: ExpenseCategory = ExpenseCategory.FUEL

    fuel_type: Optional[FuelType] = None
    liters: Optional[float] = Field(None, gt=0)
    cost_per_liter: Optional[float] = Field(None, gt=0)
    fuel_station: Optional[str] = Field(None, max_length=150)

    misc_expense_type: Optional[MiscExpenseType] = None
    misc_description: Optional[str] = Field(None, max_length=500)

    total_cost: Optional[float] = Field(None, gt=0)
    expense_date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=255)
    odometer_reading: float = Field(..., ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    distance_covered: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=500)


class ExpenseResponse(BaseModel):
    """Schema for expense log response."""
    id: int
    log_number: str
    trip_id: Optional[int]
    vehicle_id: int
    driver_id: int
    expense_category: ExpenseCategory
    fuel_type: Optional[FuelType]
    liters: Optional[float]
    cost_per_liter: Optional[float]
    fuel_station: Optional[str]
    misc_expense_type: Optional[MiscExpenseType]
    misc_description: Optional[str]
    total_cost: float
    expense_date: datetime
    location: Optional[str]
    odometer_reading: float
    payment_method: PaymentMethod
    distance_covered: Optional[float]
    fuel_efficiency: Optional[float]
    notes: Optional[str]
    created_by_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class ExpenseDetailResponse(ExpenseResponse):
    """Expense with vehicle and driver."""
    vehicle: Optional[VehicleSummary] = None
    driver: Optional[DriverSummary] = None


class ExpenseRecordResponse(BaseModel):
    """Post-commit snapshot of the expense and the entities it updated."""
    expense: ExpenseResponse
    vehicle: VehicleResponse
    trip: Optional[TripResponse] = None


class ExpenseListResponse(BaseModel):
    """Schema for paginated expense list."""
    items: List[ExpenseDetailResponse]
    total: int
    page: int
    limit: int
