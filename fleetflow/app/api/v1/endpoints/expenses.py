"""
Expense API Endpoints.

Expenses are append-only; recording one updates vehicle telemetry and the
linked trip's fuel totals in the same commit.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, status

from fleetflow.app.core.config import settings
from fleetflow.app.core.dependencies import get_actor_id, get_coordinator, get_queries
from fleetflow.app.core.reliability import retry_on_conflict
from fleetflow.app.domain.fleet.coordinator import TransitionCoordinator
from fleetflow.app.domain.fleet.queries import FleetQueries
from fleetflow.app.models.expense_enums import ExpenseCategory
from fleetflow.app.schemas.expense import (
    ExpenseCreate, ExpenseDetailResponse, ExpenseListResponse, ExpenseRecordResponse, ExpenseResponse
)
from fleetflow.app.schemas.trip import TripResponse
from fleetflow.app.schemas.vehicle import VehicleResponse

router = APIRouter(prefix="/expenses", tags=["Expenses"])


@router.post("", response_model=ExpenseRecordResponse, status_code=status.HTTP_201_CREATED)
async def record_expense(
    payload: ExpenseCreate,
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """
    Record a fuel or miscellaneous expense.

    Validates:
    - FUEL has liters and cost per liter, MISC has a type and total cost
    - Linked trip (if any) is COMPLETED
    - Odometer reading is not below the vehicle's odometer
    """
    outcome = await retry_on_conflict(
        lambda: coordinator.record_expense(payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return ExpenseRecordResponse(
        expense=ExpenseResponse.model_validate(outcome.primary),
        vehicle=VehicleResponse.model_validate(outcome.vehicle),
        trip=TripResponse.model_validate(outcome.trip) if outcome.trip else None,
    )


@router.get("", response_model=ExpenseListResponse)
async def list_expenses(
    category: Optional[ExpenseCategory] = Query(None),
    vehicle_id: Optional[int] = Query(None),
    driver_id: Optional[int] = Query(None),
    trip_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    sort_by: str = Query("expense_date"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    queries: FleetQueries = Depends(get_queries)
):
    result = await queries.list_expense_logs(
        category=category,
        vehicle_id=vehicle_id,
        driver_id=driver_id,
        trip_id=trip_id,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order
    )
    return ExpenseListResponse(
        items=[ExpenseDetailResponse.model_validate(expense) for expense in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit
    )


@router.get("/{expense_id}", response_model=ExpenseDetailResponse)
async def get_expense(
    expense_id: int = Path(..., description="Expense log ID"),
    queries: FleetQueries = Depends(get_queries)
):
    expense = await queries.get_expense_log(expense_id)
    return ExpenseDetailResponse.model_validate(expense)
