"""
Driver API Endpoints.

Driver registration, listings and the ON_DUTY/OFF_DUTY toggle.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, status

from fleetflow.app.core.config import settings
from fleetflow.app.core.dependencies import get_actor_id, get_coordinator, get_queries
from fleetflow.app.core.reliability import retry_on_conflict
from fleetflow.app.domain.fleet.coordinator import TransitionCoordinator
from fleetflow.app.domain.fleet.queries import FleetQueries
from fleetflow.app.models.enums import DutyStatus
from fleetflow.app.schemas.driver import (
    DriverCreate, DriverListResponse, DriverResponse, DutyStatusUpdate
)

router = APIRouter(prefix="/drivers", tags=["Drivers"])


@router.post("", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def register_driver(
    payload: DriverCreate,
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    outcome = await retry_on_conflict(
        lambda: coordinator.register_driver(payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return DriverResponse.model_validate(outcome.driver)


@router.get("", response_model=DriverListResponse)
async def list_drivers(
    duty_status: Optional[DutyStatus] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    sort_by: str = Query("name"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    queries: FleetQueries = Depends(get_queries)
):
    result = await queries.list_drivers(
        duty_status=duty_status,
        is_active=is_active,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order
    )
    return DriverListResponse(
        items=[DriverResponse.model_validate(driver) for driver in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit
    )


@router.get("/available", response_model=DriverListResponse)
async def list_available_drivers(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    queries: FleetQueries = Depends(get_queries)
):
    """Active drivers currently ON_DUTY, i.e. assignable to a new trip."""
    result = await queries.list_available_drivers(page=page, limit=limit)
    return DriverListResponse(
        items=[DriverResponse.model_validate(driver) for driver in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit
    )


@router.get("/{driver_id}", response_model=DriverResponse)
async def get_driver(
    driver_id: int = Path(..., description="Driver ID"),
    queries: FleetQueries = Depends(get_queries)
):
    driver = await queries.get_driver(driver_id)
    return DriverResponse.model_validate(driver)


@router.patch("/{driver_id}/duty", response_model=DriverResponse)
async def set_duty_status(
    payload: DutyStatusUpdate,
    driver_id: int = Path(..., description="Driver ID"),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """Toggle ON_DUTY/OFF_DUTY. Rejected while the driver is on a trip."""
    outcome = await retry_on_conflict(
        lambda: coordinator.set_duty_status(driver_id, payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return DriverResponse.model_validate(outcome.driver)
