"""
Vehicle registry API Endpoints.

Registration and administrative edits. Lifecycle status only changes through
trips, maintenance, retire and reactivate.
"""

from typing import Optional
from fastapi import APIRouter, Body, Depends, Path, Query, status

from fleetflow.app.core.config import settings
from fleetflow.app.core.dependencies import get_actor_id, get_coordinator, get_queries
from fleetflow.app.core.reliability import retry_on_conflict
from fleetflow.app.domain.fleet.coordinator import TransitionCoordinator
from fleetflow.app.domain.fleet.queries import FleetQueries
from fleetflow.app.models.enums import VehicleStatus, VehicleType
from fleetflow.app.schemas.vehicle import (
    VehicleCreate, VehicleListResponse, VehicleResponse, VehicleRetire, VehicleUpdate
)

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def register_vehicle(
    payload: VehicleCreate,
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """Register a vehicle. License plates are unique and stored upper-case."""
    outcome = await retry_on_conflict(
        lambda: coordinator.register_vehicle(payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return VehicleResponse.model_validate(outcome.vehicle)


@router.get("", response_model=VehicleListResponse)
async def list_vehicles(
    status_filter: Optional[VehicleStatus] = Query(None, alias="status"),
    vehicle_type: Optional[VehicleType] = Query(None),
    region: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    queries: FleetQueries = Depends(get_queries)
):
    result = await queries.list_vehicles(
        status=status_filter,
        vehicle_type=vehicle_type,
        region=region,
        is_active=is_active,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order
    )
    return VehicleListResponse(
        items=[VehicleResponse.model_validate(vehicle) for vehicle in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit
    )


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    queries: FleetQueries = Depends(get_queries)
):
    vehicle = await queries.get_vehicle(vehicle_id)
    return VehicleResponse.model_validate(vehicle)


@router.put("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    payload: VehicleUpdate,
    vehicle_id: int = Path(..., description="Vehicle ID"),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    outcome = await retry_on_conflict(
        lambda: coordinator.update_vehicle(vehicle_id, payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return VehicleResponse.model_validate(outcome.vehicle)


@router.patch("/{vehicle_id}/retire", response_model=VehicleResponse)
async def retire_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    payload: Optional[VehicleRetire] = Body(None),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """Retire a vehicle (OUT_OF_SERVICE). Rejected while on a trip or in the shop."""
    outcome = await retry_on_conflict(
        lambda: coordinator.retire_vehicle(vehicle_id, payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return VehicleResponse.model_validate(outcome.vehicle)


@router.patch("/{vehicle_id}/reactivate", response_model=VehicleResponse)
async def reactivate_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    outcome = await retry_on_conflict(
        lambda: coordinator.reactivate_vehicle(vehicle_id, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return VehicleResponse.model_validate(outcome.vehicle)
