"""
Maintenance API Endpoints.

Opening a service log sends the vehicle to the shop; completing, cancelling
or deleting it brings the vehicle back.
"""

from typing import Optional
from fastapi import APIRouter, Body, Depends, Path, Query, status

from fleetflow.app.core.config import settings
from fleetflow.app.core.dependencies import get_actor_id, get_coordinator, get_queries
from fleetflow.app.core.reliability import retry_on_conflict
from fleetflow.app.domain.fleet.coordinator import TransitionCoordinator, TransitionOutcome
from fleetflow.app.domain.fleet.queries import FleetQueries
from fleetflow.app.models.maintenance_enums import ServicePriority, ServiceStatus, ServiceType
from fleetflow.app.schemas.maintenance import (
    ServiceCancel, ServiceComplete, ServiceLogCreate, ServiceLogDetailResponse,
    ServiceLogListResponse, ServiceLogResponse, ServiceLogUpdate, ServiceTransitionResponse
)
from fleetflow.app.schemas.vehicle import VehicleResponse

router = APIRouter(prefix="/maintenance", tags=["Maintenance"])


def _transition_response(outcome: TransitionOutcome) -> ServiceTransitionResponse:
    return ServiceTransitionResponse(
        service_log=ServiceLogResponse.model_validate(outcome.primary),
        vehicle=VehicleResponse.model_validate(outcome.vehicle),
    )


@router.post("", response_model=ServiceTransitionResponse, status_code=status.HTTP_201_CREATED)
async def create_service_log(
    payload: ServiceLogCreate,
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """
    Open a service log.

    Rejected when the vehicle is already in the shop, on a trip, or retired.
    """
    outcome = await retry_on_conflict(
        lambda: coordinator.create_service_log(payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return _transition_response(outcome)


@router.get("", response_model=ServiceLogListResponse)
async def list_service_logs(
    status_filter: Optional[ServiceStatus] = Query(None, alias="status"),
    vehicle_id: Optional[int] = Query(None),
    service_type: Optional[ServiceType] = Query(None),
    priority: Optional[ServicePriority] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    queries: FleetQueries = Depends(get_queries)
):
    result = await queries.list_service_logs(
        status=status_filter,
        vehicle_id=vehicle_id,
        service_type=service_type,
        priority=priority,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order
    )
    return ServiceLogListResponse(
        items=[ServiceLogDetailResponse.model_validate(log) for log in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit
    )


@router.get("/{log_id}", response_model=ServiceLogDetailResponse)
async def get_service_log(
    log_id: int = Path(..., description="Service log ID"),
    queries: FleetQueries = Depends(get_queries)
):
    service_log = await queries.get_service_log(log_id)
    return ServiceLogDetailResponse.model_validate(service_log)


@router.put("/{log_id}", response_model=ServiceTransitionResponse)
async def update_service_log(
    payload: ServiceLogUpdate,
    log_id: int = Path(..., description="Service log ID"),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """Edit an open (NEW or IN_PROGRESS) service log."""
    outcome = await retry_on_conflict(
        lambda: coordinator.update_service_log(log_id, payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return _transition_response(outcome)


@router.patch("/{log_id}/start", response_model=ServiceTransitionResponse)
async def start_service(
    log_id: int = Path(..., description="Service log ID"),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    outcome = await retry_on_conflict(
        lambda: coordinator.start_service(log_id, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return _transition_response(outcome)


@router.patch("/{log_id}/complete", response_model=ServiceTransitionResponse)
async def complete_service(
    log_id: int = Path(..., description="Service log ID"),
    payload: Optional[ServiceComplete] = Body(None),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """
    Complete a service.

    Actions:
    - Service log -> COMPLETED with cost, parts and odometer
    - Vehicle -> AVAILABLE, next maintenance due date set
    """
    outcome = await retry_on_conflict(
        lambda: coordinator.complete_service(log_id, payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return _transition_response(outcome)


@router.patch("/{log_id}/cancel", response_model=ServiceTransitionResponse)
async def cancel_service(
    log_id: int = Path(..., description="Service log ID"),
    payload: Optional[ServiceCancel] = Body(None),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    outcome = await retry_on_conflict(
        lambda: coordinator.cancel_service(log_id, payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return _transition_response(outcome)


@router.delete("/{log_id}")
async def delete_service(
    log_id: int = Path(..., description="Service log ID"),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """Delete a NEW service log and return its vehicle to AVAILABLE."""
    outcome = await retry_on_conflict(
        lambda: coordinator.delete_service(log_id, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return {
        "message": "Service log deleted successfully",
        "id": log_id,
        "vehicle": VehicleResponse.model_validate(outcome.vehicle)
    }
