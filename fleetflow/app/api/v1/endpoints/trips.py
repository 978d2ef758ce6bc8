"""
Trip API Endpoints.

Trip lifecycle: create (DRAFT) -> dispatch -> complete, or cancel.
Every write goes through the transition coordinator; lost races are retried
a bounded number of times before a 409 is returned.
"""

from typing import Optional
from fastapi import APIRouter, Body, Depends, Path, Query, status

from fleetflow.app.core.config import settings
from fleetflow.app.core.dependencies import get_actor_id, get_coordinator, get_queries
from fleetflow.app.core.reliability import retry_on_conflict
from fleetflow.app.domain.fleet.coordinator import TransitionCoordinator, TransitionOutcome
from fleetflow.app.domain.fleet.queries import FleetQueries
from fleetflow.app.models.trip_enums import TripStatus
from fleetflow.app.schemas.driver import DriverResponse
from fleetflow.app.schemas.trip import (
    TripCancel, TripComplete, TripCreate, TripDetailResponse, TripListResponse,
    TripResponse, TripTransitionResponse, TripUpdate
)
from fleetflow.app.schemas.vehicle import VehicleResponse

router = APIRouter(prefix="/trips", tags=["Trips"])


def _transition_response(outcome: TransitionOutcome) -> TripTransitionResponse:
    return TripTransitionResponse(
        trip=TripResponse.model_validate(outcome.trip),
        vehicle=VehicleResponse.model_validate(outcome.vehicle) if outcome.vehicle else None,
        driver=DriverResponse.model_validate(outcome.driver) if outcome.driver else None,
    )


@router.post("", response_model=TripTransitionResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    payload: TripCreate,
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """
    Create a DRAFT trip.

    Validates:
    - Vehicle is active and AVAILABLE
    - Driver is an active, on-duty driver with a valid licence
    - Cargo weight fits the vehicle capacity
    """
    outcome = await retry_on_conflict(
        lambda: coordinator.create_trip(payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return _transition_response(outcome)


@router.get("", response_model=TripListResponse)
async def list_trips(
    status_filter: Optional[TripStatus] = Query(None, alias="status"),
    vehicle_id: Optional[int] = Query(None),
    driver_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    queries: FleetQueries = Depends(get_queries)
):
    """List trips with vehicle and driver, newest first by default."""
    result = await queries.list_trips(
        status=status_filter,
        vehicle_id=vehicle_id,
        driver_id=driver_id,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order
    )
    return TripListResponse(
        items=[TripDetailResponse.model_validate(trip) for trip in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit
    )


@router.get("/{trip_id}", response_model=TripDetailResponse)
async def get_trip(
    trip_id: int = Path(..., description="Trip ID"),
    queries: FleetQueries = Depends(get_queries)
):
    trip = await queries.get_trip(trip_id)
    return TripDetailResponse.model_validate(trip)


@router.put("/{trip_id}", response_model=TripTransitionResponse)
async def update_trip(
    payload: TripUpdate,
    trip_id: int = Path(..., description="Trip ID"),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """Edit a DRAFT trip."""
    outcome = await retry_on_conflict(
        lambda: coordinator.update_trip(trip_id, payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return _transition_response(outcome)


@router.delete("/{trip_id}")
async def delete_trip(
    trip_id: int = Path(..., description="Trip ID"),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """Delete a DRAFT trip."""
    outcome = await retry_on_conflict(
        lambda: coordinator.delete_trip(trip_id, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return {
        "message": "Trip deleted successfully",
        "id": trip_id,
        "trip_number": outcome.trip.trip_number
    }


@router.patch("/{trip_id}/dispatch", response_model=TripTransitionResponse)
async def dispatch_trip(
    trip_id: int = Path(..., description="Trip ID"),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """
    Dispatch a DRAFT trip.

    Actions:
    - Trip -> DISPATCHED
    - Vehicle -> ON_TRIP
    - Driver -> ON_TRIP
    """
    outcome = await retry_on_conflict(
        lambda: coordinator.dispatch_trip(trip_id, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return _transition_response(outcome)


@router.patch("/{trip_id}/complete", response_model=TripTransitionResponse)
async def complete_trip(
    trip_id: int = Path(..., description="Trip ID"),
    payload: Optional[TripComplete] = Body(None),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """
    Complete a DISPATCHED trip.

    Actions:
    - Trip -> COMPLETED
    - Vehicle -> AVAILABLE (odometer updated when supplied)
    - Driver -> ON_DUTY, trip counters incremented
    """
    outcome = await retry_on_conflict(
        lambda: coordinator.complete_trip(trip_id, payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return _transition_response(outcome)


@router.patch("/{trip_id}/cancel", response_model=TripTransitionResponse)
async def cancel_trip(
    trip_id: int = Path(..., description="Trip ID"),
    payload: Optional[TripCancel] = Body(None),
    coordinator: TransitionCoordinator = Depends(get_coordinator),
    actor_id: Optional[int] = Depends(get_actor_id)
):
    """Cancel a DRAFT or DISPATCHED trip. Dispatched resources are released."""
    outcome = await retry_on_conflict(
        lambda: coordinator.cancel_trip(trip_id, payload, actor_id=actor_id),
        attempts=settings.conflict_retry_attempts
    )
    return _transition_response(outcome)
