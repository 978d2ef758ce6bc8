"""
Trip lifecycle tests.

Create -> dispatch -> complete, cancellation rules, and DRAFT-only edits,
driven through the transition coordinator.
"""

import pytest
from sqlalchemy import select

from fleetflow.app.core.exceptions import NotFoundError, PreconditionFailed
from fleetflow.app.domain.fleet.coordinator import TransitionKind
from fleetflow.app.domain.fleet.invariants import ViolationCode
from fleetflow.app.models.audit_log import AuditLog
from fleetflow.app.models.enums import DutyStatus, VehicleStatus
from fleetflow.app.models.trip import Trip
from fleetflow.app.models.trip_enums import TripStatus
from fleetflow.app.schemas.driver import DutyStatusUpdate
from fleetflow.app.schemas.trip import TripCancel, TripComplete, TripUpdate
from fleetflow.app.services.audit import AuditAction


@pytest.mark.asyncio
async def test_happy_path(coordinator, queries, make_vehicle, make_driver, trip_payload):
    """Van-05 (500kg) with Alex (ON_DUTY) carrying 450kg: create, dispatch, complete."""
    vehicle = await make_vehicle(name="Van-05", max_load_capacity=500, odometer=1000)
    driver = await make_driver(name="Alex")

    created = await coordinator.create_trip(trip_payload(vehicle.id, driver.id, cargo_weight=450), actor_id=7)
    trip = created.trip
    assert trip.status == TripStatus.DRAFT
    assert trip.trip_number == "TRP000001"
    assert trip.created_by_id == 7

    dispatched = await coordinator.dispatch_trip(trip.id, actor_id=7)
    assert dispatched.trip.status == TripStatus.DISPATCHED
    assert dispatched.trip.actual_start_time is not None
    assert dispatched.vehicle.status == VehicleStatus.ON_TRIP
    assert dispatched.vehicle.current_trip_id == trip.id
    assert dispatched.vehicle.assigned_driver_id == driver.id
    assert dispatched.driver.duty_status == DutyStatus.ON_TRIP

    completed = await coordinator.complete_trip(
        trip.id,
        TripComplete(final_odometer=1250, fuel_consumed=30, fuel_cost=2850, revenue=9000),
        actor_id=7
    )
    assert completed.trip.status == TripStatus.COMPLETED
    assert completed.trip.actual_end_time is not None
    assert completed.trip.fuel_consumed == 30
    assert completed.trip.revenue == 9000
    assert completed.vehicle.status == VehicleStatus.AVAILABLE
    assert completed.vehicle.current_trip_id is None
    assert completed.vehicle.assigned_driver_id is None
    assert completed.vehicle.odometer == 1250
    assert completed.driver.duty_status == DutyStatus.ON_DUTY
    assert completed.driver.total_trips == 1
    assert completed.driver.completed_trips == 1

    # Committed state matches the returned snapshot
    stored_vehicle = await queries.get_vehicle(vehicle.id)
    assert stored_vehicle.status == VehicleStatus.AVAILABLE
    assert stored_vehicle.odometer == 1250


@pytest.mark.asyncio
async def test_capacity_violation_creates_nothing(coordinator, db_session, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle(max_load_capacity=5000)
    driver = await make_driver()

    with pytest.raises(PreconditionFailed) as exc_info:
        await coordinator.create_trip(trip_payload(vehicle.id, driver.id, cargo_weight=6000))

    assert exc_info.value.reason == ViolationCode.CARGO_EXCEEDS_CAPACITY
    assert exc_info.value.message == "Cargo weight (6000kg) exceeds vehicle capacity (5000kg)"
    assert exc_info.value.status_code == 400

    result = await db_session.execute(select(Trip))
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_rejected_create_does_not_consume_a_number(coordinator, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()

    with pytest.raises(PreconditionFailed):
        await coordinator.create_trip(trip_payload(vehicle.id, driver.id, cargo_weight=9999))

    outcome = await coordinator.create_trip(trip_payload(vehicle.id, driver.id))
    assert outcome.trip.trip_number == "TRP000001"


@pytest.mark.asyncio
async def test_create_with_missing_vehicle(coordinator, make_driver, trip_payload):
    driver = await make_driver()
    with pytest.raises(NotFoundError) as exc_info:
        await coordinator.create_trip(trip_payload(999, driver.id))
    assert exc_info.value.status_code == 404
    assert exc_info.value.details == {"resource": "Vehicle", "id": 999}


@pytest.mark.asyncio
async def test_double_complete_is_rejected(coordinator, queries, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip
    await coordinator.dispatch_trip(trip.id)
    await coordinator.complete_trip(trip.id)

    with pytest.raises(PreconditionFailed) as exc_info:
        await coordinator.complete_trip(trip.id)
    assert exc_info.value.message == "Cannot complete trip with status: COMPLETED"

    # Counters were incremented exactly once
    stored_driver = await queries.get_driver(driver.id)
    assert stored_driver.completed_trips == 1
    assert stored_driver.total_trips == 1


@pytest.mark.asyncio
async def test_double_dispatch_is_rejected(coordinator, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip
    await coordinator.dispatch_trip(trip.id)

    with pytest.raises(PreconditionFailed) as exc_info:
        await coordinator.dispatch_trip(trip.id)
    assert exc_info.value.reason == ViolationCode.TRIP_NOT_DRAFT


@pytest.mark.asyncio
async def test_cancel_draft_keeps_resources_untouched(coordinator, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip

    outcome = await coordinator.cancel_trip(trip.id, TripCancel(reason="Customer postponed"))

    assert outcome.trip.status == TripStatus.CANCELLED
    assert outcome.trip.notes == "Customer postponed"
    assert outcome.vehicle.status == VehicleStatus.AVAILABLE
    assert outcome.driver.duty_status == DutyStatus.ON_DUTY
    assert outcome.driver.cancelled_trips == 0


@pytest.mark.asyncio
async def test_cancel_dispatched_releases_resources(coordinator, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip
    await coordinator.dispatch_trip(trip.id)

    outcome = await coordinator.cancel_trip(trip.id)

    assert outcome.trip.status == TripStatus.CANCELLED
    assert outcome.vehicle.status == VehicleStatus.AVAILABLE
    assert outcome.vehicle.current_trip_id is None
    assert outcome.vehicle.assigned_driver_id is None
    assert outcome.driver.duty_status == DutyStatus.ON_DUTY
    assert outcome.driver.cancelled_trips == 1
    assert outcome.driver.completed_trips == 0


@pytest.mark.asyncio
async def test_cancel_twice_is_rejected(coordinator, queries, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip
    await coordinator.dispatch_trip(trip.id)
    await coordinator.cancel_trip(trip.id)

    with pytest.raises(PreconditionFailed) as exc_info:
        await coordinator.cancel_trip(trip.id)
    assert exc_info.value.message == "Cannot cancel trip with status: CANCELLED"

    stored_driver = await queries.get_driver(driver.id)
    assert stored_driver.cancelled_trips == 1


@pytest.mark.asyncio
async def test_cancel_completed_is_rejected(coordinator, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip
    await coordinator.dispatch_trip(trip.id)
    await coordinator.complete_trip(trip.id)

    with pytest.raises(PreconditionFailed):
        await coordinator.cancel_trip(trip.id)


@pytest.mark.asyncio
async def test_complete_rejects_odometer_regression(coordinator, queries, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle(odometer=5000)
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip
    await coordinator.dispatch_trip(trip.id)

    with pytest.raises(PreconditionFailed) as exc_info:
        await coordinator.complete_trip(trip.id, TripComplete(final_odometer=4000))
    assert exc_info.value.reason == ViolationCode.ODOMETER_REGRESSION

    stored_trip = await queries.get_trip(trip.id)
    assert stored_trip.status == TripStatus.DISPATCHED


@pytest.mark.asyncio
async def test_dispatch_rejected_when_driver_went_off_duty(
    coordinator, make_vehicle, make_driver, trip_payload
):
    vehicle = await make_vehicle()
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip
    await coordinator.set_duty_status(driver.id, DutyStatusUpdate(duty_status=DutyStatus.OFF_DUTY))

    with pytest.raises(PreconditionFailed) as exc_info:
        await coordinator.dispatch_trip(trip.id)
    assert exc_info.value.message == "Driver is no longer on duty. Current status: OFF_DUTY"


@pytest.mark.asyncio
async def test_second_trip_on_claimed_vehicle_is_rejected(coordinator, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    first_driver = await make_driver()
    second_driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, first_driver.id))).trip
    await coordinator.dispatch_trip(trip.id)

    with pytest.raises(PreconditionFailed) as exc_info:
        await coordinator.create_trip(trip_payload(vehicle.id, second_driver.id))
    assert exc_info.value.message == "Vehicle is not available. Current status: ON_TRIP"


@pytest.mark.asyncio
async def test_update_draft_trip(coordinator, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    bigger = await make_vehicle(max_load_capacity=2000)
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip

    with pytest.raises(PreconditionFailed) as exc_info:
        await coordinator.update_trip(trip.id, TripUpdate(cargo_weight=1500))
    assert exc_info.value.reason == ViolationCode.CARGO_EXCEEDS_CAPACITY

    outcome = await coordinator.update_trip(
        trip.id, TripUpdate(vehicle_id=bigger.id, cargo_weight=1500, notes="Moved to larger van")
    )
    assert outcome.trip.vehicle_id == bigger.id
    assert outcome.trip.cargo_weight == 1500
    assert outcome.trip.notes == "Moved to larger van"
    assert outcome.trip.version == 2


@pytest.mark.asyncio
async def test_update_and_delete_require_draft(coordinator, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip
    await coordinator.dispatch_trip(trip.id)

    with pytest.raises(PreconditionFailed) as exc_info:
        await coordinator.update_trip(trip.id, TripUpdate(notes="late change"))
    assert exc_info.value.message == "Can only update trips in DRAFT status, current status: DISPATCHED"

    with pytest.raises(PreconditionFailed):
        await coordinator.delete_trip(trip.id)


@pytest.mark.asyncio
async def test_delete_draft_trip(coordinator, queries, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id))).trip

    await coordinator.delete_trip(trip.id)

    with pytest.raises(NotFoundError):
        await queries.get_trip(trip.id)


@pytest.mark.asyncio
async def test_execute_dispatches_by_kind(coordinator, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()

    created = await coordinator.execute(TransitionKind.CREATE_TRIP, payload=trip_payload(vehicle.id, driver.id))
    dispatched = await coordinator.execute(TransitionKind.DISPATCH_TRIP, created.trip.id)
    cancelled = await coordinator.execute(TransitionKind.CANCEL_TRIP, created.trip.id, TripCancel(reason="x"))

    assert dispatched.trip.status == TripStatus.DISPATCHED
    assert cancelled.trip.status == TripStatus.CANCELLED

    with pytest.raises(ValueError):
        await coordinator.execute(TransitionKind.COMPLETE_TRIP)


@pytest.mark.asyncio
async def test_transitions_write_audit_entries(coordinator, db_session, make_vehicle, make_driver, trip_payload):
    vehicle = await make_vehicle()
    driver = await make_driver()
    trip = (await coordinator.create_trip(trip_payload(vehicle.id, driver.id), actor_id=3)).trip
    await coordinator.dispatch_trip(trip.id, actor_id=3)
    await coordinator.complete_trip(trip.id, actor_id=4)

    result = await db_session.execute(
        select(AuditLog).where(AuditLog.entity_type == "trip").order_by(AuditLog.id)
    )
    entries = result.scalars().all()
    assert [entry.action for entry in entries] == [
        AuditAction.TRIP_CREATED, AuditAction.TRIP_DISPATCHED, AuditAction.TRIP_COMPLETED
    ]
    assert [entry.actor_id for entry in entries] == [3, 3, 4]
    assert entries[0].meta_data["trip_number"] == "TRP000001"
