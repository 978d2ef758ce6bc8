"""
Concurrency Tests.

Two transitions racing for the same vehicle: exactly one wins.
"""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from fleetflow.app.core.exceptions import ConflictRetryable, PreconditionFailed
from fleetflow.app.core.reliability import retry_on_conflict
from fleetflow.app.db.session import Base, build_session_factory
from fleetflow.app.domain.fleet.coordinator import TransitionCoordinator
from fleetflow.app.domain.fleet.queries import FleetQueries
from fleetflow.app.models.enums import DutyStatus, LicenceType, VehicleStatus
from fleetflow.app.models.maintenance_enums import ServiceStatus
from fleetflow.app.models.trip_enums import TripStatus
from fleetflow.app.schemas.driver import DriverCreate
from fleetflow.app.schemas.maintenance import ServiceLogCreate
from fleetflow.app.schemas.vehicle import VehicleCreate
from fleetflow.app.services.sequences import ensure_sequences


@pytest.fixture
async def file_coordinator(tmp_path):
    """
    Coordinator on a file database so each unit of work gets its own
    connection, as it would against a server database.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await ensure_sequences(conn)

    session_factory = build_session_factory(engine)
    yield TransitionCoordinator(session_factory), FleetQueries(session_factory)

    await engine.dispose()


async def register_fleet(coordinator, drivers: int):
    vehicle = (await coordinator.register_vehicle(VehicleCreate(
        name="Van-05", model="Tata Ace", license_plate="GJ01AB1234", max_load_capacity=500
    ))).vehicle
    registered = []
    for number in range(drivers):
        registered.append((await coordinator.register_driver(DriverCreate(
            name=f"Driver {number}",
            email=f"race{number}@fleetflow.dev",
            phone=f"+9198765{number:05d}",
            licence_number=f"RACE-{number}",
            licence_type=LicenceType.VAN_TEMPO,
            duty_status=DutyStatus.ON_DUTY,
        ))).driver)
    return vehicle, registered


def assert_one_winner(results):
    successes = [result for result in results if not isinstance(result, BaseException)]
    failures = [result for result in results if isinstance(result, BaseException)]
    assert len(successes) == 1
    assert len(failures) == len(results) - 1
    for failure in failures:
        assert isinstance(failure, (PreconditionFailed, ConflictRetryable)), repr(failure)
    return successes[0]


@pytest.mark.asyncio
async def test_concurrent_dispatch_same_vehicle(file_coordinator, trip_payload):
    """Two DRAFT trips share a vehicle; dispatching both at once claims it once."""
    coordinator, queries = file_coordinator
    vehicle, (first_driver, second_driver) = await register_fleet(coordinator, drivers=2)

    first = (await coordinator.create_trip(trip_payload(vehicle.id, first_driver.id))).trip
    second = (await coordinator.create_trip(trip_payload(vehicle.id, second_driver.id))).trip

    results = await asyncio.gather(
        coordinator.dispatch_trip(first.id),
        coordinator.dispatch_trip(second.id),
        return_exceptions=True
    )
    winner = assert_one_winner(results)

    stored_vehicle = await queries.get_vehicle(vehicle.id)
    assert stored_vehicle.status == VehicleStatus.ON_TRIP
    assert stored_vehicle.current_trip_id == winner.trip.id

    dispatched = await queries.list_trips(status=TripStatus.DISPATCHED)
    assert dispatched.total == 1

    loser_id = second.id if winner.trip.id == first.id else first.id
    loser = await queries.get_trip(loser_id)
    assert loser.status == TripStatus.DRAFT

    idle_driver = second_driver if winner.driver.id == first_driver.id else first_driver
    assert (await queries.get_driver(idle_driver.id)).duty_status == DutyStatus.ON_DUTY


@pytest.mark.asyncio
async def test_concurrent_service_logs_same_vehicle(file_coordinator):
    """Opening two service logs at once leaves exactly one open log."""
    coordinator, queries = file_coordinator
    vehicle, _ = await register_fleet(coordinator, drivers=0)

    def payload(issue):
        return ServiceLogCreate(vehicle_id=vehicle.id, issue_or_service=issue)

    results = await asyncio.gather(
        coordinator.create_service_log(payload("Oil change")),
        coordinator.create_service_log(payload("Brake pads")),
        return_exceptions=True
    )
    assert_one_winner(results)

    open_logs = await queries.list_service_logs(status=ServiceStatus.NEW, vehicle_id=vehicle.id)
    assert open_logs.total == 1
    assert (await queries.get_vehicle(vehicle.id)).status == VehicleStatus.IN_SHOP


@pytest.mark.asyncio
async def test_concurrent_creates_get_distinct_numbers(file_coordinator, trip_payload):
    coordinator, queries = file_coordinator
    vehicle, drivers = await register_fleet(coordinator, drivers=1)

    async def create():
        return await retry_on_conflict(
            lambda: coordinator.create_trip(trip_payload(vehicle.id, drivers[0].id)),
            attempts=10,
            backoff_seconds=0.01
        )

    outcomes = await asyncio.gather(*(create() for _ in range(4)))
    numbers = sorted(outcome.trip.trip_number for outcome in outcomes)
    assert numbers == ["TRP000001", "TRP000002", "TRP000003", "TRP000004"]
