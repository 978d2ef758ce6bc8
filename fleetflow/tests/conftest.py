"""
Centralized Test Configuration.
"""

import itertools
from datetime import timedelta

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from fleetflow.app.main import app
from fleetflow.app.core.clock import utcnow
from fleetflow.app.core.dependencies import get_session_factory
from fleetflow.app.db.session import Base, build_session_factory
from fleetflow.app.domain.fleet.coordinator import TransitionCoordinator
from fleetflow.app.domain.fleet.queries import FleetQueries
from fleetflow.app.models.enums import DutyStatus, LicenceType, VehicleType
from fleetflow.app.schemas.driver import DriverCreate
from fleetflow.app.schemas.trip import TripCreate
from fleetflow.app.schemas.vehicle import VehicleCreate
from fleetflow.app.services.sequences import ensure_sequences

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def enable_sqlite_foreign_keys(sync_engine):
    """Enable foreign key constraints for SQLite connections of an engine."""
    @event.listens_for(sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture
async def engine():
    """Fresh in-memory database per test, with tables and sequence counters."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine.sync_engine)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await ensure_sequences(conn)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def coordinator(session_factory):
    return TransitionCoordinator(session_factory)


@pytest.fixture
def queries(session_factory):
    return FleetQueries(session_factory)


@pytest.fixture
async def db_session(session_factory):
    """Session for direct assertions against stored rows."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """Async client wired to the test database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}


# Fixture data factories

@pytest.fixture
def make_vehicle(coordinator):
    """Register a vehicle through the coordinator. Defaults: 500kg van at 1000 km."""
    counter = itertools.count(1)

    async def _make(**overrides):
        number = next(counter)
        data = {
            "name": f"Van-{number:02d}",
            "model": "Tata Ace",
            "license_plate": f"GJ01AB{number:04d}",
            "vehicle_type": VehicleType.VAN,
            "max_load_capacity": 500,
            "odometer": 1000,
        }
        data.update(overrides)
        outcome = await coordinator.register_vehicle(VehicleCreate(**data))
        return outcome.vehicle

    return _make


@pytest.fixture
def make_driver(coordinator):
    """Register an ON_DUTY driver with a licence valid for a year."""
    counter = itertools.count(1)

    async def _make(**overrides):
        number = next(counter)
        data = {
            "name": f"Driver {number}",
            "email": f"driver{number}@fleetflow.dev",
            "phone": f"+91980000{number:04d}",
            "licence_number": f"GJ-DL-{number:04d}",
            "licence_type": LicenceType.VAN_TEMPO,
            "licence_expiry": utcnow() + timedelta(days=365),
            "duty_status": DutyStatus.ON_DUTY,
        }
        data.update(overrides)
        outcome = await coordinator.register_driver(DriverCreate(**data))
        return outcome.driver

    return _make


@pytest.fixture
def trip_payload():
    """Build a TripCreate for a vehicle/driver pair."""
    def _build(vehicle_id: int, driver_id: int, **overrides) -> TripCreate:
        data = {
            "vehicle_id": vehicle_id,
            "driver_id": driver_id,
            "origin_address": "Ahmedabad Depot",
            "destination_address": "Vadodara Hub",
            "cargo_weight": 450,
            "distance": 110,
            "estimated_duration": 2.5,
            "scheduled_start_time": utcnow() + timedelta(hours=1),
        }
        data.update(overrides)
        return TripCreate(**data)

    return _build
