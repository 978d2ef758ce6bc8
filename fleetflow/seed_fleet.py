"""
Database seeding script for a demonstration fleet.

Creates a few vehicles and drivers through the transition coordinator so the
audit trail and invariants apply exactly as they do for API writes.

Run with: python -m fleetflow.seed_fleet
"""

import asyncio
from datetime import timedelta

from sqlalchemy import select

from fleetflow.app.core.clock import utcnow
from fleetflow.app.core.logging import configure_logging, get_logger
from fleetflow.app.db.session import AsyncSessionLocal, Base, engine
from fleetflow.app.domain.fleet.coordinator import TransitionCoordinator
from fleetflow.app.models.enums import DutyStatus, LicenceType, VehicleType
from fleetflow.app.models.vehicle import Vehicle
from fleetflow.app.schemas.driver import DriverCreate
from fleetflow.app.schemas.vehicle import VehicleCreate
from fleetflow.app.services.sequences import ensure_sequences

logger = get_logger("fleetflow.seed")

SEED_VEHICLES = [
    VehicleCreate(name="Van-05", model="Tata Ace", license_plate="GJ01AB1234",
                  vehicle_type=VehicleType.VAN, max_load_capacity=500, odometer=12000),
    VehicleCreate(name="Truck-01", model="Ashok Leyland 1616", license_plate="GJ01CD5678",
                  vehicle_type=VehicleType.TRUCK, max_load_capacity=5000, odometer=48000),
    VehicleCreate(name="Bike-12", model="Hero Splendor", license_plate="GJ05EF9012",
                  vehicle_type=VehicleType.BIKE, max_load_capacity=20, odometer=3000, region="West"),
]


def _seed_drivers():
    expiry = utcnow() + timedelta(days=365)
    return [
        DriverCreate(name="Alex Kumar", email="alex@fleetflow.dev", phone="+919800000001",
                     licence_number="GJ-DL-0001", licence_type=LicenceType.VAN_TEMPO,
                     licence_expiry=expiry, duty_status=DutyStatus.ON_DUTY),
        DriverCreate(name="Priya Shah", email="priya@fleetflow.dev", phone="+919800000002",
                     licence_number="GJ-DL-0002", licence_type=LicenceType.TRUCK,
                     licence_expiry=expiry, duty_status=DutyStatus.ON_DUTY),
        DriverCreate(name="Ravi Patel", email="ravi@fleetflow.dev", phone="+919800000003",
                     licence_number="GJ-DL-0003", licence_type=LicenceType.BIKE,
                     licence_expiry=expiry, duty_status=DutyStatus.OFF_DUTY),
    ]


async def seed_fleet():
    """
    Seed vehicles and drivers.

    Skips seeding when any vehicle already exists.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await ensure_sequences(conn)

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Vehicle.id).limit(1))
        if result.first() is not None:
            logger.info("Fleet already seeded, skipping")
            return

    coordinator = TransitionCoordinator(AsyncSessionLocal)
    for payload in SEED_VEHICLES:
        outcome = await coordinator.register_vehicle(payload)
        logger.info("Registered vehicle %s (%s)", outcome.vehicle.name, outcome.vehicle.license_plate)

    for payload in _seed_drivers():
        outcome = await coordinator.register_driver(payload)
        logger.info("Registered driver %s (%s)", outcome.driver.name, outcome.driver.duty_status.value)

    logger.info("Seeding completed")


async def main():
    configure_logging()
    try:
        await seed_fleet()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
