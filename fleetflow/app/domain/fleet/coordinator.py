"""
Transition coordinator.

Executes every lifecycle transition of the fleet (trips, service logs,
expenses, vehicles and driver duty) as one unit of work:

1. open a session and begin a transaction
2. load the primary entity, then its coupled entities, under row locks in a
   fixed order (trip/service log -> vehicle -> driver)
3. validate with the invariant predicates
4. mutate, append the audit entry, commit

Storage errors are mapped onto the core taxonomy: lost races become
ConflictRetryable, everything else StorageFailure. The coordinator never
retries; callers decide.
"""

import enum
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from fleetflow.app.core.clock import to_naive_utc, utcnow
from fleetflow.app.core.config import settings
from fleetflow.app.core.exceptions import (
    AppException, ConflictRetryable, NotFoundError, PreconditionFailed, StorageFailure
)
from fleetflow.app.core.logging import get_logger
from fleetflow.app.domain.fleet import invariants
from fleetflow.app.models.enums import DutyStatus, UserRole, VehicleStatus
from fleetflow.app.models.expense_enums import ExpenseCategory
from fleetflow.app.models.expense_log import ExpenseLog
from fleetflow.app.models.maintenance_enums import ServiceStatus
from fleetflow.app.models.service_log import ServiceLog
from fleetflow.app.models.trip import Trip
from fleetflow.app.models.trip_enums import TripStatus
from fleetflow.app.models.user import User
from fleetflow.app.models.vehicle import Vehicle
from fleetflow.app.schemas.driver import DriverCreate, DutyStatusUpdate
from fleetflow.app.schemas.expense import ExpenseCreate
from fleetflow.app.schemas.maintenance import (
    ServiceCancel, ServiceComplete, ServiceLogCreate, ServiceLogUpdate
)
from fleetflow.app.schemas.trip import TripCancel, TripComplete, TripCreate, TripUpdate
from fleetflow.app.schemas.vehicle import VehicleCreate, VehicleRetire, VehicleUpdate
from fleetflow.app.services.audit import AuditAction, log_event
from fleetflow.app.services.sequences import SequenceKind, next_identifier

logger = get_logger(__name__)

# SQLSTATEs for serialization failure, deadlock and lock timeout
_CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}
_CONFLICT_MARKERS = ("database is locked", "deadlock", "could not serialize", "could not obtain lock")


class TransitionKind(str, enum.Enum):
    """Closed set of transitions; values are the coordinator method names."""
    CREATE_TRIP = "create_trip"
    UPDATE_TRIP = "update_trip"
    DELETE_TRIP = "delete_trip"
    DISPATCH_TRIP = "dispatch_trip"
    COMPLETE_TRIP = "complete_trip"
    CANCEL_TRIP = "cancel_trip"
    CREATE_SERVICE_LOG = "create_service_log"
    UPDATE_SERVICE_LOG = "update_service_log"
    START_SERVICE = "start_service"
    COMPLETE_SERVICE = "complete_service"
    CANCEL_SERVICE = "cancel_service"
    DELETE_SERVICE = "delete_service"
    RECORD_EXPENSE = "record_expense"
    REGISTER_VEHICLE = "register_vehicle"
    UPDATE_VEHICLE = "update_vehicle"
    RETIRE_VEHICLE = "retire_vehicle"
    REACTIVATE_VEHICLE = "reactivate_vehicle"
    REGISTER_DRIVER = "register_driver"
    SET_DUTY_STATUS = "set_duty_status"


_CREATION_KINDS = frozenset({
    TransitionKind.CREATE_TRIP,
    TransitionKind.CREATE_SERVICE_LOG,
    TransitionKind.RECORD_EXPENSE,
    TransitionKind.REGISTER_VEHICLE,
    TransitionKind.REGISTER_DRIVER,
})

_PAYLOAD_FREE_KINDS = frozenset({
    TransitionKind.DELETE_TRIP,
    TransitionKind.DISPATCH_TRIP,
    TransitionKind.START_SERVICE,
    TransitionKind.DELETE_SERVICE,
    TransitionKind.REACTIVATE_VEHICLE,
})


class TransitionOutcome(NamedTuple):
    """Post-commit snapshot of every entity a transition touched."""
    primary: Any
    vehicle: Optional[Vehicle] = None
    driver: Optional[User] = None
    trip: Optional[Trip] = None


def _is_lock_conflict(exc: DBAPIError) -> bool:
    """True when the driver reports a lock, deadlock or serialization failure."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    text = str(orig).lower()
    return any(marker in text for marker in _CONFLICT_MARKERS)


def _enforce(violation: Optional[invariants.Violation]) -> None:
    if violation is not None:
        raise PreconditionFailed(violation.code, violation.message)


class TransitionCoordinator:
    """
    Runs fleet transitions against an injected session factory.

    Usage:
        coordinator = TransitionCoordinator(AsyncSessionLocal)
        outcome = await coordinator.dispatch_trip(trip_id, actor_id=7)
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def execute(
        self,
        kind: TransitionKind,
        entity_id: Optional[int] = None,
        payload: Any = None,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """
        Run a transition by kind.

        Creation kinds take only a payload; the others need ``entity_id``.
        """
        kind = TransitionKind(kind)
        handler = getattr(self, kind.value)
        if kind in _CREATION_KINDS:
            return await handler(payload, actor_id=actor_id)
        if entity_id is None:
            raise ValueError(f"{kind.value} requires an entity id")
        if kind in _PAYLOAD_FREE_KINDS:
            return await handler(entity_id, actor_id=actor_id)
        return await handler(entity_id, payload, actor_id=actor_id)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _unit(self, kind: TransitionKind):
        """
        One transaction per transition.

        Leaving the block normally commits. Any exception, including task
        cancellation, rolls back before it propagates.
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except PreconditionFailed as exc:
            logger.info("Rejected %s: %s (%s)", kind.value, exc.message, exc.reason)
            raise
        except AppException:
            raise
        except StaleDataError as exc:
            logger.warning("Stale version during %s: %s", kind.value, exc)
            raise ConflictRetryable() from exc
        except IntegrityError as exc:
            logger.warning("Integrity race during %s: %s", kind.value, exc.orig)
            raise ConflictRetryable() from exc
        except DBAPIError as exc:
            if _is_lock_conflict(exc):
                logger.warning("Lock conflict during %s: %s", kind.value, exc.orig)
                raise ConflictRetryable() from exc
            logger.error("Storage failure during %s: %s", kind.value, exc)
            raise StorageFailure() from exc
        except SQLAlchemyError as exc:
            logger.error("Storage failure during %s: %s", kind.value, exc)
            raise StorageFailure() from exc

    async def _load(
        self,
        session: AsyncSession,
        model,
        entity_id: int,
        resource: str,
        lock: bool = True
    ):
        """Load one row by primary key, under a row lock unless ``lock`` is False."""
        query = select(model).where(model.id == entity_id)
        if lock:
            query = query.with_for_update()
        result = await session.execute(query)
        entity = result.scalar_one_or_none()
        if entity is None:
            raise NotFoundError(resource, entity_id)
        return entity

    async def _exists(self, session: AsyncSession, column, value) -> bool:
        result = await session.execute(select(column).where(column == value).limit(1))
        return result.first() is not None

    @staticmethod
    def _committed(kind: TransitionKind, entity_type: str, entity_id: int) -> None:
        logger.info("Committed %s on %s %s", kind.value, entity_type, entity_id)

    # ------------------------------------------------------------------
    # Trips
    # ------------------------------------------------------------------

    async def create_trip(self, payload: TripCreate, actor_id: Optional[int] = None) -> TransitionOutcome:
        """Create a DRAFT trip for an available vehicle and an on-duty driver."""
        kind = TransitionKind.CREATE_TRIP
        async with self._unit(kind) as session:
            vehicle = await self._load(session, Vehicle, payload.vehicle_id, "Vehicle")
            driver = await self._load(session, User, payload.driver_id, "Driver")
            now = utcnow()

            _enforce(invariants.check_create_trip(vehicle, driver, payload.cargo_weight, now))

            trip = Trip(
                trip_number=await next_identifier(session, SequenceKind.TRIP),
                vehicle_id=vehicle.id,
                driver_id=driver.id,
                status=TripStatus.DRAFT,
                origin_address=payload.origin_address,
                origin_latitude=payload.origin_latitude,
                origin_longitude=payload.origin_longitude,
                destination_address=payload.destination_address,
                destination_latitude=payload.destination_latitude,
                destination_longitude=payload.destination_longitude,
                cargo_weight=payload.cargo_weight,
                distance=payload.distance,
                estimated_duration=payload.estimated_duration,
                scheduled_start_time=to_naive_utc(payload.scheduled_start_time),
                revenue=payload.revenue,
                notes=payload.notes,
                created_by_id=actor_id
            )
            session.add(trip)
            await session.flush()

            await log_event(
                session,
                action=AuditAction.TRIP_CREATED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=actor_id,
                metadata={
                    "trip_number": trip.trip_number,
                    "vehicle_id": vehicle.id,
                    "driver_id": driver.id,
                    "cargo_weight": trip.cargo_weight
                }
            )

        self._committed(kind, "trip", trip.id)
        return TransitionOutcome(primary=trip, vehicle=vehicle, driver=driver, trip=trip)

    async def update_trip(
        self,
        trip_id: int,
        payload: TripUpdate,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """Edit a DRAFT trip. A new vehicle or driver must pass the creation checks."""
        kind = TransitionKind.UPDATE_TRIP
        changes = payload.model_dump(exclude_unset=True)
        async with self._unit(kind) as session:
            trip = await self._load(session, Trip, trip_id, "Trip")

            vehicle_id = changes.get("vehicle_id") or trip.vehicle_id
            driver_id = changes.get("driver_id") or trip.driver_id
            vehicle = await self._load(session, Vehicle, vehicle_id, "Vehicle")
            driver = await self._load(session, User, driver_id, "Driver")
            cargo_weight = changes.get("cargo_weight") or trip.cargo_weight

            _enforce(invariants.check_update_trip(
                trip,
                vehicle,
                driver,
                cargo_weight,
                vehicle_changed=vehicle_id != trip.vehicle_id,
                driver_changed=driver_id != trip.driver_id,
                now=utcnow()
            ))

            if "scheduled_start_time" in changes:
                changes["scheduled_start_time"] = to_naive_utc(changes["scheduled_start_time"])
            for field, value in changes.items():
                if value is None and field not in ("notes",):
                    continue
                setattr(trip, field, value)

            await log_event(
                session,
                action=AuditAction.TRIP_UPDATED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=actor_id,
                metadata={"fields": sorted(changes.keys())}
            )
            await session.flush()

        self._committed(kind, "trip", trip.id)
        return TransitionOutcome(primary=trip, vehicle=vehicle, driver=driver, trip=trip)

    async def delete_trip(self, trip_id: int, actor_id: Optional[int] = None) -> TransitionOutcome:
        """Remove a DRAFT trip. No resource was claimed, so nothing is released."""
        kind = TransitionKind.DELETE_TRIP
        async with self._unit(kind) as session:
            trip = await self._load(session, Trip, trip_id, "Trip")
            _enforce(invariants.check_delete_trip(trip))

            await log_event(
                session,
                action=AuditAction.TRIP_DELETED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=actor_id,
                metadata={"trip_number": trip.trip_number}
            )
            await session.delete(trip)
            await session.flush()

        self._committed(kind, "trip", trip_id)
        return TransitionOutcome(primary=trip, trip=trip)

    async def dispatch_trip(self, trip_id: int, actor_id: Optional[int] = None) -> TransitionOutcome:
        """
        Claim the trip's vehicle and driver.

        Trip -> DISPATCHED, vehicle -> ON_TRIP (pointing at the trip and
        driver), driver -> ON_TRIP, all in one commit.
        """
        kind = TransitionKind.DISPATCH_TRIP
        async with self._unit(kind) as session:
            trip = await self._load(session, Trip, trip_id, "Trip")
            vehicle = await self._load(session, Vehicle, trip.vehicle_id, "Vehicle")
            driver = await self._load(session, User, trip.driver_id, "Driver")

            _enforce(invariants.check_dispatch_trip(trip, vehicle, driver))

            now = utcnow()
            trip.status = TripStatus.DISPATCHED
            trip.actual_start_time = now

            vehicle.status = VehicleStatus.ON_TRIP
            vehicle.current_trip_id = trip.id
            vehicle.assigned_driver_id = driver.id

            driver.duty_status = DutyStatus.ON_TRIP

            await log_event(
                session,
                action=AuditAction.TRIP_DISPATCHED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=actor_id,
                metadata={
                    "trip_number": trip.trip_number,
                    "vehicle_id": vehicle.id,
                    "driver_id": driver.id
                }
            )
            await session.flush()

        self._committed(kind, "trip", trip.id)
        return TransitionOutcome(primary=trip, vehicle=vehicle, driver=driver, trip=trip)

    async def complete_trip(
        self,
        trip_id: int,
        payload: Optional[TripComplete] = None,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """Finish a DISPATCHED trip and release its vehicle and driver."""
        kind = TransitionKind.COMPLETE_TRIP
        payload = payload or TripComplete()
        async with self._unit(kind) as session:
            trip = await self._load(session, Trip, trip_id, "Trip")
            vehicle = await self._load(session, Vehicle, trip.vehicle_id, "Vehicle")
            driver = await self._load(session, User, trip.driver_id, "Driver")

            _enforce(invariants.check_complete_trip(trip, vehicle, payload.final_odometer))

            trip.status = TripStatus.COMPLETED
            trip.actual_end_time = utcnow()
            if payload.fuel_consumed is not None:
                trip.fuel_consumed = payload.fuel_consumed
            if payload.fuel_cost is not None:
                trip.fuel_cost = payload.fuel_cost
            if payload.revenue is not None:
                trip.revenue = payload.revenue
            if payload.notes:
                trip.notes = payload.notes

            vehicle.status = VehicleStatus.AVAILABLE
            vehicle.current_trip_id = None
            vehicle.assigned_driver_id = None
            if payload.final_odometer is not None:
                vehicle.odometer = payload.final_odometer

            driver.duty_status = DutyStatus.ON_DUTY
            driver.total_trips += 1
            driver.completed_trips += 1

            await log_event(
                session,
                action=AuditAction.TRIP_COMPLETED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=actor_id,
                metadata={
                    "trip_number": trip.trip_number,
                    "final_odometer": payload.final_odometer
                }
            )
            await session.flush()

        self._committed(kind, "trip", trip.id)
        return TransitionOutcome(primary=trip, vehicle=vehicle, driver=driver, trip=trip)

    async def cancel_trip(
        self,
        trip_id: int,
        payload: Optional[TripCancel] = None,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """
        Cancel a DRAFT or DISPATCHED trip.

        Resources are released only when the trip was DISPATCHED before the
        cancellation; a DRAFT trip never claimed them.
        """
        kind = TransitionKind.CANCEL_TRIP
        payload = payload or TripCancel()
        async with self._unit(kind) as session:
            trip = await self._load(session, Trip, trip_id, "Trip")
            vehicle = await self._load(session, Vehicle, trip.vehicle_id, "Vehicle")
            driver = await self._load(session, User, trip.driver_id, "Driver")

            _enforce(invariants.check_cancel_trip(trip))

            previous_status = trip.status
            trip.status = TripStatus.CANCELLED
            if payload.reason:
                trip.notes = payload.reason

            released = previous_status == TripStatus.DISPATCHED
            if released:
                vehicle.status = VehicleStatus.AVAILABLE
                vehicle.current_trip_id = None
                vehicle.assigned_driver_id = None

                driver.duty_status = DutyStatus.ON_DUTY
                driver.cancelled_trips += 1

            await log_event(
                session,
                action=AuditAction.TRIP_CANCELLED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=actor_id,
                metadata={
                    "trip_number": trip.trip_number,
                    "previous_status": previous_status.value,
                    "resources_released": released,
                    "reason": payload.reason
                }
            )
            await session.flush()

        self._committed(kind, "trip", trip.id)
        return TransitionOutcome(primary=trip, vehicle=vehicle, driver=driver, trip=trip)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def create_service_log(
        self,
        payload: ServiceLogCreate,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """Open a service log and move the vehicle IN_SHOP."""
        kind = TransitionKind.CREATE_SERVICE_LOG
        async with self._unit(kind) as session:
            vehicle = await self._load(session, Vehicle, payload.vehicle_id, "Vehicle")
            _enforce(invariants.check_create_service_log(vehicle))

            now = utcnow()
            service_log = ServiceLog(
                log_number=await next_identifier(session, SequenceKind.SERVICE_LOG),
                vehicle_id=vehicle.id,
                issue_or_service=payload.issue_or_service,
                description=payload.description,
                service_type=payload.service_type,
                priority=payload.priority,
                status=ServiceStatus.NEW,
                scheduled_date=to_naive_utc(payload.scheduled_date) or now,
                estimated_cost=payload.estimated_cost,
                odometer_reading=(
                    payload.odometer_reading if payload.odometer_reading is not None else vehicle.odometer
                ),
                service_provider=payload.service_provider,
                mechanic_name=payload.mechanic_name,
                parts_replaced=[],
                notes=payload.notes,
                created_by_id=actor_id
            )
            session.add(service_log)

            vehicle.status = VehicleStatus.IN_SHOP
            vehicle.last_maintenance_date = now
            vehicle.current_trip_id = None
            vehicle.assigned_driver_id = None
            await session.flush()

            await log_event(
                session,
                action=AuditAction.SERVICE_CREATED,
                entity_type="service_log",
                entity_id=service_log.id,
                actor_id=actor_id,
                metadata={
                    "log_number": service_log.log_number,
                    "vehicle_id": vehicle.id,
                    "service_type": service_log.service_type.value
                }
            )

        self._committed(kind, "service_log", service_log.id)
        return TransitionOutcome(primary=service_log, vehicle=vehicle)

    async def update_service_log(
        self,
        log_id: int,
        payload: ServiceLogUpdate,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """Edit descriptive fields of an open service log."""
        kind = TransitionKind.UPDATE_SERVICE_LOG
        changes = payload.model_dump(exclude_unset=True)
        async with self._unit(kind) as session:
            service_log = await self._load(session, ServiceLog, log_id, "Service log")
            vehicle = await self._load(session, Vehicle, service_log.vehicle_id, "Vehicle", lock=False)
            _enforce(invariants.check_update_service_log(service_log))

            if "scheduled_date" in changes:
                changes["scheduled_date"] = to_naive_utc(changes["scheduled_date"])
            for field, value in changes.items():
                if value is None and field not in ("notes", "mechanic_name"):
                    continue
                setattr(service_log, field, value)

            await log_event(
                session,
                action=AuditAction.SERVICE_UPDATED,
                entity_type="service_log",
                entity_id=service_log.id,
                actor_id=actor_id,
                metadata={"fields": sorted(changes.keys())}
            )
            await session.flush()

        self._committed(kind, "service_log", service_log.id)
        return TransitionOutcome(primary=service_log, vehicle=vehicle)

    async def start_service(self, log_id: int, actor_id: Optional[int] = None) -> TransitionOutcome:
        """NEW -> IN_PROGRESS. The vehicle stays IN_SHOP."""
        kind = TransitionKind.START_SERVICE
        async with self._unit(kind) as session:
            service_log = await self._load(session, ServiceLog, log_id, "Service log")
            vehicle = await self._load(session, Vehicle, service_log.vehicle_id, "Vehicle", lock=False)
            _enforce(invariants.check_start_service(service_log))

            service_log.status = ServiceStatus.IN_PROGRESS
            service_log.started_at = utcnow()

            await log_event(
                session,
                action=AuditAction.SERVICE_STARTED,
                entity_type="service_log",
                entity_id=service_log.id,
                actor_id=actor_id,
                metadata={"log_number": service_log.log_number}
            )
            await session.flush()

        self._committed(kind, "service_log", service_log.id)
        return TransitionOutcome(primary=service_log, vehicle=vehicle)

    async def complete_service(
        self,
        log_id: int,
        payload: Optional[ServiceComplete] = None,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """Close the log and return the vehicle to AVAILABLE with its next due date."""
        kind = TransitionKind.COMPLETE_SERVICE
        payload = payload or ServiceComplete()
        async with self._unit(kind) as session:
            service_log = await self._load(session, ServiceLog, log_id, "Service log")
            vehicle = await self._load(session, Vehicle, service_log.vehicle_id, "Vehicle")
            _enforce(invariants.check_complete_service(service_log))

            now = utcnow()
            service_log.status = ServiceStatus.COMPLETED
            service_log.completed_at = now
            if payload.cost is not None:
                service_log.cost = payload.cost
            if payload.odometer_reading is not None:
                service_log.odometer_reading = payload.odometer_reading
            if payload.parts_replaced is not None:
                service_log.parts_replaced = [part.model_dump() for part in payload.parts_replaced]
            if payload.mechanic_name:
                service_log.mechanic_name = payload.mechanic_name
            if payload.notes:
                service_log.notes = payload.notes

            vehicle.status = VehicleStatus.AVAILABLE
            vehicle.last_maintenance_date = now
            vehicle.next_maintenance_due = now + timedelta(days=settings.maintenance_interval_days)
            if payload.odometer_reading is not None and payload.odometer_reading > vehicle.odometer:
                vehicle.odometer = payload.odometer_reading

            await log_event(
                session,
                action=AuditAction.SERVICE_COMPLETED,
                entity_type="service_log",
                entity_id=service_log.id,
                actor_id=actor_id,
                metadata={"log_number": service_log.log_number, "cost": service_log.cost}
            )
            await session.flush()

        self._committed(kind, "service_log", service_log.id)
        return TransitionOutcome(primary=service_log, vehicle=vehicle)

    async def cancel_service(
        self,
        log_id: int,
        payload: Optional[ServiceCancel] = None,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """Abandon an open service and return the vehicle to AVAILABLE."""
        kind = TransitionKind.CANCEL_SERVICE
        payload = payload or ServiceCancel()
        async with self._unit(kind) as session:
            service_log = await self._load(session, ServiceLog, log_id, "Service log")
            vehicle = await self._load(session, Vehicle, service_log.vehicle_id, "Vehicle")
            _enforce(invariants.check_cancel_service(service_log))

            service_log.status = ServiceStatus.CANCELLED
            if payload.reason:
                previous = f"\n{service_log.notes}" if service_log.notes else ""
                service_log.notes = f"CANCELLED: {payload.reason}{previous}"

            vehicle.status = VehicleStatus.AVAILABLE

            await log_event(
                session,
                action=AuditAction.SERVICE_CANCELLED,
                entity_type="service_log",
                entity_id=service_log.id,
                actor_id=actor_id,
                metadata={"log_number": service_log.log_number, "reason": payload.reason}
            )
            await session.flush()

        self._committed(kind, "service_log", service_log.id)
        return TransitionOutcome(primary=service_log, vehicle=vehicle)

    async def delete_service(self, log_id: int, actor_id: Optional[int] = None) -> TransitionOutcome:
        """Remove a NEW service log and release its vehicle."""
        kind = TransitionKind.DELETE_SERVICE
        async with self._unit(kind) as session:
            service_log = await self._load(session, ServiceLog, log_id, "Service log")
            vehicle = await self._load(session, Vehicle, service_log.vehicle_id, "Vehicle")
            _enforce(invariants.check_delete_service_log(service_log))

            vehicle.status = VehicleStatus.AVAILABLE

            await log_event(
                session,
                action=AuditAction.SERVICE_DELETED,
                entity_type="service_log",
                entity_id=service_log.id,
                actor_id=actor_id,
                metadata={"log_number": service_log.log_number, "vehicle_id": vehicle.id}
            )
            await session.delete(service_log)
            await session.flush()

        self._committed(kind, "service_log", log_id)
        return TransitionOutcome(primary=service_log, vehicle=vehicle)

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def record_expense(self, payload: ExpenseCreate, actor_id: Optional[int] = None) -> TransitionOutcome:
        """
        Append an expense and apply its effects.

        The vehicle odometer follows the reading; fuel with a supplied
        distance_covered recomputes the vehicle's km/L; fuel on a trip adds
        to the trip's fuel totals.
        """
        kind = TransitionKind.RECORD_EXPENSE
        is_fuel = payload.expense_category == ExpenseCategory.FUEL
        async with self._unit(kind) as session:
            trip = None
            if payload.trip_id is not None:
                trip = await self._load(session, Trip, payload.trip_id, "Trip")
            vehicle = await self._load(session, Vehicle, payload.vehicle_id, "Vehicle")
            driver = await self._load(session, User, payload.driver_id, "Driver", lock=False)

            _enforce(invariants.check_record_expense(
                vehicle,
                driver,
                trip,
                category=payload.expense_category,
                odometer_reading=payload.odometer_reading,
                liters=payload.liters,
                cost_per_liter=payload.cost_per_liter,
                misc_expense_type=payload.misc_expense_type,
                total_cost=payload.total_cost
            ))

            total_cost = payload.total_cost
            if is_fuel and total_cost is None:
                total_cost = round(payload.liters * payload.cost_per_liter, 2)

            distance = payload.distance_covered
            if distance is None and trip is not None:
                distance = trip.distance

            # km/L only from a measured distance, never the trip's planned one
            fuel_efficiency = None
            if is_fuel and payload.distance_covered and payload.liters:
                fuel_efficiency = round(payload.distance_covered / payload.liters, 2)

            expense = ExpenseLog(
                log_number=await next_identifier(session, SequenceKind.EXPENSE_LOG),
                trip_id=trip.id if trip is not None else None,
                vehicle_id=vehicle.id,
                driver_id=driver.id,
                expense_category=payload.expense_category,
                fuel_type=payload.fuel_type if is_fuel else None,
                liters=payload.liters if is_fuel else None,
                cost_per_liter=payload.cost_per_liter if is_fuel else None,
                fuel_station=payload.fuel_station if is_fuel else None,
                misc_expense_type=None if is_fuel else payload.misc_expense_type,
                misc_description=None if is_fuel else payload.misc_description,
                total_cost=total_cost,
                expense_date=to_naive_utc(payload.expense_date) or utcnow(),
                location=payload.location,
                odometer_reading=payload.odometer_reading,
                payment_method=payload.payment_method,
                distance_covered=distance,
                fuel_efficiency=fuel_efficiency,
                notes=payload.notes,
                created_by_id=actor_id
            )
            session.add(expense)

            vehicle.odometer = payload.odometer_reading
            if fuel_efficiency is not None:
                vehicle.fuel_efficiency = fuel_efficiency

            if trip is not None and is_fuel:
                trip.fuel_consumed = (trip.fuel_consumed or 0) + payload.liters
                trip.fuel_cost = (trip.fuel_cost or 0) + total_cost
            await session.flush()

            await log_event(
                session,
                action=AuditAction.EXPENSE_RECORDED,
                entity_type="expense_log",
                entity_id=expense.id,
                actor_id=actor_id,
                metadata={
                    "log_number": expense.log_number,
                    "category": expense.expense_category.value,
                    "total_cost": total_cost,
                    "trip_id": expense.trip_id
                }
            )

        self._committed(kind, "expense_log", expense.id)
        return TransitionOutcome(primary=expense, vehicle=vehicle, driver=driver, trip=trip)

    # ------------------------------------------------------------------
    # Fleet administration
    # ------------------------------------------------------------------

    async def register_vehicle(self, payload: VehicleCreate, actor_id: Optional[int] = None) -> TransitionOutcome:
        """Add a vehicle to the registry as AVAILABLE."""
        kind = TransitionKind.REGISTER_VEHICLE
        plate = payload.license_plate.strip().upper()
        async with self._unit(kind) as session:
            plate_taken = await self._exists(session, Vehicle.license_plate, plate)
            _enforce(invariants.check_register_vehicle(plate_taken, payload.max_load_capacity))

            vehicle = Vehicle(
                name=payload.name,
                model=payload.model,
                license_plate=plate,
                vehicle_type=payload.vehicle_type,
                max_load_capacity=payload.max_load_capacity,
                odometer=payload.odometer,
                fuel_efficiency=0,
                region=payload.region,
                status=VehicleStatus.AVAILABLE,
                is_active=True,
                acquisition_cost=payload.acquisition_cost,
                insurance_expiry=to_naive_utc(payload.insurance_expiry)
            )
            session.add(vehicle)
            await session.flush()

            await log_event(
                session,
                action=AuditAction.VEHICLE_REGISTERED,
                entity_type="vehicle",
                entity_id=vehicle.id,
                actor_id=actor_id,
                metadata={"license_plate": plate}
            )

        self._committed(kind, "vehicle", vehicle.id)
        return TransitionOutcome(primary=vehicle, vehicle=vehicle)

    async def update_vehicle(
        self,
        vehicle_id: int,
        payload: VehicleUpdate,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """Edit registry fields. Lifecycle fields are not reachable from here."""
        kind = TransitionKind.UPDATE_VEHICLE
        changes = {
            field: value
            for field, value in payload.model_dump(exclude_unset=True).items()
            if value is not None
        }
        async with self._unit(kind) as session:
            vehicle = await self._load(session, Vehicle, vehicle_id, "Vehicle")

            if "insurance_expiry" in changes:
                changes["insurance_expiry"] = to_naive_utc(changes["insurance_expiry"])
            for field, value in changes.items():
                setattr(vehicle, field, value)

            await log_event(
                session,
                action=AuditAction.VEHICLE_UPDATED,
                entity_type="vehicle",
                entity_id=vehicle.id,
                actor_id=actor_id,
                metadata={"fields": sorted(changes.keys())}
            )
            await session.flush()

        self._committed(kind, "vehicle", vehicle.id)
        return TransitionOutcome(primary=vehicle, vehicle=vehicle)

    async def retire_vehicle(
        self,
        vehicle_id: int,
        payload: Optional[VehicleRetire] = None,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """Take a vehicle out of service. It is never hard-deleted."""
        kind = TransitionKind.RETIRE_VEHICLE
        payload = payload or VehicleRetire()
        async with self._unit(kind) as session:
            vehicle = await self._load(session, Vehicle, vehicle_id, "Vehicle")
            _enforce(invariants.check_retire_vehicle(vehicle))

            vehicle.status = VehicleStatus.OUT_OF_SERVICE
            vehicle.is_active = False
            vehicle.current_trip_id = None
            vehicle.assigned_driver_id = None

            await log_event(
                session,
                action=AuditAction.VEHICLE_RETIRED,
                entity_type="vehicle",
                entity_id=vehicle.id,
                actor_id=actor_id,
                metadata={"reason": payload.reason}
            )
            await session.flush()

        self._committed(kind, "vehicle", vehicle.id)
        return TransitionOutcome(primary=vehicle, vehicle=vehicle)

    async def reactivate_vehicle(self, vehicle_id: int, actor_id: Optional[int] = None) -> TransitionOutcome:
        kind = TransitionKind.REACTIVATE_VEHICLE
        async with self._unit(kind) as session:
            vehicle = await self._load(session, Vehicle, vehicle_id, "Vehicle")
            _enforce(invariants.check_reactivate_vehicle(vehicle))

            vehicle.status = VehicleStatus.AVAILABLE
            vehicle.is_active = True

            await log_event(
                session,
                action=AuditAction.VEHICLE_REACTIVATED,
                entity_type="vehicle",
                entity_id=vehicle.id,
                actor_id=actor_id
            )
            await session.flush()

        self._committed(kind, "vehicle", vehicle.id)
        return TransitionOutcome(primary=vehicle, vehicle=vehicle)

    async def register_driver(self, payload: DriverCreate, actor_id: Optional[int] = None) -> TransitionOutcome:
        kind = TransitionKind.REGISTER_DRIVER
        email = payload.email.strip().lower()
        async with self._unit(kind) as session:
            email_taken = await self._exists(session, User.email, email)
            phone_taken = await self._exists(session, User.phone, payload.phone)
            _enforce(invariants.check_register_driver(email_taken, phone_taken))
            _enforce(invariants.check_set_duty_status_target(payload.duty_status))

            driver = User(
                name=payload.name,
                email=email,
                phone=payload.phone,
                role=UserRole.DRIVER,
                is_active=True,
                licence_number=payload.licence_number,
                licence_type=payload.licence_type,
                licence_expiry=to_naive_utc(payload.licence_expiry),
                duty_status=payload.duty_status,
                total_trips=0,
                completed_trips=0,
                cancelled_trips=0
            )
            session.add(driver)
            await session.flush()

            await log_event(
                session,
                action=AuditAction.DRIVER_REGISTERED,
                entity_type="driver",
                entity_id=driver.id,
                actor_id=actor_id,
                metadata={"licence_type": payload.licence_type.value}
            )

        self._committed(kind, "driver", driver.id)
        return TransitionOutcome(primary=driver, driver=driver)

    async def set_duty_status(
        self,
        driver_id: int,
        payload: DutyStatusUpdate,
        actor_id: Optional[int] = None
    ) -> TransitionOutcome:
        """Toggle ON_DUTY/OFF_DUTY. ON_TRIP is owned by trip transitions."""
        kind = TransitionKind.SET_DUTY_STATUS
        async with self._unit(kind) as session:
            driver = await self._load(session, User, driver_id, "Driver")
            _enforce(invariants.check_set_duty_status(driver, payload.duty_status))

            previous_status = driver.duty_status
            driver.duty_status = payload.duty_status

            await log_event(
                session,
                action=AuditAction.DUTY_STATUS_CHANGED,
                entity_type="driver",
                entity_id=driver.id,
                actor_id=actor_id,
                metadata={"from": previous_status.value, "to": payload.duty_status.value}
            )
            await session.flush()

        self._committed(kind, "driver", driver.id)
        return TransitionOutcome(primary=driver, driver=driver)
