"""
Read/query facade.

Read-only listings and lookups for trips, vehicles, service logs, expenses
and drivers. Each call opens its own short-lived session from the injected
factory; nothing here takes locks or writes.
"""

from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from fleetflow.app.core.config import settings
from fleetflow.app.core.exceptions import NotFoundError, PreconditionFailed
from fleetflow.app.models.audit_log import AuditLog
from fleetflow.app.models.enums import DutyStatus, UserRole, VehicleStatus, VehicleType
from fleetflow.app.models.expense_enums import ExpenseCategory
from fleetflow.app.models.expense_log import ExpenseLog
from fleetflow.app.models.maintenance_enums import ServicePriority, ServiceStatus, ServiceType
from fleetflow.app.models.service_log import ServiceLog
from fleetflow.app.models.trip import Trip
from fleetflow.app.models.trip_enums import TripStatus
from fleetflow.app.models.user import User
from fleetflow.app.models.vehicle import Vehicle
from fleetflow.app.services.audit import get_audit_trail


class Page(NamedTuple):
    """One page of results plus the unpaginated total."""
    items: List[Any]
    total: int
    page: int
    limit: int


# Whitelisted sort keys per collection
TRIP_SORT_FIELDS = {
    "created_at": Trip.created_at,
    "scheduled_start_time": Trip.scheduled_start_time,
    "trip_number": Trip.trip_number,
    "cargo_weight": Trip.cargo_weight,
    "status": Trip.status,
}
VEHICLE_SORT_FIELDS = {
    "created_at": Vehicle.created_at,
    "name": Vehicle.name,
    "license_plate": Vehicle.license_plate,
    "odometer": Vehicle.odometer,
    "max_load_capacity": Vehicle.max_load_capacity,
}
SERVICE_LOG_SORT_FIELDS = {
    "created_at": ServiceLog.created_at,
    "scheduled_date": ServiceLog.scheduled_date,
    "priority": ServiceLog.priority,
    "cost": ServiceLog.cost,
}
EXPENSE_SORT_FIELDS = {
    "created_at": ExpenseLog.created_at,
    "expense_date": ExpenseLog.expense_date,
    "total_cost": ExpenseLog.total_cost,
}
DRIVER_SORT_FIELDS = {
    "created_at": User.created_at,
    "name": User.name,
    "completed_trips": User.completed_trips,
}


def _search_clause(term: Optional[str], *columns):
    if not term:
        return None
    pattern = f"%{term.strip()}%"
    return or_(*(column.ilike(pattern) for column in columns))


def _order_clause(fields: Dict[str, Any], sort_by: str, order: str):
    column = fields.get(sort_by)
    if column is None:
        raise PreconditionFailed(
            "INVALID_SORT_KEY",
            f"Cannot sort by '{sort_by}'. Allowed: {', '.join(sorted(fields))}"
        )
    return column.asc() if order == "asc" else column.desc()


def _page_bounds(page: int, limit: Optional[int]) -> tuple:
    page = max(1, page)
    limit = limit or settings.default_page_size
    limit = max(1, min(limit, settings.max_page_size))
    return page, limit


class FleetQueries:
    """Read facade over the fleet tables."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def _paginate(
        self,
        session: AsyncSession,
        model,
        conditions: list,
        order,
        page: int,
        limit: Optional[int],
        options: tuple = ()
    ) -> Page:
        page, limit = _page_bounds(page, limit)

        count_result = await session.execute(
            select(func.count(model.id)).where(*conditions)
        )
        total = count_result.scalar_one()

        result = await session.execute(
            select(model)
            .options(*options)
            .where(*conditions)
            .order_by(order, model.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return Page(items=list(result.scalars().all()), total=total, page=page, limit=limit)

    async def _get(self, model, entity_id: int, resource: str, options: tuple = ()):
        async with self._session_factory() as session:
            result = await session.execute(
                select(model).options(*options).where(model.id == entity_id)
            )
            entity = result.scalar_one_or_none()
        if entity is None:
            raise NotFoundError(resource, entity_id)
        return entity

    # Trips

    async def list_trips(
        self,
        status: Optional[TripStatus] = None,
        vehicle_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: str = "created_at",
        order: str = "desc"
    ) -> Page:
        """
        List trips with their vehicle and driver.

        Args:
            status: Filter by trip status
            vehicle_id: Filter by vehicle
            driver_id: Filter by driver
            search: Matches trip number, origin or destination address
            page: 1-based page number
            limit: Page size (clamped to max_page_size)
            sort_by: One of TRIP_SORT_FIELDS
            order: "asc" or "desc"

        Returns:
            Page of Trip instances
        """
        conditions = []
        if status:
            conditions.append(Trip.status == status)
        if vehicle_id is not None:
            conditions.append(Trip.vehicle_id == vehicle_id)
        if driver_id is not None:
            conditions.append(Trip.driver_id == driver_id)
        clause = _search_clause(search, Trip.trip_number, Trip.origin_address, Trip.destination_address)
        if clause is not None:
            conditions.append(clause)

        async with self._session_factory() as session:
            return await self._paginate(
                session, Trip, conditions,
                _order_clause(TRIP_SORT_FIELDS, sort_by, order),
                page, limit,
                options=(selectinload(Trip.vehicle), selectinload(Trip.driver))
            )

    async def get_trip(self, trip_id: int) -> Trip:
        return await self._get(
            Trip, trip_id, "Trip",
            options=(selectinload(Trip.vehicle), selectinload(Trip.driver))
        )

    # Vehicles

    async def list_vehicles(
        self,
        status: Optional[VehicleStatus] = None,
        vehicle_type: Optional[VehicleType] = None,
        region: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: str = "created_at",
        order: str = "desc"
    ) -> Page:
        """List vehicles. ``search`` matches name, model or license plate."""
        conditions = []
        if status:
            conditions.append(Vehicle.status == status)
        if vehicle_type:
            conditions.append(Vehicle.vehicle_type == vehicle_type)
        if region:
            conditions.append(Vehicle.region == region)
        if is_active is not None:
            conditions.append(Vehicle.is_active == is_active)
        clause = _search_clause(search, Vehicle.name, Vehicle.model, Vehicle.license_plate)
        if clause is not None:
            conditions.append(clause)

        async with self._session_factory() as session:
            return await self._paginate(
                session, Vehicle, conditions,
                _order_clause(VEHICLE_SORT_FIELDS, sort_by, order),
                page, limit
            )

    async def get_vehicle(self, vehicle_id: int) -> Vehicle:
        return await self._get(Vehicle, vehicle_id, "Vehicle")

    # Service logs

    async def list_service_logs(
        self,
        status: Optional[ServiceStatus] = None,
        vehicle_id: Optional[int] = None,
        service_type: Optional[ServiceType] = None,
        priority: Optional[ServicePriority] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: str = "created_at",
        order: str = "desc"
    ) -> Page:
        """List service logs. ``search`` matches log number, issue or notes."""
        conditions = []
        if status:
            conditions.append(ServiceLog.status == status)
        if vehicle_id is not None:
            conditions.append(ServiceLog.vehicle_id == vehicle_id)
        if service_type:
            conditions.append(ServiceLog.service_type == service_type)
        if priority:
            conditions.append(ServiceLog.priority == priority)
        clause = _search_clause(search, ServiceLog.log_number, ServiceLog.issue_or_service, ServiceLog.notes)
        if clause is not None:
            conditions.append(clause)

        async with self._session_factory() as session:
            return await self._paginate(
                session, ServiceLog, conditions,
                _order_clause(SERVICE_LOG_SORT_FIELDS, sort_by, order),
                page, limit,
                options=(selectinload(ServiceLog.vehicle),)
            )

    async def get_service_log(self, log_id: int) -> ServiceLog:
        return await self._get(
            ServiceLog, log_id, "Service log",
            options=(selectinload(ServiceLog.vehicle),)
        )

    # Expenses

    async def list_expense_logs(
        self,
        category: Optional[ExpenseCategory] = None,
        vehicle_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        trip_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: str = "expense_date",
        order: str = "desc"
    ) -> Page:
        """List expenses. ``search`` matches log number, location or notes."""
        conditions = []
        if category:
            conditions.append(ExpenseLog.expense_category == category)
        if vehicle_id is not None:
            conditions.append(ExpenseLog.vehicle_id == vehicle_id)
        if driver_id is not None:
            conditions.append(ExpenseLog.driver_id == driver_id)
        if trip_id is not None:
            conditions.append(ExpenseLog.trip_id == trip_id)
        clause = _search_clause(search, ExpenseLog.log_number, ExpenseLog.location, ExpenseLog.notes)
        if clause is not None:
            conditions.append(clause)

        async with self._session_factory() as session:
            return await self._paginate(
                session, ExpenseLog, conditions,
                _order_clause(EXPENSE_SORT_FIELDS, sort_by, order),
                page, limit,
                options=(selectinload(ExpenseLog.vehicle), selectinload(ExpenseLog.driver))
            )

    async def get_expense_log(self, expense_id: int) -> ExpenseLog:
        return await self._get(
            ExpenseLog, expense_id, "Expense log",
            options=(selectinload(ExpenseLog.vehicle), selectinload(ExpenseLog.driver))
        )

    # Drivers

    async def list_drivers(
        self,
        duty_status: Optional[DutyStatus] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: str = "name",
        order: str = "asc"
    ) -> Page:
        """List users with the DRIVER role. ``search`` matches name, email, phone or licence."""
        conditions = [User.role == UserRole.DRIVER]
        if duty_status:
            conditions.append(User.duty_status == duty_status)
        if is_active is not None:
            conditions.append(User.is_active == is_active)
        clause = _search_clause(search, User.name, User.email, User.phone, User.licence_number)
        if clause is not None:
            conditions.append(clause)

        async with self._session_factory() as session:
            return await self._paginate(
                session, User, conditions,
                _order_clause(DRIVER_SORT_FIELDS, sort_by, order),
                page, limit
            )

    async def list_available_drivers(self, page: int = 1, limit: Optional[int] = None) -> Page:
        """Active drivers that are ON_DUTY, i.e. assignable to a new trip."""
        return await self.list_drivers(
            duty_status=DutyStatus.ON_DUTY,
            is_active=True,
            page=page,
            limit=limit
        )

    async def get_driver(self, driver_id: int) -> User:
        driver = await self._get(User, driver_id, "Driver")
        if driver.role != UserRole.DRIVER:
            raise NotFoundError("Driver", driver_id)
        return driver

    # Audit

    async def list_audit_entries(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        action: Optional[str] = None,
        limit: int = 100
    ) -> List[AuditLog]:
        async with self._session_factory() as session:
            return await get_audit_trail(
                session,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                limit=limit
            )
