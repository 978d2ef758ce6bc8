"""
Invariant validator (domain logic).

One pure predicate per transition kind. Each takes snapshots of every entity
the transition touches and returns None when the transition is admissible,
or a Violation naming the first rule it breaks. Nothing here reads the
database or mutates its arguments.
"""

from datetime import datetime
from typing import NamedTuple, Optional

from fleetflow.app.models.enums import DutyStatus, UserRole, VehicleStatus
from fleetflow.app.models.expense_enums import ExpenseCategory
from fleetflow.app.models.maintenance_enums import ServiceStatus, TERMINAL_SERVICE_STATUSES
from fleetflow.app.models.trip_enums import TripStatus, TERMINAL_TRIP_STATUSES


class Violation(NamedTuple):
    """A rejected transition: stable code plus a user-displayable message."""
    code: str
    message: str


class ViolationCode:
    """Machine-readable violation codes."""
    VEHICLE_INACTIVE = "VEHICLE_INACTIVE"
    VEHICLE_NOT_AVAILABLE = "VEHICLE_NOT_AVAILABLE"
    VEHICLE_IN_SHOP = "VEHICLE_IN_SHOP"
    VEHICLE_ON_TRIP = "VEHICLE_ON_TRIP"
    VEHICLE_RETIRED = "VEHICLE_RETIRED"
    VEHICLE_NOT_RETIRED = "VEHICLE_NOT_RETIRED"
    PLATE_TAKEN = "PLATE_TAKEN"
    CONTACT_TAKEN = "CONTACT_TAKEN"
    INVALID_CAPACITY = "INVALID_CAPACITY"
    NOT_A_DRIVER = "NOT_A_DRIVER"
    DRIVER_INACTIVE = "DRIVER_INACTIVE"
    DRIVER_NOT_ON_DUTY = "DRIVER_NOT_ON_DUTY"
    DRIVER_ON_TRIP = "DRIVER_ON_TRIP"
    LICENCE_EXPIRED = "LICENCE_EXPIRED"
    INVALID_DUTY_STATUS = "INVALID_DUTY_STATUS"
    CARGO_EXCEEDS_CAPACITY = "CARGO_EXCEEDS_CAPACITY"
    TRIP_NOT_DRAFT = "TRIP_NOT_DRAFT"
    TRIP_NOT_DISPATCHED = "TRIP_NOT_DISPATCHED"
    TRIP_TERMINAL = "TRIP_TERMINAL"
    TRIP_NOT_COMPLETED = "TRIP_NOT_COMPLETED"
    TRIP_VEHICLE_MISMATCH = "TRIP_VEHICLE_MISMATCH"
    TRIP_DRIVER_MISMATCH = "TRIP_DRIVER_MISMATCH"
    ODOMETER_REGRESSION = "ODOMETER_REGRESSION"
    SERVICE_NOT_NEW = "SERVICE_NOT_NEW"
    SERVICE_TERMINAL = "SERVICE_TERMINAL"
    FUEL_FIELDS_REQUIRED = "FUEL_FIELDS_REQUIRED"
    MISC_FIELDS_REQUIRED = "MISC_FIELDS_REQUIRED"


def _fmt(value: float) -> str:
    """Render a quantity without a trailing '.0'."""
    return f"{value:g}"


# Resource checks shared by create/update trip

def check_vehicle_assignable(vehicle) -> Optional[Violation]:
    if not vehicle.is_active:
        return Violation(ViolationCode.VEHICLE_INACTIVE, "Vehicle is not active")
    if vehicle.status != VehicleStatus.AVAILABLE:
        return Violation(
            ViolationCode.VEHICLE_NOT_AVAILABLE,
            f"Vehicle is not available. Current status: {vehicle.status.value}"
        )
    return None


def check_driver_assignable(driver, now: datetime) -> Optional[Violation]:
    if driver.role != UserRole.DRIVER:
        return Violation(ViolationCode.NOT_A_DRIVER, "Selected user is not a driver")
    if not driver.is_active:
        return Violation(ViolationCode.DRIVER_INACTIVE, "Driver account is not active")
    if driver.duty_status != DutyStatus.ON_DUTY:
        return Violation(
            ViolationCode.DRIVER_NOT_ON_DUTY,
            f"Driver is not on duty. Current status: {driver.duty_status.value}"
        )
    if driver.licence_expiry is not None and driver.licence_expiry < now:
        return Violation(
            ViolationCode.LICENCE_EXPIRED,
            f"Driver's licence expired on {driver.licence_expiry.date().isoformat()}"
        )
    return None


def check_cargo_capacity(vehicle, cargo_weight: float) -> Optional[Violation]:
    if cargo_weight > vehicle.max_load_capacity:
        return Violation(
            ViolationCode.CARGO_EXCEEDS_CAPACITY,
            f"Cargo weight ({_fmt(cargo_weight)}kg) exceeds vehicle capacity "
            f"({_fmt(vehicle.max_load_capacity)}kg)"
        )
    return None


# Trips

def check_create_trip(vehicle, driver, cargo_weight: float, now: datetime) -> Optional[Violation]:
    """Vehicle active and AVAILABLE, driver ON_DUTY with a valid licence, cargo fits."""
    return (
        check_vehicle_assignable(vehicle)
        or check_driver_assignable(driver, now)
        or check_cargo_capacity(vehicle, cargo_weight)
    )


def check_trip_is_draft(trip, action: str) -> Optional[Violation]:
    if trip.status != TripStatus.DRAFT:
        return Violation(
            ViolationCode.TRIP_NOT_DRAFT,
            f"Can only {action} trips in DRAFT status, current status: {trip.status.value}"
        )
    return None


def check_update_trip(
    trip,
    vehicle,
    driver,
    cargo_weight: float,
    vehicle_changed: bool,
    driver_changed: bool,
    now: datetime
) -> Optional[Violation]:
    """
    DRAFT only. A newly chosen vehicle or driver must pass the creation
    checks; the (possibly new) cargo weight must fit the (possibly new) vehicle.
    """
    violation = check_trip_is_draft(trip, "update")
    if violation:
        return violation
    if vehicle_changed:
        violation = check_vehicle_assignable(vehicle)
        if violation:
            return violation
    if driver_changed:
        violation = check_driver_assignable(driver, now)
        if violation:
            return violation
    return check_cargo_capacity(vehicle, cargo_weight)


def check_delete_trip(trip) -> Optional[Violation]:
    return check_trip_is_draft(trip, "delete")


def check_dispatch_trip(trip, vehicle, driver) -> Optional[Violation]:
    """Trip DRAFT; vehicle and driver re-checked against their current state."""
    if trip.status != TripStatus.DRAFT:
        return Violation(
            ViolationCode.TRIP_NOT_DRAFT,
            f"Cannot dispatch trip with status: {trip.status.value}"
        )
    if vehicle.status != VehicleStatus.AVAILABLE:
        return Violation(
            ViolationCode.VEHICLE_NOT_AVAILABLE,
            f"Vehicle is no longer available. Current status: {vehicle.status.value}"
        )
    if driver.duty_status != DutyStatus.ON_DUTY:
        return Violation(
            ViolationCode.DRIVER_NOT_ON_DUTY,
            f"Driver is no longer on duty. Current status: {driver.duty_status.value}"
        )
    return None


def check_complete_trip(trip, vehicle, final_odometer: Optional[float]) -> Optional[Violation]:
    if trip.status != TripStatus.DISPATCHED:
        return Violation(
            ViolationCode.TRIP_NOT_DISPATCHED,
            f"Cannot complete trip with status: {trip.status.value}"
        )
    if final_odometer is not None and final_odometer < vehicle.odometer:
        return Violation(
            ViolationCode.ODOMETER_REGRESSION,
            f"Final odometer ({_fmt(final_odometer)} km) cannot be less than the vehicle's "
            f"current odometer ({_fmt(vehicle.odometer)} km)"
        )
    return None


def check_cancel_trip(trip) -> Optional[Violation]:
    if trip.status in TERMINAL_TRIP_STATUSES:
        return Violation(
            ViolationCode.TRIP_TERMINAL,
            f"Cannot cancel trip with status: {trip.status.value}"
        )
    return None


# Maintenance

def check_create_service_log(vehicle) -> Optional[Violation]:
    if vehicle.status == VehicleStatus.IN_SHOP:
        return Violation(ViolationCode.VEHICLE_IN_SHOP, "Vehicle is already in shop for service")
    if vehicle.status == VehicleStatus.ON_TRIP:
        return Violation(ViolationCode.VEHICLE_ON_TRIP, "Cannot send vehicle to shop while it's on a trip")
    if vehicle.status == VehicleStatus.OUT_OF_SERVICE or not vehicle.is_active:
        return Violation(ViolationCode.VEHICLE_RETIRED, "Cannot service a retired vehicle, reactivate it first")
    return None


def check_update_service_log(service_log) -> Optional[Violation]:
    if service_log.status in TERMINAL_SERVICE_STATUSES:
        return Violation(
            ViolationCode.SERVICE_TERMINAL,
            f"Cannot update service log with status: {service_log.status.value}"
        )
    return None


def check_delete_service_log(service_log) -> Optional[Violation]:
    if service_log.status != ServiceStatus.NEW:
        return Violation(
            ViolationCode.SERVICE_NOT_NEW,
            f"Can only delete service logs with NEW status, current status: {service_log.status.value}"
        )
    return None


def check_start_service(service_log) -> Optional[Violation]:
    if service_log.status != ServiceStatus.NEW:
        return Violation(
            ViolationCode.SERVICE_NOT_NEW,
            f"Cannot start service with status: {service_log.status.value}"
        )
    return None


def check_complete_service(service_log) -> Optional[Violation]:
    if service_log.status == ServiceStatus.COMPLETED:
        return Violation(ViolationCode.SERVICE_TERMINAL, "Service is already completed")
    if service_log.status == ServiceStatus.CANCELLED:
        return Violation(ViolationCode.SERVICE_TERMINAL, "Cannot complete a cancelled service")
    return None


def check_cancel_service(service_log) -> Optional[Violation]:
    if service_log.status == ServiceStatus.COMPLETED:
        return Violation(ViolationCode.SERVICE_TERMINAL, "Cannot cancel a completed service")
    if service_log.status == ServiceStatus.CANCELLED:
        return Violation(ViolationCode.SERVICE_TERMINAL, "Service is already cancelled")
    return None


# Expenses

def check_expense_fields(
    category: ExpenseCategory,
    liters: Optional[float],
    cost_per_liter: Optional[float],
    misc_expense_type,
    total_cost: Optional[float]
) -> Optional[Violation]:
    """FUEL needs liters and cost per liter; MISC needs a type and a total."""
    if category == ExpenseCategory.FUEL:
        if not liters or not cost_per_liter:
            return Violation(
                ViolationCode.FUEL_FIELDS_REQUIRED,
                "Liters and cost per liter are required for fuel expenses"
            )
    elif category == ExpenseCategory.MISC:
        if not misc_expense_type or not total_cost:
            return Violation(
                ViolationCode.MISC_FIELDS_REQUIRED,
                "Expense type and total cost are required for miscellaneous expenses"
            )
    return None


def check_record_expense(
    vehicle,
    driver,
    trip,
    category: ExpenseCategory,
    odometer_reading: float,
    liters: Optional[float] = None,
    cost_per_liter: Optional[float] = None,
    misc_expense_type=None,
    total_cost: Optional[float] = None
) -> Optional[Violation]:
    """
    Category fields present, recorder is a driver, a linked trip is
    COMPLETED and was run by this vehicle and driver, and the odometer
    never goes backwards.
    """
    violation = check_expense_fields(category, liters, cost_per_liter, misc_expense_type, total_cost)
    if violation:
        return violation
    if driver.role != UserRole.DRIVER:
        return Violation(ViolationCode.NOT_A_DRIVER, "Selected user is not a driver")
    if trip is not None and trip.status != TripStatus.COMPLETED:
        return Violation(
            ViolationCode.TRIP_NOT_COMPLETED,
            f"Fuel logs can only be added for completed trips, current status: {trip.status.value}"
        )
    if trip is not None and trip.vehicle_id != vehicle.id:
        return Violation(
            ViolationCode.TRIP_VEHICLE_MISMATCH,
            f"Linked trip was run by vehicle {trip.vehicle_id}, not vehicle {vehicle.id}"
        )
    if trip is not None and trip.driver_id != driver.id:
        return Violation(
            ViolationCode.TRIP_DRIVER_MISMATCH,
            f"Linked trip was driven by driver {trip.driver_id}, not driver {driver.id}"
        )
    if odometer_reading < vehicle.odometer:
        return Violation(
            ViolationCode.ODOMETER_REGRESSION,
            f"Odometer reading ({_fmt(odometer_reading)} km) cannot be less than vehicle's "
            f"current odometer ({_fmt(vehicle.odometer)} km)"
        )
    return None


# Fleet administration

def check_register_vehicle(plate_taken: bool, max_load_capacity: float) -> Optional[Violation]:
    if plate_taken:
        return Violation(ViolationCode.PLATE_TAKEN, "Vehicle with this license plate already exists")
    if max_load_capacity <= 0:
        return Violation(ViolationCode.INVALID_CAPACITY, "Max load capacity must be greater than 0")
    return None


def check_register_driver(email_taken: bool, phone_taken: bool) -> Optional[Violation]:
    if email_taken:
        return Violation(ViolationCode.CONTACT_TAKEN, "A user with this email already exists")
    if phone_taken:
        return Violation(ViolationCode.CONTACT_TAKEN, "A user with this phone number already exists")
    return None


def check_retire_vehicle(vehicle) -> Optional[Violation]:
    if vehicle.status == VehicleStatus.ON_TRIP:
        return Violation(ViolationCode.VEHICLE_ON_TRIP, "Cannot retire vehicle while on trip")
    if vehicle.status == VehicleStatus.IN_SHOP:
        return Violation(ViolationCode.VEHICLE_IN_SHOP, "Cannot retire vehicle while it is in shop")
    if vehicle.status == VehicleStatus.OUT_OF_SERVICE:
        return Violation(ViolationCode.VEHICLE_RETIRED, "Vehicle is already retired")
    return None


def check_reactivate_vehicle(vehicle) -> Optional[Violation]:
    if vehicle.status != VehicleStatus.OUT_OF_SERVICE:
        return Violation(
            ViolationCode.VEHICLE_NOT_RETIRED,
            f"Only retired vehicles can be reactivated, current status: {vehicle.status.value}"
        )
    return None


def check_set_duty_status_target(target: DutyStatus) -> Optional[Violation]:
    if target == DutyStatus.ON_TRIP:
        return Violation(
            ViolationCode.INVALID_DUTY_STATUS,
            "ON_TRIP is set by dispatching a trip, not directly"
        )
    return None


def check_set_duty_status(driver, target: DutyStatus) -> Optional[Violation]:
    """Drivers toggle ON_DUTY/OFF_DUTY; ON_TRIP belongs to trip transitions."""
    if driver.role != UserRole.DRIVER:
        return Violation(ViolationCode.NOT_A_DRIVER, "Selected user is not a driver")
    violation = check_set_duty_status_target(target)
    if violation:
        return violation
    if driver.duty_status == DutyStatus.ON_TRIP:
        return Violation(
            ViolationCode.DRIVER_ON_TRIP,
            "Cannot change duty status while the driver is on a trip"
        )
    return None
