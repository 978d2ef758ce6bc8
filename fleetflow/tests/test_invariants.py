"""
Invariant validator tests.

Pure predicates, exercised with lightweight stand-ins for the entities.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from fleetflow.app.domain.fleet import invariants
from fleetflow.app.domain.fleet.invariants import ViolationCode
from fleetflow.app.models.enums import DutyStatus, UserRole, VehicleStatus
from fleetflow.app.models.expense_enums import ExpenseCategory, MiscExpenseType
from fleetflow.app.models.maintenance_enums import ServiceStatus
from fleetflow.app.models.trip_enums import TripStatus

NOW = datetime(2026, 1, 15, 9, 0, 0)


def vehicle(**kwargs):
    data = dict(id=1, is_active=True, status=VehicleStatus.AVAILABLE, max_load_capacity=500.0, odometer=1000.0)
    data.update(kwargs)
    return SimpleNamespace(**data)


def driver(**kwargs):
    data = dict(
        id=7,
        role=UserRole.DRIVER,
        is_active=True,
        duty_status=DutyStatus.ON_DUTY,
        licence_expiry=NOW + timedelta(days=30),
    )
    data.update(kwargs)
    return SimpleNamespace(**data)


def trip(status=TripStatus.DRAFT, vehicle_id=1, driver_id=7):
    return SimpleNamespace(status=status, vehicle_id=vehicle_id, driver_id=driver_id)


def service_log(status=ServiceStatus.NEW):
    return SimpleNamespace(status=status)


class TestCreateTrip:
    def test_admissible(self):
        assert invariants.check_create_trip(vehicle(), driver(), 450, NOW) is None

    def test_cargo_equal_to_capacity_is_admissible(self):
        assert invariants.check_create_trip(vehicle(), driver(), 500, NOW) is None

    def test_cargo_over_capacity(self):
        violation = invariants.check_create_trip(vehicle(max_load_capacity=5000), driver(), 6000, NOW)
        assert violation.code == ViolationCode.CARGO_EXCEEDS_CAPACITY
        assert violation.message == "Cargo weight (6000kg) exceeds vehicle capacity (5000kg)"

    @pytest.mark.parametrize("status", [VehicleStatus.ON_TRIP, VehicleStatus.IN_SHOP, VehicleStatus.OUT_OF_SERVICE])
    def test_vehicle_not_available(self, status):
        violation = invariants.check_create_trip(vehicle(status=status), driver(), 100, NOW)
        assert violation.code == ViolationCode.VEHICLE_NOT_AVAILABLE
        assert status.value in violation.message

    def test_inactive_vehicle(self):
        violation = invariants.check_create_trip(vehicle(is_active=False), driver(), 100, NOW)
        assert violation.code == ViolationCode.VEHICLE_INACTIVE

    def test_user_is_not_a_driver(self):
        violation = invariants.check_create_trip(vehicle(), driver(role=UserRole.DISPATCHER), 100, NOW)
        assert violation.code == ViolationCode.NOT_A_DRIVER

    def test_driver_off_duty(self):
        violation = invariants.check_create_trip(vehicle(), driver(duty_status=DutyStatus.OFF_DUTY), 100, NOW)
        assert violation.code == ViolationCode.DRIVER_NOT_ON_DUTY

    def test_expired_licence(self):
        expired = driver(licence_expiry=NOW - timedelta(days=1))
        violation = invariants.check_create_trip(vehicle(), expired, 100, NOW)
        assert violation.code == ViolationCode.LICENCE_EXPIRED
        assert "2026-01-14" in violation.message

    def test_licence_without_expiry(self):
        assert invariants.check_create_trip(vehicle(), driver(licence_expiry=None), 100, NOW) is None


class TestTripTransitions:
    def test_update_requires_draft(self):
        violation = invariants.check_update_trip(
            trip(TripStatus.DISPATCHED), vehicle(), driver(), 100,
            vehicle_changed=False, driver_changed=False, now=NOW
        )
        assert violation.code == ViolationCode.TRIP_NOT_DRAFT

    def test_update_skips_availability_of_unchanged_vehicle(self):
        # The trip's own vehicle may be claimed by another flow; only a new one is re-checked
        assert invariants.check_update_trip(
            trip(), vehicle(status=VehicleStatus.IN_SHOP), driver(), 100,
            vehicle_changed=False, driver_changed=False, now=NOW
        ) is None

    def test_update_rechecks_new_vehicle(self):
        violation = invariants.check_update_trip(
            trip(), vehicle(status=VehicleStatus.IN_SHOP), driver(), 100,
            vehicle_changed=True, driver_changed=False, now=NOW
        )
        assert violation.code == ViolationCode.VEHICLE_NOT_AVAILABLE

    def test_update_rechecks_capacity(self):
        violation = invariants.check_update_trip(
            trip(), vehicle(), driver(), 900,
            vehicle_changed=False, driver_changed=False, now=NOW
        )
        assert violation.code == ViolationCode.CARGO_EXCEEDS_CAPACITY

    def test_delete_requires_draft(self):
        assert invariants.check_delete_trip(trip()) is None
        assert invariants.check_delete_trip(trip(TripStatus.CANCELLED)).code == ViolationCode.TRIP_NOT_DRAFT

    def test_dispatch_admissible(self):
        assert invariants.check_dispatch_trip(trip(), vehicle(), driver()) is None

    def test_dispatch_requires_draft(self):
        violation = invariants.check_dispatch_trip(trip(TripStatus.DISPATCHED), vehicle(), driver())
        assert violation.message == "Cannot dispatch trip with status: DISPATCHED"

    def test_dispatch_rechecks_vehicle(self):
        violation = invariants.check_dispatch_trip(trip(), vehicle(status=VehicleStatus.ON_TRIP), driver())
        assert violation.code == ViolationCode.VEHICLE_NOT_AVAILABLE

    def test_dispatch_rechecks_driver(self):
        violation = invariants.check_dispatch_trip(trip(), vehicle(), driver(duty_status=DutyStatus.ON_TRIP))
        assert violation.code == ViolationCode.DRIVER_NOT_ON_DUTY

    def test_complete_requires_dispatched(self):
        violation = invariants.check_complete_trip(trip(TripStatus.COMPLETED), vehicle(), None)
        assert violation.code == ViolationCode.TRIP_NOT_DISPATCHED
        assert violation.message == "Cannot complete trip with status: COMPLETED"

    def test_complete_rejects_odometer_regression(self):
        violation = invariants.check_complete_trip(trip(TripStatus.DISPATCHED), vehicle(odometer=1000), 999)
        assert violation.code == ViolationCode.ODOMETER_REGRESSION

    def test_complete_accepts_equal_odometer(self):
        assert invariants.check_complete_trip(trip(TripStatus.DISPATCHED), vehicle(odometer=1000), 1000) is None

    @pytest.mark.parametrize("status", [TripStatus.DRAFT, TripStatus.DISPATCHED])
    def test_cancel_non_terminal(self, status):
        assert invariants.check_cancel_trip(trip(status)) is None

    @pytest.mark.parametrize("status", [TripStatus.COMPLETED, TripStatus.CANCELLED])
    def test_cancel_terminal(self, status):
        assert invariants.check_cancel_trip(trip(status)).code == ViolationCode.TRIP_TERMINAL


class TestMaintenance:
    def test_create_on_available_vehicle(self):
        assert invariants.check_create_service_log(vehicle()) is None

    def test_create_on_vehicle_in_shop(self):
        violation = invariants.check_create_service_log(vehicle(status=VehicleStatus.IN_SHOP))
        assert violation.message == "Vehicle is already in shop for service"

    def test_create_on_vehicle_on_trip(self):
        violation = invariants.check_create_service_log(vehicle(status=VehicleStatus.ON_TRIP))
        assert violation.code == ViolationCode.VEHICLE_ON_TRIP

    def test_create_on_retired_vehicle(self):
        retired = vehicle(status=VehicleStatus.OUT_OF_SERVICE, is_active=False)
        assert invariants.check_create_service_log(retired).code == ViolationCode.VEHICLE_RETIRED

    def test_start_requires_new(self):
        assert invariants.check_start_service(service_log()) is None
        assert invariants.check_start_service(service_log(ServiceStatus.IN_PROGRESS)).code == ViolationCode.SERVICE_NOT_NEW

    @pytest.mark.parametrize("status", [ServiceStatus.NEW, ServiceStatus.IN_PROGRESS])
    def test_close_open_log(self, status):
        assert invariants.check_complete_service(service_log(status)) is None
        assert invariants.check_cancel_service(service_log(status)) is None

    def test_close_terminal_log(self):
        assert invariants.check_complete_service(service_log(ServiceStatus.COMPLETED)).message == "Service is already completed"
        assert invariants.check_cancel_service(service_log(ServiceStatus.COMPLETED)).message == "Cannot cancel a completed service"
        assert invariants.check_cancel_service(service_log(ServiceStatus.CANCELLED)).message == "Service is already cancelled"

    def test_update_and_delete(self):
        assert invariants.check_update_service_log(service_log(ServiceStatus.IN_PROGRESS)) is None
        assert invariants.check_update_service_log(service_log(ServiceStatus.CANCELLED)).code == ViolationCode.SERVICE_TERMINAL
        assert invariants.check_delete_service_log(service_log()) is None
        assert invariants.check_delete_service_log(service_log(ServiceStatus.IN_PROGRESS)).code == ViolationCode.SERVICE_NOT_NEW


class TestRecordExpense:
    def test_fuel_requires_liters_and_price(self):
        violation = invariants.check_record_expense(
            vehicle(), driver(), None, category=ExpenseCategory.FUEL, odometer_reading=1100, liters=40
        )
        assert violation.code == ViolationCode.FUEL_FIELDS_REQUIRED

    def test_misc_requires_type_and_total(self):
        violation = invariants.check_record_expense(
            vehicle(), driver(), None, category=ExpenseCategory.MISC, odometer_reading=1100,
            misc_expense_type=MiscExpenseType.TOLL
        )
        assert violation.code == ViolationCode.MISC_FIELDS_REQUIRED

    def test_odometer_regression(self):
        violation = invariants.check_record_expense(
            vehicle(odometer=1000), driver(), None, category=ExpenseCategory.FUEL,
            odometer_reading=900, liters=40, cost_per_liter=95
        )
        assert violation.code == ViolationCode.ODOMETER_REGRESSION

    def test_linked_trip_must_be_completed(self):
        violation = invariants.check_record_expense(
            vehicle(), driver(), trip(TripStatus.DISPATCHED), category=ExpenseCategory.FUEL,
            odometer_reading=1100, liters=40, cost_per_liter=95
        )
        assert violation.code == ViolationCode.TRIP_NOT_COMPLETED

    def test_linked_trip_must_belong_to_vehicle(self):
        violation = invariants.check_record_expense(
            vehicle(id=2), driver(), trip(TripStatus.COMPLETED, vehicle_id=1), category=ExpenseCategory.FUEL,
            odometer_reading=1100, liters=10, cost_per_liter=100
        )
        assert violation.code == ViolationCode.TRIP_VEHICLE_MISMATCH
        assert violation.message == "Linked trip was run by vehicle 1, not vehicle 2"

    def test_linked_trip_must_belong_to_driver(self):
        violation = invariants.check_record_expense(
            vehicle(), driver(id=8), trip(TripStatus.COMPLETED), category=ExpenseCategory.MISC,
            odometer_reading=1100, misc_expense_type=MiscExpenseType.TOLL, total_cost=50
        )
        assert violation.code == ViolationCode.TRIP_DRIVER_MISMATCH

    def test_recorder_must_be_driver(self):
        violation = invariants.check_record_expense(
            vehicle(), driver(role=UserRole.FINANCIAL_ANALYST), None, category=ExpenseCategory.MISC,
            odometer_reading=1000, misc_expense_type=MiscExpenseType.PARKING, total_cost=50
        )
        assert violation.code == ViolationCode.NOT_A_DRIVER

    def test_admissible_fuel_on_completed_trip(self):
        assert invariants.check_record_expense(
            vehicle(), driver(), trip(TripStatus.COMPLETED), category=ExpenseCategory.FUEL,
            odometer_reading=1000, liters=40, cost_per_liter=95
        ) is None


class TestFleetAdministration:
    def test_register_vehicle(self):
        assert invariants.check_register_vehicle(False, 500) is None
        assert invariants.check_register_vehicle(True, 500).code == ViolationCode.PLATE_TAKEN
        assert invariants.check_register_vehicle(False, 0).code == ViolationCode.INVALID_CAPACITY

    def test_register_driver(self):
        assert invariants.check_register_driver(False, False) is None
        assert invariants.check_register_driver(True, False).code == ViolationCode.CONTACT_TAKEN
        assert invariants.check_register_driver(False, True).code == ViolationCode.CONTACT_TAKEN

    @pytest.mark.parametrize("status,code", [
        (VehicleStatus.ON_TRIP, ViolationCode.VEHICLE_ON_TRIP),
        (VehicleStatus.IN_SHOP, ViolationCode.VEHICLE_IN_SHOP),
        (VehicleStatus.OUT_OF_SERVICE, ViolationCode.VEHICLE_RETIRED),
    ])
    def test_retire_rejected(self, status, code):
        assert invariants.check_retire_vehicle(vehicle(status=status)).code == code

    def test_retire_and_reactivate(self):
        assert invariants.check_retire_vehicle(vehicle()) is None
        assert invariants.check_reactivate_vehicle(vehicle(status=VehicleStatus.OUT_OF_SERVICE)) is None
        assert invariants.check_reactivate_vehicle(vehicle()).code == ViolationCode.VEHICLE_NOT_RETIRED

    def test_duty_toggle(self):
        assert invariants.check_set_duty_status(driver(), DutyStatus.OFF_DUTY) is None
        assert invariants.check_set_duty_status(driver(), DutyStatus.ON_TRIP).code == ViolationCode.INVALID_DUTY_STATUS
        on_trip = driver(duty_status=DutyStatus.ON_TRIP)
        assert invariants.check_set_duty_status(on_trip, DutyStatus.OFF_DUTY).code == ViolationCode.DRIVER_ON_TRIP
