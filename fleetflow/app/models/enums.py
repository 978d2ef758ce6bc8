"""
User and vehicle enumerations.

Defines the role, duty and vehicle lifecycle types for the fleet.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        FLEET_MANAGER: Oversees vehicle health and the asset lifecycle
        DISPATCHER: Creates trips and assigns drivers
        SAFETY_OFFICER: Monitors driver compliance and licences
        FINANCIAL_ANALYST: Audits fuel spend and operational costs
        DRIVER: Executes trips (default role)
    """
    FLEET_MANAGER = "FLEET_MANAGER"
    DISPATCHER = "DISPATCHER"
    SAFETY_OFFICER = "SAFETY_OFFICER"
    FINANCIAL_ANALYST = "FINANCIAL_ANALYST"
    DRIVER = "DRIVER"


class DutyStatus(str, enum.Enum):
    """Driver duty status enumeration."""
    OFF_DUTY = "OFF_DUTY"
    ON_DUTY = "ON_DUTY"  # Available for trip assignment
    ON_TRIP = "ON_TRIP"  # Only set by dispatch, cleared by complete/cancel


class LicenceType(str, enum.Enum):
    """Driving licence class."""
    BIKE = "BIKE"
    TRUCK = "TRUCK"
    VAN_TEMPO = "VAN_TEMPO"


class VehicleStatus(str, enum.Enum):
    """Vehicle lifecycle status enumeration."""
    AVAILABLE = "AVAILABLE"
    ON_TRIP = "ON_TRIP"  # Claimed by exactly one DISPATCHED trip
    IN_SHOP = "IN_SHOP"  # Claimed by exactly one open service log
    OUT_OF_SERVICE = "OUT_OF_SERVICE"  # Retired


class VehicleType(str, enum.Enum):
    """Vehicle type enumeration."""
    TRUCK = "TRUCK"
    VAN = "VAN"
    BIKE = "BIKE"
