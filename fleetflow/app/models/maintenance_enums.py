"""
Maintenance (service log) enumerations.
"""

import enum


class ServiceStatus(str, enum.Enum):
    """Service log status enumeration."""
    NEW = "NEW"  # Vehicle moved to IN_SHOP
    IN_PROGRESS = "IN_PROGRESS"  # Work has started
    COMPLETED = "COMPLETED"  # Terminal, vehicle back to AVAILABLE
    CANCELLED = "CANCELLED"  # Terminal, vehicle back to AVAILABLE


class ServiceType(str, enum.Enum):
    """Kind of maintenance work."""
    PREVENTATIVE = "PREVENTATIVE"
    REPAIR = "REPAIR"
    INSPECTION = "INSPECTION"
    EMERGENCY = "EMERGENCY"


class ServicePriority(str, enum.Enum):
    """Urgency of a service log."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


TERMINAL_SERVICE_STATUSES = frozenset({ServiceStatus.COMPLETED, ServiceStatus.CANCELLED})
OPEN_SERVICE_STATUSES = frozenset({ServiceStatus.NEW, ServiceStatus.IN_PROGRESS})
