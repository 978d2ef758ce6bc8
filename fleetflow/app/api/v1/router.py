"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from fleetflow.app.api.v1.endpoints import trips, maintenance, expenses, vehicles, drivers

router = APIRouter()

# Trip lifecycle
router.include_router(trips.router)

# Maintenance (service logs)
router.include_router(maintenance.router)

# Expenses (fuel and misc)
router.include_router(expenses.router)

# Fleet registry
router.include_router(vehicles.router)
router.include_router(drivers.router)
