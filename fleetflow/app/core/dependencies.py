"""
FastAPI dependencies.

Wires the transition coordinator and the read facade to the session factory,
and reads the acting user forwarded by the upstream auth layer.
"""

from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import async_sessionmaker

from fleetflow.app.db.session import AsyncSessionLocal
from fleetflow.app.domain.fleet.coordinator import TransitionCoordinator
from fleetflow.app.domain.fleet.queries import FleetQueries


def get_session_factory() -> async_sessionmaker:
    """
    Session factory used by the core.

    Tests override this dependency to point at an isolated database.
    """
    return AsyncSessionLocal


def get_coordinator(
    session_factory: async_sessionmaker = Depends(get_session_factory)
) -> TransitionCoordinator:
    return TransitionCoordinator(session_factory)


def get_queries(
    session_factory: async_sessionmaker = Depends(get_session_factory)
) -> FleetQueries:
    return FleetQueries(session_factory)


async def get_actor_id(
    x_actor_id: Optional[int] = Header(None, alias="X-Actor-Id", description="Acting user ID")
) -> Optional[int]:
    """
    Acting user ID.

    Authentication is done upstream; the gateway forwards the authenticated
    user's ID in the ``X-Actor-Id`` header. Requests without it are recorded
    with no actor.
    """
    return x_actor_id
