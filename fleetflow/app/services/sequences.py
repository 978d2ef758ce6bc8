"""
Sequence/numbering service.

Issues human-readable identifiers (TRP000001, SL000001, FL000001) from a
per-kind counter that is incremented inside the creating transaction.
"""

import enum

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, AsyncConnection

from fleetflow.app.core.config import settings
from fleetflow.app.models.sequence_counter import SequenceCounter


class SequenceKind(str, enum.Enum):
    """Numbered entity kinds."""
    TRIP = "TRIP"
    SERVICE_LOG = "SERVICE_LOG"
    EXPENSE_LOG = "EXPENSE_LOG"


SEQUENCE_PREFIXES = {
    SequenceKind.TRIP: "TRP",
    SequenceKind.SERVICE_LOG: "SL",
    SequenceKind.EXPENSE_LOG: "FL",
}


def format_identifier(kind: SequenceKind, value: int, width: int = None) -> str:
    """Format a counter value, e.g. (TRIP, 42) -> 'TRP000042'."""
    width = width or settings.sequence_pad_width
    return f"{SEQUENCE_PREFIXES[kind]}{str(value).zfill(width)}"


async def next_value(db: AsyncSession, kind: SequenceKind) -> int:
    """
    Atomically increment and return the counter for ``kind``.

    The UPDATE takes the row's write lock until the surrounding transaction
    ends, so concurrent creators are serialized and a rolled-back creation
    never publishes its number. A missing row is inserted here; if another
    transaction inserts it concurrently the flush raises IntegrityError and
    the caller's unit of work reports a retryable conflict.
    """
    result = await db.execute(
        update(SequenceCounter)
        .where(SequenceCounter.kind == kind.value)
        .values(value=SequenceCounter.value + 1)
        .returning(SequenceCounter.value)
        .execution_options(synchronize_session=False)
    )
    value = result.scalar_one_or_none()
    if value is not None:
        return value

    db.add(SequenceCounter(kind=kind.value, value=1))
    await db.flush()
    return 1


async def next_identifier(db: AsyncSession, kind: SequenceKind) -> str:
    """Allocate the next formatted identifier for ``kind``."""
    return format_identifier(kind, await next_value(db, kind))


async def ensure_sequences(conn: AsyncConnection) -> None:
    """Create any missing counter rows. Safe to run on every startup."""
    result = await conn.execute(select(SequenceCounter.kind))
    existing = {row[0] for row in result}
    missing = [kind.value for kind in SequenceKind if kind.value not in existing]
    if missing:
        await conn.execute(
            SequenceCounter.__table__.insert(),
            [{"kind": kind, "value": 0} for kind in missing]
        )
