"""Soft per-slot capacity for appointments sharing one exact timestamp.

A full slot is advisory: callers ask the operator for confirmation rather
than treating it as an error.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import Insert, Select, and_, func, insert, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.config import settings
from frontdesk.models.appointments import appointments
from frontdesk.schemas.appointments import AppointmentStatus
from frontdesk.services.schema_capabilities import SchemaCapabilities

# Sentinel id meaning "exclude nothing"
NO_EXCLUSION = -1

INACTIVE_STATUSES = AppointmentStatus.inactive_values()


def active_conditions(
    capabilities: SchemaCapabilities,
    instant: datetime,
    exclude_id: int = NO_EXCLUSION,
) -> list[Any]:
    """Conditions selecting the active appointments at ``instant``."""
    conditions: list[Any] = [
        appointments.c.appointment_date == instant,
        appointments.c.id != exclude_id,
    ]
    if capabilities.has_status:
        conditions.append(
            or_(
                appointments.c.status.is_(None),
                appointments.c.status.notin_(INACTIVE_STATUSES),
            )
        )
    return conditions


def active_count_query(
    capabilities: SchemaCapabilities,
    instant: datetime,
    exclude_id: int = NO_EXCLUSION,
) -> Select:
    """Count of active appointments at ``instant``."""
    return (
        select(func.count())
        .select_from(appointments)
        .where(and_(*active_conditions(capabilities, instant, exclude_id)))
    )


async def active_count(
    db: AsyncSession,
    capabilities: SchemaCapabilities,
    instant: datetime,
    exclude_id: int = NO_EXCLUSION,
) -> int:
    """Number of active appointments at ``instant``, ignoring ``exclude_id``."""
    result = await db.execute(active_count_query(capabilities, instant, exclude_id))
    return result.scalar() or 0


async def has_conflict(
    db: AsyncSession,
    capabilities: SchemaCapabilities,
    instant: datetime,
    exclude_id: int = NO_EXCLUSION,
    max_concurrent: int | None = None,
) -> bool:
    """
    Check whether the slot at ``instant`` is at capacity.

    Args:
        db: Database session
        capabilities: Capabilities of the session's connection
        instant: Normalized appointment time; compared for exact equality
        exclude_id: Appointment to leave out of the count (e.g. the one
            being rescheduled)
        max_concurrent: Capacity; defaults to the configured value

    Returns:
        True if the active count is at or above capacity
    """
    limit = settings.max_concurrent_per_slot if max_concurrent is None else max_concurrent
    return await active_count(db, capabilities, instant, exclude_id) >= limit


def guarded_insert(
    capabilities: SchemaCapabilities,
    values: dict[str, Any],
    max_concurrent: int,
) -> Insert:
    """
    Build an insert that only writes while the slot is under capacity.

    The capacity check and the write are a single statement, so no other
    writer can slip in between them.

    Args:
        capabilities: Capabilities of the session's connection
        values: Column values; must include ``appointment_date``
        max_concurrent: Capacity of the slot

    Returns:
        ``INSERT ... SELECT ... WHERE count < max_concurrent``
    """
    count = (
        active_count_query(capabilities, values["appointment_date"]).correlate(None).scalar_subquery()
    )
    names = list(values)
    source = select(
        *[literal(values[name], appointments.c[name].type).label(name) for name in names]
    ).where(count < max_concurrent)
    return insert(appointments).from_select(names, source)


def slot_lock_key(instant: datetime) -> int:
    """Advisory lock key for a slot, e.g. ``20240601100000``."""
    return int(instant.strftime("%Y%m%d%H%M%S"))
