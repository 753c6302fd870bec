"""Per-status appointment counts and summaries."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.models.appointments import appointments
from frontdesk.schemas.appointments import LEGACY_MISSED, AppointmentStatus
from frontdesk.services.schema_capabilities import SchemaCapabilities
from frontdesk.services.timestamps import format_timestamp

COMPLETED_VALUES = (AppointmentStatus.COMPLETED.value,)
CANCELLED_VALUES = (AppointmentStatus.CANCELLED.value,)
MISSED_VALUES = (AppointmentStatus.NO_SHOW.value, LEGACY_MISSED)


def status_bucket(raw: str | None) -> str:
    """Bucket a stored status value."""
    if raw in COMPLETED_VALUES:
        return "completed"
    if raw in CANCELLED_VALUES:
        return "cancelled"
    if raw in MISSED_VALUES:
        return "missed"
    return "scheduled"


@dataclass(frozen=True)
class StatusCounts:
    """Appointment counts per bucket."""

    scheduled: int = 0
    completed: int = 0
    missed: int = 0
    cancelled: int = 0

    @property
    def total(self) -> int:
        return self.scheduled + self.completed + self.missed + self.cancelled

    def as_dict(self) -> dict[str, int]:
        return {
            "scheduled": self.scheduled,
            "completed": self.completed,
            "missed": self.missed,
            "cancelled": self.cancelled,
            "total": self.total,
        }


@dataclass(frozen=True)
class StatusSummary:
    """
    A patient's appointment history by status.

    Upcoming work is dated by its first occurrence, past work by its last.
    Without a status column only ``scheduled`` and ``first_scheduled`` are
    meaningful.
    """

    patient_id: int
    scheduled: int
    completed: int = 0
    missed: int = 0
    first_scheduled: datetime | None = None
    last_completed: datetime | None = None
    last_missed: datetime | None = None
    has_status: bool = True

    def render(self) -> str:
        """Three-line report, or a single line without a status column."""
        lines = [_line("Scheduled", self.scheduled, self.first_scheduled, last=False)]
        if self.has_status:
            lines.append(_line("Completed", self.completed, self.last_completed, last=True))
            lines.append(_line("Missed", self.missed, self.last_missed, last=True))
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()


def _line(label: str, count: int, when: datetime | None, *, last: bool) -> str:
    if when is None:
        return f"{label}: {count}"
    prefix = "last: " if last else ""
    return f"{label}: {count} ({prefix}{format_timestamp(when)})"


def _patient_filter(patient_id: int | None) -> list[Any]:
    if patient_id is None:
        return []
    return [appointments.c.patient_id == patient_id]


def _scheduled_condition() -> Any:
    # Upcoming only; arrived and in-progress rows stay out of the earliest date
    return or_(
        appointments.c.status.is_(None),
        appointments.c.status == AppointmentStatus.SCHEDULED.value,
    )


async def counts_by_status(
    db: AsyncSession,
    capabilities: SchemaCapabilities,
    patient_id: int | None = None,
) -> StatusCounts:
    """
    Count appointments per status bucket.

    Args:
        db: Database session
        capabilities: Capabilities of the session's connection
        patient_id: Restrict to one patient; ``None`` counts everyone

    Returns:
        Counts whose buckets sum to the number of matching appointments
    """
    conditions = _patient_filter(patient_id)

    if not capabilities.has_status:
        stmt = select(func.count()).select_from(appointments)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        result = await db.execute(stmt)
        return StatusCounts(scheduled=result.scalar() or 0)

    stmt = select(appointments.c.status, func.count()).group_by(appointments.c.status)
    if conditions:
        stmt = stmt.where(and_(*conditions))

    result = await db.execute(stmt)
    buckets = {"scheduled": 0, "completed": 0, "missed": 0, "cancelled": 0}
    for raw, count in result.all():
        buckets[status_bucket(raw)] += count

    return StatusCounts(**buckets)


async def _date_aggregate(db: AsyncSession, aggregate: Any, conditions: list[Any]) -> datetime | None:
    stmt = select(aggregate(appointments.c.appointment_date)).where(and_(*conditions))
    result = await db.execute(stmt)
    return result.scalar()


async def summarize(
    db: AsyncSession,
    capabilities: SchemaCapabilities,
    patient_id: int,
) -> StatusSummary:
    """
    Summarize a patient's appointments by status.

    Each status gets its own aggregate query so it can carry the date that
    matters for it: earliest for scheduled, latest for completed and missed.

    Args:
        db: Database session
        capabilities: Capabilities of the session's connection
        patient_id: Patient to summarize

    Returns:
        Status summary
    """
    counts = await counts_by_status(db, capabilities, patient_id)
    base = _patient_filter(patient_id)

    if not capabilities.has_status:
        first = await _date_aggregate(db, func.min, base)
        return StatusSummary(
            patient_id=patient_id,
            scheduled=counts.total,
            first_scheduled=first,
            has_status=False,
        )

    first_scheduled = await _date_aggregate(db, func.min, [*base, _scheduled_condition()])
    last_completed = await _date_aggregate(
        db, func.max, [*base, appointments.c.status.in_(COMPLETED_VALUES)]
    )
    last_missed = await _date_aggregate(
        db, func.max, [*base, appointments.c.status.in_(MISSED_VALUES)]
    )

    return StatusSummary(
        patient_id=patient_id,
        scheduled=counts.scheduled,
        completed=counts.completed,
        missed=counts.missed,
        first_scheduled=first_scheduled,
        last_completed=last_completed,
        last_missed=last_missed,
    )
