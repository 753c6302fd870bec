"""Appointment service for business logic."""

from datetime import date, datetime, time, timedelta
from typing import Any

import structlog
from sqlalchemy import and_, delete, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.config import settings
from frontdesk.core.exceptions import (
    CapacityExceededException,
    MissingFieldException,
    NotFoundException,
)
from frontdesk.events import AppointmentChange, AppointmentChanges, ChangeKind
from frontdesk.models.appointments import appointments
from frontdesk.schemas.appointments import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
)
from frontdesk.services import conflict_policy, status_aggregator
from frontdesk.services.conflict_policy import NO_EXCLUSION
from frontdesk.services.schema_capabilities import SchemaCapabilities, probe_capabilities
from frontdesk.services.status_aggregator import StatusCounts, StatusSummary
from frontdesk.services.timestamps import parse_timestamp

logger = structlog.get_logger(__name__)


class AppointmentService:
    """Service for managing appointments.

    Owns the read/write path to the appointments table. Statements are
    shaped by the schema capabilities of the session, probed once on first
    use unless supplied by the caller.
    """

    def __init__(
        self,
        db: AsyncSession,
        capabilities: SchemaCapabilities | None = None,
        changes: AppointmentChanges | None = None,
        max_concurrent: int | None = None,
    ):
        """Initialize service with database session."""
        self.db = db
        self.changes = changes
        self.max_concurrent = (
            settings.max_concurrent_per_slot if max_concurrent is None else max_concurrent
        )
        self._capabilities = capabilities

    async def capabilities(self) -> SchemaCapabilities:
        """Capabilities of this session, probed on first use."""
        if self._capabilities is None:
            self._capabilities = await probe_capabilities(self.db)
        return self._capabilities

    async def refresh_capabilities(self) -> SchemaCapabilities:
        """Probe again, e.g. after a migration ran on this connection."""
        self._capabilities = None
        return await self.capabilities()

    @staticmethod
    def _columns(capabilities: SchemaCapabilities) -> list[Any]:
        columns: list[Any] = [
            appointments.c.id,
            appointments.c.patient_id,
            appointments.c.appointment_date,
            appointments.c.reason,
        ]
        if capabilities.has_status:
            columns.append(appointments.c.status)
        if capabilities.has_audit_columns:
            columns.extend([appointments.c.created_at, appointments.c.updated_at])
        if capabilities.has_visit_reference:
            columns.append(appointments.c.visit_id)
        return columns

    @staticmethod
    def _to_response(row: Any) -> AppointmentResponse:
        return AppointmentResponse.model_validate(dict(row._mapping))

    @staticmethod
    def _require_when(when: str | None) -> datetime:
        if when is None or not when.strip():
            raise MissingFieldException("when", "Appointment date is required.")
        return parse_timestamp(when)

    def _publish(self, kind: ChangeKind, appointment_id: int, patient_id: int | None = None) -> None:
        if self.changes is not None:
            self.changes.publish(AppointmentChange(kind, appointment_id, patient_id))

    @staticmethod
    def _insert_values(
        data: AppointmentCreate,
        when: datetime,
        capabilities: SchemaCapabilities,
    ) -> dict[str, Any]:
        values: dict[str, Any] = {
            "patient_id": data.patient_id,
            "appointment_date": when,
            "reason": data.reason,
        }
        if capabilities.has_status:
            values["status"] = (data.status or AppointmentStatus.SCHEDULED).value
        if capabilities.has_visit_reference and data.visit_id is not None:
            values["visit_id"] = data.visit_id
        return values

    async def _select(self, *conditions: Any) -> list[AppointmentResponse]:
        capabilities = await self.capabilities()
        stmt = select(*self._columns(capabilities))
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(appointments.c.appointment_date.asc(), appointments.c.id.asc())

        result = await self.db.execute(stmt)
        return [self._to_response(row) for row in result.fetchall()]

    async def create_appointment(self, data: AppointmentCreate) -> AppointmentResponse:
        """
        Create a new appointment.

        The capacity check is not part of this call; use ``has_conflict``
        first, or ``book`` for a check and insert in one transaction.

        Args:
            data: Appointment creation data

        Returns:
            Created appointment

        Raises:
            MissingFieldException: If ``when`` is blank
            InvalidFormatException: If ``when`` cannot be parsed
        """
        when = self._require_when(data.when)
        capabilities = await self.capabilities()

        stmt = (
            insert(appointments)
            .values(**self._insert_values(data, when, capabilities))
            .returning(*self._columns(capabilities))
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        await self.db.commit()

        appointment = self._to_response(row)
        logger.info(
            "appointment_created",
            appointment_id=appointment.id,
            patient_id=appointment.patient_id,
            appointment_date=when.isoformat(),
        )
        self._publish(ChangeKind.CREATED, appointment.id, appointment.patient_id)
        return appointment

    async def book(
        self,
        data: AppointmentCreate,
        max_concurrent: int | None = None,
        override: bool = False,
    ) -> AppointmentResponse:
        """
        Check capacity and create the appointment in one transaction.

        On PostgreSQL the transaction first takes an advisory lock on the
        slot; the insert itself only writes while the slot is under
        capacity, so concurrent bookings cannot overshoot it.

        Args:
            data: Appointment creation data
            max_concurrent: Capacity; defaults to the service's
            override: Operator confirmed booking into a full slot

        Returns:
            Created appointment

        Raises:
            MissingFieldException: If ``when`` is blank
            InvalidFormatException: If ``when`` cannot be parsed
            CapacityExceededException: If the slot is full and not overridden
        """
        when = self._require_when(data.when)
        capabilities = await self.capabilities()
        limit = self.max_concurrent if max_concurrent is None else max_concurrent
        values = self._insert_values(data, when, capabilities)

        if override:
            stmt = insert(appointments).values(**values)
        else:
            await self._lock_slot(when)
            stmt = conflict_policy.guarded_insert(capabilities, values, limit)

        result = await self.db.execute(stmt.returning(*self._columns(capabilities)))
        row = result.fetchone()

        if row is None:
            await self.db.rollback()
            logger.info(
                "appointment_booking_declined",
                patient_id=data.patient_id,
                appointment_date=when.isoformat(),
                max_concurrent=limit,
            )
            raise CapacityExceededException(when, limit)

        await self.db.commit()

        appointment = self._to_response(row)
        logger.info(
            "appointment_booked",
            appointment_id=appointment.id,
            patient_id=appointment.patient_id,
            appointment_date=when.isoformat(),
            override=override,
        )
        self._publish(ChangeKind.CREATED, appointment.id, appointment.patient_id)
        return appointment

    async def _lock_slot(self, when: datetime) -> None:
        conn = await self.db.connection()
        if conn.dialect.name == "postgresql":
            await self.db.execute(
                select(func.pg_advisory_xact_lock(conflict_policy.slot_lock_key(when)))
            )

    async def update_appointment(self, data: AppointmentUpdate) -> int:
        """
        Update an existing appointment.

        An id that does not exist is not an error; nothing is written.

        Args:
            data: Full replacement values

        Returns:
            Number of rows updated (0 or 1)

        Raises:
            MissingFieldException: If ``when`` is blank
            InvalidFormatException: If ``when`` cannot be parsed
        """
        when = self._require_when(data.when)
        capabilities = await self.capabilities()

        values: dict[str, Any] = {
            "patient_id": data.patient_id,
            "appointment_date": when,
            "reason": data.reason,
        }
        if capabilities.has_status:
            values["status"] = data.status.value
        if capabilities.has_audit_columns:
            values["updated_at"] = func.now()
        if capabilities.has_visit_reference and "visit_id" in data.model_fields_set:
            values["visit_id"] = data.visit_id

        stmt = update(appointments).where(appointments.c.id == data.id).values(**values)
        result = await self.db.execute(stmt)
        await self.db.commit()

        affected = result.rowcount
        if affected:
            logger.info("appointment_updated", appointment_id=data.id, status=data.status.value)
            self._publish(ChangeKind.UPDATED, data.id, data.patient_id)
        else:
            logger.info("appointment_update_no_match", appointment_id=data.id)
        return affected

    async def delete_appointment(self, appointment_id: int) -> int:
        """
        Permanently delete an appointment.

        Args:
            appointment_id: Appointment ID

        Returns:
            Number of rows deleted
        """
        stmt = delete(appointments).where(appointments.c.id == appointment_id)
        result = await self.db.execute(stmt)
        await self.db.commit()

        affected = result.rowcount
        if affected:
            logger.info("appointment_deleted", appointment_id=appointment_id)
            self._publish(ChangeKind.DELETED, appointment_id)
        return affected

    async def cancel_appointment(self, appointment_id: int, hard_delete: bool = False) -> int:
        """
        Cancel an appointment.

        Marks it ``cancelled`` where the schema has a status column and
        deletes it otherwise (or when ``hard_delete`` is set).

        Returns:
            Number of rows touched
        """
        capabilities = await self.capabilities()
        if hard_delete or not capabilities.has_status:
            return await self.delete_appointment(appointment_id)

        values: dict[str, Any] = {"status": AppointmentStatus.CANCELLED.value}
        if capabilities.has_audit_columns:
            values["updated_at"] = func.now()

        stmt = update(appointments).where(appointments.c.id == appointment_id).values(**values)
        result = await self.db.execute(stmt)
        await self.db.commit()

        affected = result.rowcount
        if affected:
            logger.info("appointment_cancelled", appointment_id=appointment_id)
            self._publish(ChangeKind.UPDATED, appointment_id)
        return affected

    async def get_appointment(self, appointment_id: int) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        rows = await self._select(appointments.c.id == appointment_id)
        if not rows:
            raise NotFoundException("Appointment not found")
        return rows[0]

    async def get_all_appointments(self) -> list[AppointmentResponse]:
        """All appointments, earliest first."""
        return await self._select()

    async def get_appointments_by_patient(self, patient_id: int) -> list[AppointmentResponse]:
        """A patient's appointments, earliest first."""
        return await self._select(appointments.c.patient_id == patient_id)

    async def get_todays_appointments(
        self,
        today: date | None = None,
        patient_id: int | None = None,
        exclude_cancelled: bool = False,
    ) -> list[AppointmentResponse]:
        """
        Appointments on one calendar day, earliest first.

        Args:
            today: Day to list; defaults to the local date
            patient_id: Restrict to one patient
            exclude_cancelled: Leave out cancelled appointments

        Returns:
            Matching appointments
        """
        start = datetime.combine(today or date.today(), time.min)
        conditions: list[Any] = [
            appointments.c.appointment_date >= start,
            appointments.c.appointment_date < start + timedelta(days=1),
        ]
        if patient_id is not None:
            conditions.append(appointments.c.patient_id == patient_id)

        capabilities = await self.capabilities()
        if exclude_cancelled and capabilities.has_status:
            conditions.append(
                or_(
                    appointments.c.status.is_(None),
                    appointments.c.status != AppointmentStatus.CANCELLED.value,
                )
            )
        return await self._select(*conditions)

    def normalize_when(self, when: str | datetime | None) -> datetime:
        if isinstance(when, datetime):
            return when
        return self._require_when(when)

    async def active_count(
        self,
        when: str | datetime,
        exclude_id: int = NO_EXCLUSION,
    ) -> int:
        """Number of active appointments sharing ``when``."""
        instant = self.normalize_when(when)
        return await conflict_policy.active_count(
            self.db, await self.capabilities(), instant, exclude_id
        )

    async def has_conflict(
        self,
        when: str | datetime,
        exclude_id: int = NO_EXCLUSION,
        max_concurrent: int | None = None,
    ) -> bool:
        """
        Check whether the slot at ``when`` is at capacity.

        A True result is advisory; callers ask for confirmation.

        Args:
            when: Timestamp text or datetime
            exclude_id: Appointment to leave out of the count
            max_concurrent: Capacity; defaults to the service's

        Returns:
            True if the slot is full
        """
        instant = self.normalize_when(when)
        limit = self.max_concurrent if max_concurrent is None else max_concurrent
        return await conflict_policy.has_conflict(
            self.db, await self.capabilities(), instant, exclude_id, limit
        )

    async def counts_by_status(self, patient_id: int | None = None) -> StatusCounts:
        """Status bucket counts, for one patient or everyone."""
        return await status_aggregator.counts_by_status(
            self.db, await self.capabilities(), patient_id
        )

    async def status_summary_for_patient(self, patient_id: int) -> StatusSummary:
        """Per-status summary of a patient's appointments."""
        return await status_aggregator.summarize(self.db, await self.capabilities(), patient_id)
