"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.database import get_db
from frontdesk.events import AppointmentChanges
from frontdesk.services.appointment_service import AppointmentService
from frontdesk.services.patient_directory import PatientDirectory


def get_changes(request: Request) -> AppointmentChanges:
    """Change channel owned by the running application."""
    return request.app.state.changes


async def get_appointment_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    changes: Annotated[AppointmentChanges, Depends(get_changes)],
) -> AppointmentService:
    """
    Appointment service bound to the request's session.

    Schema capabilities are probed once per request session.
    """
    return AppointmentService(db, changes=changes)


async def get_patient_directory(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PatientDirectory:
    """Patient directory bound to the request's session."""
    return PatientDirectory(db)


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
Appointments = Annotated[AppointmentService, Depends(get_appointment_service)]
Patients = Annotated[PatientDirectory, Depends(get_patient_directory)]
