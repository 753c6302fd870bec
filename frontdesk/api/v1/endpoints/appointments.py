"""Appointment endpoints."""

from datetime import date

from fastapi import APIRouter, Query, status

from frontdesk.dependencies import Appointments, Patients
from frontdesk.schemas.appointments import (
    AppointmentBookRequest,
    AppointmentCreate,
    AppointmentListItem,
    AppointmentResponse,
    AppointmentUpdate,
    AppointmentUpdateBody,
    ConflictResponse,
    StatusCountsResponse,
    StatusSummaryResponse,
    WriteResult,
)
from frontdesk.services.conflict_policy import NO_EXCLUSION
from frontdesk.services.patient_directory import UNKNOWN_PATIENT

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    service: Appointments,
) -> AppointmentResponse:
    """
    Create an appointment without a capacity check.

    Clients call ``GET /conflict`` first and confirm with the operator when
    the slot is full.
    """
    return await service.create_appointment(data)


@router.post(
    "/book",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book appointment with capacity check",
)
async def book_appointment(
    data: AppointmentBookRequest,
    service: Appointments,
) -> AppointmentResponse:
    """
    Check capacity and create in one transaction.

    Returns 409 when the slot is full and ``override`` is false.
    """
    return await service.book(data, max_concurrent=data.max_concurrent, override=data.override)


@router.get(
    "/conflict",
    response_model=ConflictResponse,
    summary="Check slot capacity",
)
async def check_conflict(
    service: Appointments,
    when: str = Query(..., description="YYYY-MM-DD HH:MM or YYYY-MM-DD HH:MM:SS"),
    exclude_id: int = Query(NO_EXCLUSION),
    max_concurrent: int | None = Query(None, ge=1),
) -> ConflictResponse:
    """Advisory capacity check for one timestamp."""
    limit = service.max_concurrent if max_concurrent is None else max_concurrent
    instant = service.normalize_when(when)
    active = await service.active_count(instant, exclude_id)
    return ConflictResponse(
        when=instant,
        conflict=active >= limit,
        active=active,
        max_concurrent=limit,
    )


@router.get(
    "/",
    response_model=list[AppointmentListItem],
    summary="List appointments",
)
async def list_appointments(
    service: Appointments,
    patients: Patients,
    patient_id: int | None = Query(None),
    today: bool = Query(False),
    day: date | None = Query(None, description="List a specific day instead of today"),
) -> list[AppointmentListItem]:
    """
    List appointments, earliest first.

    Args:
        service: Appointment service
        patients: Patient directory
        patient_id: Filter by patient
        today: Only today's appointments
        day: Only this day's appointments

    Returns:
        Appointments with patient names
    """
    if today or day is not None:
        items = await service.get_todays_appointments(today=day, patient_id=patient_id)
    elif patient_id is not None:
        items = await service.get_appointments_by_patient(patient_id)
    else:
        items = await service.get_all_appointments()

    names = await patients.get_patient_names([item.patient_id for item in items])
    return [
        AppointmentListItem(
            **item.model_dump(),
            patient_name=names.get(item.patient_id, UNKNOWN_PATIENT),
        )
        for item in items
    ]


@router.get(
    "/stats",
    response_model=StatusCountsResponse,
    summary="Status counts",
)
async def appointment_stats(
    service: Appointments,
    patient_id: int | None = Query(None),
) -> StatusCountsResponse:
    """Counts per status bucket, for everyone or one patient."""
    counts = await service.counts_by_status(patient_id)
    return StatusCountsResponse(**counts.as_dict())


@router.get(
    "/summary/{patient_id}",
    response_model=StatusSummaryResponse,
    summary="Patient status summary",
)
async def patient_summary(
    patient_id: int,
    service: Appointments,
) -> StatusSummaryResponse:
    """Per-status summary for one patient."""
    summary = await service.status_summary_for_patient(patient_id)
    return StatusSummaryResponse(
        patient_id=patient_id,
        scheduled=summary.scheduled,
        completed=summary.completed,
        missed=summary.missed,
        first_scheduled=summary.first_scheduled,
        last_completed=summary.last_completed,
        last_missed=summary.last_missed,
        text=summary.render(),
    )


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: int,
    service: Appointments,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    return await service.get_appointment(appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=WriteResult,
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdateBody,
    service: Appointments,
) -> WriteResult:
    """
    Replace an appointment's fields.

    This is a full replacement: an omitted ``status`` is stored as
    ``scheduled`` and an omitted ``reason`` is cleared. An unknown id is not
    an error: ``affected`` is 0.
    """
    update = AppointmentUpdate(id=appointment_id, **data.model_dump(exclude_unset=True))
    return WriteResult(affected=await service.update_appointment(update))


@router.post(
    "/{appointment_id}/cancel",
    response_model=WriteResult,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: int,
    service: Appointments,
    hard_delete: bool = Query(False),
) -> WriteResult:
    """Mark an appointment cancelled, or delete it where status is unsupported."""
    return WriteResult(affected=await service.cancel_appointment(appointment_id, hard_delete))


@router.delete(
    "/{appointment_id}",
    response_model=WriteResult,
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: int,
    service: Appointments,
) -> WriteResult:
    """Permanently delete an appointment."""
    return WriteResult(affected=await service.delete_appointment(appointment_id))
