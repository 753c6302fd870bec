"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

# Status value written by older front-desk builds; read as NO_SHOW
LEGACY_MISSED = "missed"


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    ARRIVED = "arrived"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @classmethod
    def _missing_(cls, value: object) -> "AppointmentStatus | None":
        if value == LEGACY_MISSED:
            return cls.NO_SHOW
        return None

    @property
    def is_active(self) -> bool:
        """Whether the appointment counts toward slot capacity."""
        return self not in (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)

    @classmethod
    def inactive_values(cls) -> tuple[str, ...]:
        """Stored values of statuses that do not count toward capacity, legacy ones included."""
        values = tuple(status.value for status in cls if not status.is_active)
        return values + (LEGACY_MISSED,)


def coerce_status(raw: str | None) -> AppointmentStatus:
    """Map a stored status to the enum; absent or unknown values are scheduled."""
    if raw is None:
        return AppointmentStatus.SCHEDULED
    try:
        return AppointmentStatus(raw)
    except ValueError:
        return AppointmentStatus.SCHEDULED


def _validate_patient_id(v: int) -> int:
    if v < 1:
        raise ValueError("Please select a patient.")
    return v


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment.

    ``when`` is the operator-typed date/time text; it is normalized by the
    service, which also rejects it when blank.
    """

    patient_id: int
    when: str | None = None
    reason: str | None = Field(None, max_length=1000)
    status: AppointmentStatus | None = None
    visit_id: int | None = None

    @field_validator("patient_id")
    @classmethod
    def validate_patient(cls, v: int) -> int:
        """Reject the unselected-patient sentinel."""
        return _validate_patient_id(v)


class AppointmentUpdateBody(BaseModel):
    """Request body for ``PUT /appointments/{id}``."""

    patient_id: int
    when: str | None = None
    reason: str | None = Field(None, max_length=1000)
    status: AppointmentStatus = Field(
        AppointmentStatus.SCHEDULED,
        description="The body replaces the stored row; omitting status resets it to scheduled",
    )
    visit_id: int | None = None

    @field_validator("patient_id")
    @classmethod
    def validate_patient(cls, v: int) -> int:
        """Reject the unselected-patient sentinel."""
        return _validate_patient_id(v)


class AppointmentUpdate(AppointmentUpdateBody):
    """Schema for updating an existing appointment (full replacement)."""

    id: int


class AppointmentResponse(BaseModel):
    """Schema for appointment response.

    Optional columns are ``None`` when the deployment does not have them.
    """

    id: int
    patient_id: int
    appointment_date: datetime
    reason: str | None = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    created_at: datetime | None = None
    updated_at: datetime | None = None
    visit_id: int | None = None

    model_config = {"from_attributes": True}

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: object) -> AppointmentStatus:
        """Absent or unrecognized stored status reads as scheduled."""
        if isinstance(v, AppointmentStatus):
            return v
        return coerce_status(v if isinstance(v, str) else None)


class AppointmentBookRequest(AppointmentCreate):
    """Schema for a capacity-checked booking."""

    max_concurrent: int | None = Field(None, ge=1)
    override: bool = False


class WriteResult(BaseModel):
    """Number of rows touched by a write."""

    affected: int


class ConflictResponse(BaseModel):
    """Capacity check result; ``conflict`` is advisory."""

    when: datetime
    conflict: bool
    active: int
    max_concurrent: int


class StatusCountsResponse(BaseModel):
    """Status bucket counts."""

    scheduled: int
    completed: int
    missed: int
    cancelled: int
    total: int


class StatusSummaryResponse(BaseModel):
    """Per-patient status summary."""

    patient_id: int
    scheduled: int
    completed: int
    missed: int
    first_scheduled: datetime | None = None
    last_completed: datetime | None = None
    last_missed: datetime | None = None
    text: str


class AppointmentListItem(AppointmentResponse):
    """Appointment with the patient's display name."""

    patient_name: str
