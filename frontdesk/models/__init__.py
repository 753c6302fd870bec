"""Database models."""

from frontdesk.models.appointments import appointments, build_appointments_table
from frontdesk.models.base import metadata
from frontdesk.models.patients import patients

__all__ = [
    "appointments",
    "build_appointments_table",
    "metadata",
    "patients",
]
