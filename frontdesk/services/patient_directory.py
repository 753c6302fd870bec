"""Read access to the external patient directory."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.models.patients import patients

UNKNOWN_PATIENT = "Unknown"


class PatientDirectory:
    """Looks up patient display names."""

    def __init__(self, db: AsyncSession):
        """Initialize directory with database session."""
        self.db = db

    async def get_patient_name(self, patient_id: int) -> str:
        """Full name of a patient, or ``"Unknown"``."""
        names = await self.get_patient_names([patient_id])
        return names.get(patient_id, UNKNOWN_PATIENT)

    async def get_patient_names(self, patient_ids: list[int]) -> dict[int, str]:
        """Full names keyed by patient id; missing patients are left out."""
        if not patient_ids:
            return {}

        stmt = select(patients.c.id, patients.c.first_name, patients.c.last_name).where(
            patients.c.id.in_(set(patient_ids))
        )
        result = await self.db.execute(stmt)
        return {row.id: f"{row.first_name} {row.last_name}" for row in result.fetchall()}
