"""Patient table using SQLAlchemy Core.

Patients are owned by the patient directory; this declaration exists so
appointments can reference them.
"""

from sqlalchemy import Column, Date, DateTime, Integer, String, Table, Text, func

from frontdesk.models.base import metadata

patients = Table(
    "patients",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("date_of_birth", Date),
    Column("phone_number", String(20)),
    Column("email", String(255)),
    Column("address", Text),
    # Metadata
    Column("created_at", DateTime, server_default=func.now()),
    Column("updated_at", DateTime, server_default=func.now()),
)
