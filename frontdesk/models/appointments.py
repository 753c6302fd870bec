"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
)

from frontdesk.models.base import metadata


def build_appointments_table(
    target: MetaData,
    *,
    status: bool = True,
    audit_columns: bool = True,
    visit_reference: bool = True,
) -> Table:
    """
    Declare the appointments table.

    Older deployments lack some optional columns; the flags reproduce those
    shapes so the same declaration serves migrations and tests.

    Args:
        target: Metadata to attach the table to
        status: Include the ``status`` column
        audit_columns: Include ``created_at``/``updated_at``
        visit_reference: Include ``visit_id``

    Returns:
        The table
    """
    columns: list = [
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column(
            "patient_id",
            Integer,
            ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        Column("appointment_date", DateTime, nullable=False),
        Column("reason", Text, nullable=True),
    ]

    if status:
        columns.append(Column("status", String(20), nullable=True, server_default="scheduled"))

    if audit_columns:
        columns.extend(
            [
                Column("created_at", DateTime, server_default=func.now()),
                Column("updated_at", DateTime, server_default=func.now()),
            ]
        )

    if visit_reference:
        columns.append(Column("visit_id", Integer, nullable=True))

    return Table(
        "appointments",
        target,
        *columns,
        Index("idx_appointments_patient_id", "patient_id"),
        Index("idx_appointments_date", "appointment_date"),
    )


# Latest schema; queries only touch the optional columns a deployment has
appointments = build_appointments_table(metadata)
