"""Detection of optional appointment columns on the connected database."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import structlog
from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

logger = structlog.get_logger(__name__)

APPOINTMENTS_TABLE = "appointments"
MIGRATIONS_TABLE = "alembic_version"


class Feature(str, Enum):
    """Optional storage features of the appointments table."""

    STATUS = "status"
    AUDIT_COLUMNS = "audit_columns"
    VISIT_REFERENCE = "visit_reference"


# A feature is present only when all of its columns exist
FEATURE_COLUMNS: dict[Feature, tuple[str, ...]] = {
    Feature.STATUS: ("status",),
    Feature.AUDIT_COLUMNS: ("created_at", "updated_at"),
    Feature.VISIT_REFERENCE: ("visit_id",),
}


@dataclass(frozen=True)
class SchemaCapabilities:
    """
    Optional features found on one connection.

    Probed once per session and handed to every query builder, so the
    shape of a statement never depends on a second probe.
    """

    has_status: bool = False
    has_audit_columns: bool = False
    has_visit_reference: bool = False
    revision: str | None = None
    probed_at: datetime = field(default_factory=datetime.now, compare=False)

    @classmethod
    def from_columns(cls, columns: set[str], revision: str | None = None) -> "SchemaCapabilities":
        """Build capabilities from the column names of the appointments table."""
        present = {
            feature: all(name in columns for name in names)
            for feature, names in FEATURE_COLUMNS.items()
        }
        return cls(
            has_status=present[Feature.STATUS],
            has_audit_columns=present[Feature.AUDIT_COLUMNS],
            has_visit_reference=present[Feature.VISIT_REFERENCE],
            revision=revision,
        )

    @classmethod
    def full(cls) -> "SchemaCapabilities":
        """Capabilities of the current schema."""
        return cls(has_status=True, has_audit_columns=True, has_visit_reference=True)

    def detect(self, feature: Feature | str) -> bool:
        """Whether ``feature`` is available."""
        feature = Feature(feature)
        if feature is Feature.STATUS:
            return self.has_status
        if feature is Feature.AUDIT_COLUMNS:
            return self.has_audit_columns
        return self.has_visit_reference

    def as_dict(self) -> dict[str, object]:
        """Serializable view."""
        return {
            "status": self.has_status,
            "audit_columns": self.has_audit_columns,
            "visit_reference": self.has_visit_reference,
            "revision": self.revision,
            "probed_at": self.probed_at.isoformat(),
        }


def _column_names(sync_conn: Connection, table_name: str) -> set[str]:
    return {column["name"] for column in inspect(sync_conn).get_columns(table_name)}


def _revision(sync_conn: Connection) -> str | None:
    if not inspect(sync_conn).has_table(MIGRATIONS_TABLE):
        return None
    return sync_conn.execute(text(f"SELECT version_num FROM {MIGRATIONS_TABLE}")).scalar()


async def probe_connection(
    conn: AsyncConnection,
    table_name: str = APPOINTMENTS_TABLE,
) -> SchemaCapabilities:
    """
    Probe storage metadata for the optional appointment columns.

    Probe failures are never raised: a feature that cannot be confirmed is
    reported as absent.

    Args:
        conn: Open async connection
        table_name: Appointments table name

    Returns:
        Detected capabilities
    """
    try:
        columns = await conn.run_sync(_column_names, table_name)
    except SQLAlchemyError as e:
        logger.debug("capability_probe_failed", table=table_name, error=str(e))
        columns = set()

    try:
        revision = await conn.run_sync(_revision)
    except SQLAlchemyError as e:
        logger.debug("revision_probe_failed", error=str(e))
        revision = None

    capabilities = SchemaCapabilities.from_columns(columns, revision=revision)
    logger.debug("schema_capabilities_probed", **capabilities.as_dict())
    return capabilities


async def probe_capabilities(
    db: AsyncSession,
    table_name: str = APPOINTMENTS_TABLE,
) -> SchemaCapabilities:
    """Probe capabilities on the connection bound to ``db``."""
    conn = await db.connection()
    return await probe_connection(conn, table_name)
