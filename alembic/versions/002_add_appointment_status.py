"""Add status column to appointments.

Rows that predate the column read back as scheduled.

Revision ID: 002
Revises: 001
Create Date: 2025-02-17 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    with op.batch_alter_table("appointments") as batch_op:
        batch_op.add_column(
            sa.Column("status", sa.String(length=20), server_default="scheduled", nullable=True)
        )


def downgrade() -> None:
    """Downgrade database schema."""
    with op.batch_alter_table("appointments") as batch_op:
        batch_op.drop_column("status")
