"""Add visit_id to appointments.

Links an appointment to the visit record opened when the patient is seen.

Revision ID: 004
Revises: 003
Create Date: 2025-06-23 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    with op.batch_alter_table("appointments") as batch_op:
        batch_op.add_column(sa.Column("visit_id", sa.Integer(), nullable=True))


def downgrade() -> None:
    """Downgrade database schema."""
    with op.batch_alter_table("appointments") as batch_op:
        batch_op.drop_column("visit_id")
