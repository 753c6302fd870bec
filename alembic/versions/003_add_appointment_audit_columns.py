"""Add created_at and updated_at to appointments.

Revision ID: 003
Revises: 002
Create Date: 2025-04-02 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    with op.batch_alter_table("appointments") as batch_op:
        batch_op.add_column(
            sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True)
        )
        batch_op.add_column(
            sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True)
        )


def downgrade() -> None:
    """Downgrade database schema."""
    with op.batch_alter_table("appointments") as batch_op:
        batch_op.drop_column("updated_at")
        batch_op.drop_column("created_at")
