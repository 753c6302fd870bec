"""Script to initialize the database.

Creates the latest schema directly and stamps it as migrated, for fresh
development databases. Existing deployments should use ``migrate.py``.
"""

import asyncio
import sys

from alembic import command
from alembic.config import Config

from frontdesk.database import engine
from frontdesk.models import metadata


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    await engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(init_db())
        command.stamp(Config("alembic.ini"), "head")
    except Exception as e:
        print(f"✗ Database initialization failed: {e}", file=sys.stderr)
        sys.exit(1)
    print("✓ Database initialized successfully!")
