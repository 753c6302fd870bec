"""Script to run database migrations."""

import sys

from alembic import command
from alembic.config import Config


def _config() -> Config:
    return Config("alembic.ini")


def run_migrations(target: str = "head") -> None:
    """Upgrade the database to ``target``."""
    try:
        print(f"Running database migrations to {target}...")
        command.upgrade(_config(), target)
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def rollback(target: str) -> None:
    """Downgrade the database to ``target``, e.g. ``002`` to drop audit columns."""
    try:
        print(f"Downgrading database to {target}...")
        command.downgrade(_config(), target)
        print("✓ Downgrade completed successfully!")
    except Exception as e:
        print(f"✗ Downgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Create a new migration."""
    try:
        print(f"Creating migration: {message}")
        command.revision(_config(), message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    args = sys.argv[1:]
    if not args:
        run_migrations()
    elif args[0] == "create" and len(args) > 1:
        create_migration(" ".join(args[1:]))
    elif args[0] == "upgrade" and len(args) == 2:
        run_migrations(args[1])
    elif args[0] == "downgrade" and len(args) == 2:
        rollback(args[1])
    else:
        print(
            "Usage: python scripts/migrate.py "
            "[create <message> | upgrade <revision> | downgrade <revision>]"
        )
