import asyncio
import os
import tempfile
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

# Point the application's own engine at a scratch database before it is imported
os.environ["DATABASE_URL"] = os.getenv(
    "TEST_DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.mkdtemp()) / 'frontdesk-test.db'}",
)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import MetaData, insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from frontdesk.database import engine as app_engine
from frontdesk.database import get_db
from frontdesk.main import app
from frontdesk.models import build_appointments_table, patients

SchemaFactory = Callable[..., Awaitable[AsyncEngine]]


@pytest.fixture(scope="session", autouse=True)
def dispose_app_engine():
    """Close connections the application engine pooled during the run."""
    yield
    asyncio.run(app_engine.dispose())


def schema_metadata(
    status: bool = True,
    audit_columns: bool = True,
    visit_reference: bool = True,
) -> MetaData:
    """Metadata for one deployment shape of the appointments table."""
    metadata = MetaData()
    patients.to_metadata(metadata)
    build_appointments_table(
        metadata,
        status=status,
        audit_columns=audit_columns,
        visit_reference=visit_reference,
    )
    return metadata


@pytest_asyncio.fixture
async def schema_engine(tmp_path: Path) -> AsyncGenerator[SchemaFactory, None]:
    """Factory creating a fresh SQLite database with the requested columns."""
    engines: list[AsyncEngine] = []

    async def _create(**shape: bool) -> AsyncEngine:
        path = tmp_path / f"frontdesk-{len(engines)}.db"
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{path}",
            poolclass=NullPool,
            connect_args={"timeout": 15},
        )
        async with engine.begin() as conn:
            await conn.run_sync(schema_metadata(**shape).create_all)
        engines.append(engine)
        return engine

    yield _create

    for engine in engines:
        await engine.dispose()


@pytest_asyncio.fixture
async def engine(schema_engine: SchemaFactory) -> AsyncEngine:
    """Engine on the current schema."""
    return await schema_engine()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


async def add_patient(
    session: AsyncSession,
    first_name: str = "Ada",
    last_name: str = "Lovelace",
) -> int:
    """Insert a patient and return its id."""
    result = await session.execute(
        insert(patients)
        .values(first_name=first_name, last_name=last_name)
        .returning(patients.c.id)
    )
    await session.commit()
    return result.scalar_one()


@pytest_asyncio.fixture
async def patient_id(db_session: AsyncSession) -> int:
    return await add_patient(db_session)


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_appointment_data(patient_id: int) -> dict:
    """Sample appointment data for testing."""
    return {
        "patient_id": patient_id,
        "when": "2024-06-01 10:00",
        "reason": "Regular checkup",
    }


@pytest.fixture
def make_patient() -> Callable[..., Awaitable[int]]:
    """Insert further patients: ``await make_patient(session, "Grace", "Hopper")``."""
    return add_patient
