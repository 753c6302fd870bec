"""Tests for appointment endpoints."""

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from frontdesk.database import get_db
from frontdesk.events import AppointmentChange
from frontdesk.main import app

API = "/api/v1/appointments"


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_detailed_health_reports_capabilities(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health/detailed")
    assert response.status_code == 200
    capabilities = response.json()["capabilities"]
    assert capabilities["status"] is True
    assert capabilities["audit_columns"] is True
    assert capabilities["visit_reference"] is True


@pytest.mark.asyncio
async def test_ping(client: AsyncClient) -> None:
    response = await client.get("/api/v1/ping")
    assert response.json() == {"message": "pong"}


@pytest.mark.asyncio
async def test_create_appointment(client: AsyncClient, sample_appointment_data: dict) -> None:
    """Test creating an appointment."""
    response = await client.post(f"{API}/", json=sample_appointment_data)
    assert response.status_code == 201
    data = response.json()
    assert data["patient_id"] == sample_appointment_data["patient_id"]
    assert data["appointment_date"] == "2024-06-01T10:00:00"
    assert data["status"] == "scheduled"
    assert "id" in data


@pytest.mark.asyncio
async def test_create_publishes_change(client: AsyncClient, sample_appointment_data: dict) -> None:
    received: list[AppointmentChange] = []
    unsubscribe = app.state.changes.subscribe(received.append)
    try:
        response = await client.post(f"{API}/", json=sample_appointment_data)
    finally:
        unsubscribe()

    assert [c.appointment_id for c in received] == [response.json()["id"]]


@pytest.mark.asyncio
async def test_create_requires_date(client: AsyncClient, patient_id: int) -> None:
    response = await client.post(f"{API}/", json={"patient_id": patient_id, "when": ""})
    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "MissingFieldException"
    assert data["field"] == "when"
    assert data["message"] == "Appointment date is required."


@pytest.mark.asyncio
async def test_create_rejects_bad_date(client: AsyncClient, patient_id: int) -> None:
    response = await client.post(
        f"{API}/", json={"patient_id": patient_id, "when": "01/06/2024 10am"}
    )
    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "InvalidFormatException"
    assert data["text"] == "01/06/2024 10am"


@pytest.mark.asyncio
async def test_create_requires_patient(client: AsyncClient) -> None:
    response = await client.post(f"{API}/", json={"patient_id": 0, "when": "2024-06-01 10:00"})
    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "ValidationError"
    assert "Please select a patient." in data["details"][0]["msg"]


@pytest.mark.asyncio
async def test_conflict_check(client: AsyncClient, sample_appointment_data: dict) -> None:
    for _ in range(2):
        await client.post(f"{API}/", json=sample_appointment_data)

    full = await client.get(
        f"{API}/conflict", params={"when": "2024-06-01 10:00", "max_concurrent": 2}
    )
    roomy = await client.get(
        f"{API}/conflict", params={"when": "2024-06-01 10:00", "max_concurrent": 3}
    )

    assert full.status_code == 200
    assert full.json()["conflict"] is True
    assert full.json()["active"] == 2
    assert roomy.json()["conflict"] is False


@pytest.mark.asyncio
async def test_conflict_check_excludes_appointment(
    client: AsyncClient, sample_appointment_data: dict
) -> None:
    created = await client.post(f"{API}/", json=sample_appointment_data)

    response = await client.get(
        f"{API}/conflict",
        params={
            "when": "2024-06-01 10:00:00",
            "exclude_id": created.json()["id"],
            "max_concurrent": 1,
        },
    )

    assert response.json()["active"] == 0
    assert response.json()["conflict"] is False


@pytest.mark.asyncio
async def test_book_full_slot(client: AsyncClient, sample_appointment_data: dict) -> None:
    await client.post(f"{API}/", json=sample_appointment_data)

    declined = await client.post(
        f"{API}/book", json={**sample_appointment_data, "max_concurrent": 1}
    )
    overridden = await client.post(
        f"{API}/book", json={**sample_appointment_data, "max_concurrent": 1, "override": True}
    )

    assert declined.status_code == 409
    assert declined.json()["error"] == "CapacityExceededException"
    assert overridden.status_code == 201


@pytest.mark.asyncio
async def test_list_appointments(client: AsyncClient, sample_appointment_data: dict) -> None:
    """Test listing appointments."""
    await client.post(f"{API}/", json=sample_appointment_data)

    response = await client.get(f"{API}/")
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["patient_name"] == "Ada Lovelace"


@pytest.mark.asyncio
async def test_list_by_day(client: AsyncClient, sample_appointment_data: dict) -> None:
    await client.post(f"{API}/", json=sample_appointment_data)
    await client.post(f"{API}/", json={**sample_appointment_data, "when": "2024-06-02 10:00"})

    response = await client.get(f"{API}/", params={"day": "2024-06-02"})

    assert [a["appointment_date"] for a in response.json()] == ["2024-06-02T10:00:00"]


@pytest.mark.asyncio
async def test_get_appointment(client: AsyncClient, sample_appointment_data: dict) -> None:
    """Test getting a specific appointment."""
    create_response = await client.post(f"{API}/", json=sample_appointment_data)
    appointment_id = create_response.json()["id"]

    response = await client.get(f"{API}/{appointment_id}")
    assert response.status_code == 200
    assert response.json()["id"] == appointment_id


@pytest.mark.asyncio
async def test_get_missing_appointment(client: AsyncClient) -> None:
    response = await client.get(f"{API}/424242")
    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundException"


@pytest.mark.asyncio
async def test_update_appointment(client: AsyncClient, sample_appointment_data: dict) -> None:
    """Test updating an appointment."""
    create_response = await client.post(f"{API}/", json=sample_appointment_data)
    appointment_id = create_response.json()["id"]

    response = await client.put(
        f"{API}/{appointment_id}",
        json={
            **sample_appointment_data,
            "when": "2024-06-01 11:00",
            "status": "completed",
        },
    )
    assert response.status_code == 200
    assert response.json() == {"affected": 1}

    fetched = (await client.get(f"{API}/{appointment_id}")).json()
    assert fetched["appointment_date"] == "2024-06-01T11:00:00"
    assert fetched["status"] == "completed"


@pytest.mark.asyncio
async def test_update_unknown_appointment(
    client: AsyncClient, sample_appointment_data: dict
) -> None:
    response = await client.put(f"{API}/424242", json=sample_appointment_data)
    assert response.status_code == 200
    assert response.json() == {"affected": 0}


@pytest.mark.asyncio
async def test_update_without_status_resets_to_scheduled(
    client: AsyncClient, sample_appointment_data: dict
) -> None:
    response = await client.post(f"{API}/", json={**sample_appointment_data, "status": "arrived"})
    created = response.json()

    response = await client.put(f"{API}/{created['id']}", json=sample_appointment_data)
    assert response.json() == {"affected": 1}

    fetched = (await client.get(f"{API}/{created['id']}")).json()
    assert fetched["status"] == "scheduled"


@pytest.mark.asyncio
async def test_cancel_and_stats(client: AsyncClient, sample_appointment_data: dict) -> None:
    first = (await client.post(f"{API}/", json=sample_appointment_data)).json()
    await client.post(f"{API}/", json=sample_appointment_data)

    cancelled = await client.post(f"{API}/{first['id']}/cancel")
    stats = await client.get(f"{API}/stats")

    assert cancelled.json() == {"affected": 1}
    assert stats.json() == {
        "scheduled": 1,
        "completed": 0,
        "missed": 0,
        "cancelled": 1,
        "total": 2,
    }


@pytest.mark.asyncio
async def test_patient_summary(client: AsyncClient, sample_appointment_data: dict) -> None:
    await client.post(f"{API}/", json=sample_appointment_data)
    await client.post(
        f"{API}/",
        json={**sample_appointment_data, "when": "2024-05-01 09:00", "status": "no_show"},
    )

    response = await client.get(f"{API}/summary/{sample_appointment_data['patient_id']}")

    data = response.json()
    assert data["scheduled"] == 1
    assert data["missed"] == 1
    assert data["text"].splitlines() == [
        "Scheduled: 1 (2024-06-01 10:00)",
        "Completed: 0",
        "Missed: 1 (last: 2024-05-01 09:00)",
    ]


@pytest.mark.asyncio
async def test_delete_appointment(client: AsyncClient, sample_appointment_data: dict) -> None:
    """Test deleting an appointment."""
    create_response = await client.post(f"{API}/", json=sample_appointment_data)
    appointment_id = create_response.json()["id"]

    response = await client.delete(f"{API}/{appointment_id}")
    assert response.json() == {"affected": 1}

    response = await client.get(f"{API}/{appointment_id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_storage_error_returns_503(tmp_path: Path) -> None:
    """A database without the appointments table fails reads with 503."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bare.db'}", poolclass=NullPool)

    async def override_get_db():
        async with AsyncSession(engine) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get(f"{API}/")
    finally:
        app.dependency_overrides.clear()
        await engine.dispose()

    assert response.status_code == 503
    assert response.json()["error"] == "StorageError"
