"""Tests for the command line front desk."""

import asyncio
from pathlib import Path

import pytest
from sqlalchemy import MetaData, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from frontdesk.cli import (
    EXIT_DECLINED,
    EXIT_NOT_FOUND,
    EXIT_OK,
    EXIT_STORAGE,
    EXIT_VALIDATION,
    main,
)
from frontdesk.models import appointments, metadata, patients


def _factory(path: Path) -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _run(factory: async_sessionmaker[AsyncSession], stmt):
    async def _execute():
        async with factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.scalar()

    return asyncio.run(_execute())


def _create_schema(factory: async_sessionmaker[AsyncSession], target: MetaData) -> None:
    async def _create():
        async with factory() as session:
            conn = await session.connection()
            await conn.run_sync(target.create_all)
            await session.commit()

    asyncio.run(_create())


@pytest.fixture
def factory(tmp_path: Path) -> async_sessionmaker[AsyncSession]:
    factory = _factory(tmp_path / "cli.db")
    _create_schema(factory, metadata)
    return factory


@pytest.fixture
def patient(factory) -> int:
    return _run(
        factory,
        insert(patients).values(first_name="Ada", last_name="Lovelace").returning(patients.c.id),
    )


def _count(factory) -> int:
    return _run(factory, select(func.count()).select_from(appointments))


def _never_asked(prompt: str) -> str:
    raise AssertionError(f"unexpected prompt: {prompt}")


def test_create(factory, patient, capsys) -> None:
    code = main(
        ["appointments", "create", "--patient-id", str(patient), "--when", "2024-06-01 10:00"],
        session_factory=factory,
        input_fn=_never_asked,
    )

    assert code == EXIT_OK
    assert "Appointment created:" in capsys.readouterr().out
    assert _count(factory) == 1


def test_create_missing_date(factory, patient, capsys) -> None:
    code = main(
        ["appointments", "create", "--patient-id", str(patient), "--when", " "],
        session_factory=factory,
    )

    assert code == EXIT_VALIDATION
    assert "Appointment date is required." in capsys.readouterr().err
    assert _count(factory) == 0


def test_create_bad_date(factory, patient, capsys) -> None:
    code = main(
        ["appointments", "create", "--patient-id", str(patient), "--when", "June 1"],
        session_factory=factory,
    )

    assert code == EXIT_VALIDATION
    assert "Invalid date format" in capsys.readouterr().err


def test_create_unselected_patient(factory, capsys) -> None:
    code = main(
        ["appointments", "create", "--patient-id", "0", "--when", "2024-06-01 10:00"],
        session_factory=factory,
    )

    assert code == EXIT_VALIDATION
    assert "Please select a patient." in capsys.readouterr().err


def test_full_slot_declined(factory, patient, capsys) -> None:
    args = [
        "appointments",
        "create",
        "--patient-id",
        str(patient),
        "--when",
        "2024-06-01 10:00",
        "--max-concurrent",
        "1",
    ]
    assert main(args, session_factory=factory) == EXIT_OK
    prompts: list[str] = []

    def decline(prompt: str) -> str:
        prompts.append(prompt)
        return "n"

    code = main(args, session_factory=factory, input_fn=decline)

    assert code == EXIT_DECLINED
    assert prompts and "full" in prompts[0]
    assert _count(factory) == 1


def test_full_slot_confirmed(factory, patient) -> None:
    args = [
        "appointments",
        "create",
        "--patient-id",
        str(patient),
        "--when",
        "2024-06-01 10:00",
        "--max-concurrent",
        "1",
    ]
    main(args, session_factory=factory)

    assert main(args, session_factory=factory, input_fn=lambda prompt: "y") == EXIT_OK
    assert main([*args, "--yes"], session_factory=factory, input_fn=_never_asked) == EXIT_OK
    assert _count(factory) == 3


def test_update_and_cancel(factory, patient, capsys) -> None:
    main(
        ["appointments", "create", "--patient-id", str(patient), "--when", "2024-06-01 10:00"],
        session_factory=factory,
    )
    appointment_id = _run(factory, select(func.max(appointments.c.id)))

    code = main(
        [
            "appointments",
            "update",
            str(appointment_id),
            "--patient-id",
            str(patient),
            "--when",
            "2024-06-01 11:00",
            "--status",
            "arrived",
        ],
        session_factory=factory,
        input_fn=_never_asked,
    )
    assert code == EXIT_OK
    assert "Updated 1 appointment(s)." in capsys.readouterr().out

    assert main(["appointments", "cancel", str(appointment_id)], session_factory=factory) == 0
    status = _run(factory, select(appointments.c.status))
    assert status == "cancelled"


def test_update_without_status_keeps_current(factory, patient) -> None:
    main(
        [
            "appointments",
            "create",
            "--patient-id",
            str(patient),
            "--when",
            "2024-06-01 10:00",
            "--status",
            "completed",
        ],
        session_factory=factory,
    )
    appointment_id = _run(factory, select(func.max(appointments.c.id)))

    code = main(
        [
            "appointments",
            "update",
            str(appointment_id),
            "--patient-id",
            str(patient),
            "--when",
            "2024-06-01 11:00",
        ],
        session_factory=factory,
        input_fn=_never_asked,
    )

    assert code == EXIT_OK
    assert _run(factory, select(appointments.c.status)) == "completed"


def test_update_unknown_id_succeeds(factory, patient, capsys) -> None:
    code = main(
        [
            "appointments",
            "update",
            "999",
            "--patient-id",
            str(patient),
            "--when",
            "2024-06-01 11:00",
        ],
        session_factory=factory,
    )

    assert code == EXIT_OK
    assert "Updated 0 appointment(s)." in capsys.readouterr().out


def test_cancel_unknown_id(factory) -> None:
    assert main(["appointments", "cancel", "999"], session_factory=factory) == EXIT_NOT_FOUND


def test_list_and_summary(factory, patient, capsys) -> None:
    for when in ("2024-06-02 09:00", "2024-06-01 09:00"):
        main(
            ["appointments", "create", "--patient-id", str(patient), "--when", when],
            session_factory=factory,
        )
    capsys.readouterr()

    assert main(["appointments", "list"], session_factory=factory) == EXIT_OK
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert "2024-06-01 09:00 | Ada Lovelace | scheduled" in lines[0]

    assert main(["appointments", "list", "--day", "2024-06-02"], session_factory=factory) == 0
    assert len(capsys.readouterr().out.splitlines()) == 1

    assert main(["appointments", "summary", str(patient)], session_factory=factory) == EXIT_OK
    assert capsys.readouterr().out.splitlines()[0] == "Scheduled: 2 (2024-06-01 09:00)"


def test_list_bad_day(factory) -> None:
    code = main(["appointments", "list", "--day", "June"], session_factory=factory)
    assert code == EXIT_VALIDATION


def test_capabilities(factory, capsys) -> None:
    assert main(["capabilities"], session_factory=factory) == EXIT_OK
    out = capsys.readouterr().out
    assert "status: True" in out
    assert "visit_reference: True" in out


def test_storage_error(tmp_path: Path, capsys) -> None:
    """Without tables every read is a storage error."""
    bare = _factory(tmp_path / "bare.db")

    assert main(["appointments", "list"], session_factory=bare) == EXIT_STORAGE
    assert "Database error" in capsys.readouterr().err


def test_usage_error() -> None:
    assert main(["appointments", "reschedule"]) == EXIT_VALIDATION
