"""Command line front desk.

Usage::

    frontdesk appointments create --patient-id 3 --when "2024-05-01 09:00"
    frontdesk appointments list --today
    frontdesk appointments summary 3
    frontdesk capabilities
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Callable
from datetime import date

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from frontdesk.core.exceptions import (
    CapacityExceededException,
    NotFoundException,
    ValidationException,
)
from frontdesk.database import AsyncSessionLocal, engine
from frontdesk.events import AppointmentChanges
from frontdesk.middleware.logging import configure_logging
from frontdesk.schemas.appointments import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
)
from frontdesk.services.appointment_service import AppointmentService
from frontdesk.services.patient_directory import PatientDirectory
from frontdesk.services.timestamps import format_timestamp

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_VALIDATION = 2
EXIT_STORAGE = 3
EXIT_NOT_FOUND = 4
EXIT_DECLINED = 5

SessionFactory = async_sessionmaker[AsyncSession]
InputFn = Callable[[str], str]


def _confirm(input_fn: InputFn, prompt: str) -> bool:
    try:
        answer = input_fn(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _print_row(appointment: AppointmentResponse, patient_name: str | None = None) -> None:
    parts = [
        str(appointment.id),
        format_timestamp(appointment.appointment_date),
        patient_name or f"patient {appointment.patient_id}",
        appointment.status.value,
        appointment.reason or "-",
    ]
    print(" | ".join(parts))


async def cmd_create(
    service: AppointmentService, args: argparse.Namespace, input_fn: InputFn
) -> int:
    data = AppointmentCreate(
        patient_id=args.patient_id,
        when=args.when,
        reason=args.reason,
        status=args.status,
        visit_id=args.visit_id,
    )
    override = args.yes
    if not override and await service.has_conflict(data.when, max_concurrent=args.max_concurrent):
        if not _confirm(input_fn, "This time slot is full. Book anyway? [y/N] "):
            print("Booking cancelled.")
            return EXIT_DECLINED
        override = True

    try:
        appointment = await service.book(data, max_concurrent=args.max_concurrent, override=override)
    except CapacityExceededException as e:
        # Slot filled between the check and the insert
        print(e.message)
        return EXIT_DECLINED

    print(f"Appointment created: {appointment.id}")
    return EXIT_OK


async def cmd_update(
    service: AppointmentService, args: argparse.Namespace, input_fn: InputFn
) -> int:
    status = args.status
    if status is None:
        try:
            status = (await service.get_appointment(args.appointment_id)).status
        except NotFoundException:
            status = AppointmentStatus.SCHEDULED

    data = AppointmentUpdate(
        id=args.appointment_id,
        patient_id=args.patient_id,
        when=args.when,
        reason=args.reason,
        status=status,
    )
    if not args.yes and await service.has_conflict(
        data.when, exclude_id=data.id, max_concurrent=args.max_concurrent
    ):
        if not _confirm(input_fn, "This time slot is full. Move anyway? [y/N] "):
            print("Update cancelled.")
            return EXIT_DECLINED

    affected = await service.update_appointment(data)
    print(f"Updated {affected} appointment(s).")
    return EXIT_OK


async def cmd_cancel(
    service: AppointmentService, args: argparse.Namespace, input_fn: InputFn
) -> int:
    affected = await service.cancel_appointment(args.appointment_id, hard_delete=args.delete)
    if not affected:
        print(f"Appointment {args.appointment_id} not found.")
        return EXIT_NOT_FOUND
    print("Deleted." if args.delete else "Cancelled.")
    return EXIT_OK


async def cmd_list(
    service: AppointmentService, args: argparse.Namespace, input_fn: InputFn
) -> int:
    if args.today or args.day:
        day = date.fromisoformat(args.day) if args.day else None
        rows = await service.get_todays_appointments(today=day, patient_id=args.patient_id)
    elif args.patient_id is not None:
        rows = await service.get_appointments_by_patient(args.patient_id)
    else:
        rows = await service.get_all_appointments()

    names = await PatientDirectory(service.db).get_patient_names([r.patient_id for r in rows])
    for row in rows:
        _print_row(row, names.get(row.patient_id))
    if not rows:
        print("No appointments.")
    return EXIT_OK


async def cmd_summary(
    service: AppointmentService, args: argparse.Namespace, input_fn: InputFn
) -> int:
    summary = await service.status_summary_for_patient(args.patient_id)
    print(summary.render())
    return EXIT_OK


async def cmd_capabilities(
    service: AppointmentService, args: argparse.Namespace, input_fn: InputFn
) -> int:
    capabilities = await service.capabilities()
    for key, value in capabilities.as_dict().items():
        print(f"{key}: {value}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="frontdesk", description="Clinic front desk scheduling")
    p.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = p.add_subparsers(dest="command", required=True)

    p_appt = sub.add_parser("appointments", help="Manage appointments")
    appt = p_appt.add_subparsers(dest="action", required=True)

    statuses = [s.value for s in AppointmentStatus]

    p_create = appt.add_parser("create", help="Book an appointment")
    p_create.add_argument("--patient-id", type=int, required=True)
    p_create.add_argument("--when", required=True, help='e.g. "2024-05-01 09:30"')
    p_create.add_argument("--reason", default=None)
    p_create.add_argument("--status", choices=statuses, default=None)
    p_create.add_argument("--visit-id", type=int, default=None)
    p_create.add_argument("--max-concurrent", type=int, default=None)
    p_create.add_argument("--yes", action="store_true", help="Book even if the slot is full")
    p_create.set_defaults(func=cmd_create)

    p_update = appt.add_parser("update", help="Replace an appointment's values")
    p_update.add_argument("appointment_id", type=int)
    p_update.add_argument("--patient-id", type=int, required=True)
    p_update.add_argument("--when", required=True)
    p_update.add_argument("--reason", default=None)
    p_update.add_argument(
        "--status", choices=statuses, default=None, help="Defaults to the current status"
    )
    p_update.add_argument("--max-concurrent", type=int, default=None)
    p_update.add_argument("--yes", action="store_true", help="Move even if the slot is full")
    p_update.set_defaults(func=cmd_update)

    p_cancel = appt.add_parser("cancel", help="Cancel an appointment")
    p_cancel.add_argument("appointment_id", type=int)
    p_cancel.add_argument("--delete", action="store_true", help="Delete instead of marking cancelled")
    p_cancel.set_defaults(func=cmd_cancel)

    p_list = appt.add_parser("list", help="List appointments")
    p_list.add_argument("--patient-id", type=int, default=None)
    p_list.add_argument("--today", action="store_true")
    p_list.add_argument("--day", default=None, help="YYYY-MM-DD")
    p_list.set_defaults(func=cmd_list)

    p_summary = appt.add_parser("summary", help="Status summary for a patient")
    p_summary.add_argument("patient_id", type=int)
    p_summary.set_defaults(func=cmd_summary)

    p_caps = sub.add_parser("capabilities", help="Show optional schema features")
    p_caps.set_defaults(func=cmd_capabilities)

    return p


async def _dispatch(
    args: argparse.Namespace,
    session_factory: SessionFactory | None,
    input_fn: InputFn,
) -> int:
    try:
        async with (session_factory or AsyncSessionLocal)() as session:
            service = AppointmentService(session, changes=AppointmentChanges())
            return await args.func(service, args, input_fn)
    finally:
        if session_factory is None:
            await engine.dispose()


def main(
    argv: list[str] | None = None,
    session_factory: SessionFactory | None = None,
    input_fn: InputFn = input,
) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return EXIT_OK if e.code == 0 else EXIT_VALIDATION

    configure_logging(log_level=args.log_level, log_format="console")

    try:
        return asyncio.run(_dispatch(args, session_factory, input_fn))
    except ValidationException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_VALIDATION
    except ValidationError as e:
        for error in e.errors():
            print(f"Error: {error['msg']}", file=sys.stderr)
        return EXIT_VALIDATION
    except ValueError as e:
        # date.fromisoformat on --day
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_VALIDATION
    except NotFoundException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except SQLAlchemyError as e:
        logger.error("storage_error", error=str(e), command=args.command)
        print(f"Database error: {e}", file=sys.stderr)
        return EXIT_STORAGE


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
