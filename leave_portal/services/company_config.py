from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leave_portal.errors import StorageUnavailableError
from leave_portal.models import AttendanceSettings, WorkSchedule
from leave_portal.settings import get_settings

if TYPE_CHECKING:
    from leave_portal.schemas import AttendanceSettingsUpsertRequest, WorkScheduleUpsertRequest


def get_work_schedule(db: Session) -> WorkSchedule | None:
    try:
        return db.scalar(select(WorkSchedule).order_by(WorkSchedule.id.asc()))
    except SQLAlchemyError as exc:
        raise StorageUnavailableError(
            "Impossibile leggere la configurazione degli orari di lavoro.",
            operation="get_work_schedule",
        ) from exc


def get_attendance_settings(db: Session) -> AttendanceSettings | None:
    try:
        return db.scalar(select(AttendanceSettings).order_by(AttendanceSettings.id.asc()))
    except SQLAlchemyError as exc:
        raise StorageUnavailableError(
            "Impossibile leggere la configurazione delle presenze.",
            operation="get_attendance_settings",
        ) from exc


def _commit(db: Session, *, operation: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageUnavailableError(
            "Impossibile salvare la configurazione aziendale.",
            operation=operation,
        ) from exc


def upsert_work_schedule(db: Session, payload: WorkScheduleUpsertRequest) -> WorkSchedule:
    schedule = get_work_schedule(db)
    if schedule is None:
        schedule = WorkSchedule()
        db.add(schedule)

    schedule.start_time = payload.start_time
    schedule.end_time = payload.end_time
    schedule.tolerance_minutes = payload.tolerance_minutes
    schedule.monday = payload.monday
    schedule.tuesday = payload.tuesday
    schedule.wednesday = payload.wednesday
    schedule.thursday = payload.thursday
    schedule.friday = payload.friday
    schedule.saturday = payload.saturday
    schedule.sunday = payload.sunday

    _commit(db, operation="upsert_work_schedule")
    db.refresh(schedule)
    return schedule


def upsert_attendance_settings(db: Session, payload: AttendanceSettingsUpsertRequest) -> AttendanceSettings:
    settings_row = get_attendance_settings(db)
    if settings_row is None:
        settings_row = AttendanceSettings()
        db.add(settings_row)

    settings_row.company_latitude = payload.company_latitude
    settings_row.company_longitude = payload.company_longitude
    settings_row.attendance_radius_meters = (
        payload.attendance_radius_meters or get_settings().default_geofence_radius_m
    )
    settings_row.checkout_enabled = payload.checkout_enabled

    _commit(db, operation="upsert_attendance_settings")
    db.refresh(settings_row)
    return settings_row
