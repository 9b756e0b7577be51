from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leave_portal.errors import StorageUnavailableError
from leave_portal.models import (
    AttendanceRecord,
    BusinessTrip,
    Employee,
    EntryKind,
    LeaveKind,
    LeaveRequest,
    ManualAttendance,
    RequestStatus,
    SickLeave,
)

logger = logging.getLogger("leave_portal.timeline")

_LEGACY_NOTE_KINDS = (
    ("Ferie", EntryKind.VACATION),
    ("Permesso", EntryKind.PERMISSION),
    ("Malattia", EntryKind.SICK_LEAVE),
    ("Trasferta", EntryKind.BUSINESS_TRIP),
)


@dataclass(frozen=True)
class EmployeeTimeline:
    """Every stored temporal entity of one employee, as read at one instant."""

    employee_id: int
    employee: Employee | None = None
    leave_requests: list[LeaveRequest] = field(default_factory=list)
    sick_leaves: list[SickLeave] = field(default_factory=list)
    business_trips: list[BusinessTrip] = field(default_factory=list)
    attendance_records: list[AttendanceRecord] = field(default_factory=list)
    manual_attendances: list[ManualAttendance] = field(default_factory=list)

    @property
    def hire_date(self) -> date | None:
        if self.employee is None:
            return None
        return self.employee.hire_date

    @property
    def approved_business_trips(self) -> list[BusinessTrip]:
        return [trip for trip in self.business_trips if trip.status == RequestStatus.APPROVED]

    @property
    def approved_vacations(self) -> list[LeaveRequest]:
        return [
            item
            for item in self.leave_requests
            if item.type == LeaveKind.FERIE
            and item.status == RequestStatus.APPROVED
            and item.date_from is not None
            and item.date_to is not None
        ]

    @property
    def approved_permissions(self) -> list[LeaveRequest]:
        return [
            item
            for item in self.leave_requests
            if item.type == LeaveKind.PERMESSO
            and item.status == RequestStatus.APPROVED
            and item.day is not None
        ]

    @property
    def worked_attendance_records(self) -> list[AttendanceRecord]:
        """Non-sick attendance rows, minus the projections of ``manual_attendances``.

        A manual entry is reported once, through its ManualAttendance row.
        """
        manual_days = {row.day_date for row in self.manual_attendances}
        return [
            record
            for record in self.attendance_records
            if not record.is_sick_leave and not is_manual_projection(record, manual_days)
        ]


def is_manual_projection(record: AttendanceRecord, manual_days: set[date]) -> bool:
    if record.day_date not in manual_days:
        return False
    return bool(record.is_manual) or record.entry_kind == EntryKind.MANUAL


def resolve_entry_kind(record: AttendanceRecord) -> EntryKind:
    if record.entry_kind is not None:
        return EntryKind(record.entry_kind)

    # Rows written before entry_kind existed carry the kind only in flags and notes.
    if record.is_sick_leave:
        return EntryKind.SICK_LEAVE
    if record.is_business_trip:
        return EntryKind.BUSINESS_TRIP
    notes = record.notes or ""
    for marker, kind in _LEGACY_NOTE_KINDS:
        if marker in notes:
            return kind
    if record.is_manual:
        return EntryKind.MANUAL
    return EntryKind.PRESENCE


def load_employee_timeline(db: Session, employee_id: int) -> EmployeeTimeline:
    try:
        employee = db.get(Employee, employee_id)
        leave_requests = list(
            db.scalars(
                select(LeaveRequest)
                .where(LeaveRequest.employee_id == employee_id)
                .order_by(LeaveRequest.id.asc())
            ).all()
        )
        sick_leaves = list(
            db.scalars(
                select(SickLeave)
                .where(SickLeave.employee_id == employee_id)
                .order_by(SickLeave.start_date.asc(), SickLeave.id.asc())
            ).all()
        )
        business_trips = list(
            db.scalars(
                select(BusinessTrip)
                .where(BusinessTrip.employee_id == employee_id)
                .order_by(BusinessTrip.start_date.asc(), BusinessTrip.id.asc())
            ).all()
        )
        attendance_records = list(
            db.scalars(
                select(AttendanceRecord)
                .where(AttendanceRecord.employee_id == employee_id)
                .order_by(AttendanceRecord.day_date.asc(), AttendanceRecord.id.asc())
            ).all()
        )
        manual_attendances = list(
            db.scalars(
                select(ManualAttendance)
                .where(ManualAttendance.employee_id == employee_id)
                .order_by(ManualAttendance.day_date.asc(), ManualAttendance.id.asc())
            ).all()
        )
    except SQLAlchemyError as exc:
        logger.exception("timeline_load_failed", extra={"employee_id": employee_id})
        raise StorageUnavailableError(
            "Archivio presenze non raggiungibile: impossibile verificare i conflitti.",
            operation="load_employee_timeline",
        ) from exc

    return EmployeeTimeline(
        employee_id=employee_id,
        employee=employee,
        leave_requests=leave_requests,
        sick_leaves=sick_leaves,
        business_trips=business_trips,
        attendance_records=attendance_records,
        manual_attendances=manual_attendances,
    )


def load_employee_timelines(db: Session, employee_ids: list[int]) -> list[EmployeeTimeline]:
    seen: set[int] = set()
    timelines: list[EmployeeTimeline] = []
    for employee_id in employee_ids:
        if employee_id in seen:
            continue
        seen.add(employee_id)
        timelines.append(load_employee_timeline(db, employee_id))
    return timelines
