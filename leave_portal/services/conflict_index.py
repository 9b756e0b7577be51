from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.orm import Session

from leave_portal.services.schedule_calendar import iter_days
from leave_portal.services.timeline import EmployeeTimeline, load_employee_timeline

logger = logging.getLogger("leave_portal.conflict_index")


class OperationKind(str, enum.Enum):
    FERIE = "ferie"
    PERMESSO = "permesso"
    SICK_LEAVE = "sick_leave"
    ATTENDANCE = "attendance"


class ConflictType(str, enum.Enum):
    BUSINESS_TRIP = "business_trip"
    VACATION = "vacation"
    PERMISSION = "permission"
    SICK_LEAVE = "sick_leave"
    ATTENDANCE = "attendance"


class Severity(str, enum.Enum):
    CRITICAL = "critical"
    WARNING = "warning"


_PERMISSION_AWARE_KINDS = {OperationKind.PERMESSO, OperationKind.SICK_LEAVE, OperationKind.ATTENDANCE}
_ATTENDANCE_AWARE_KINDS = {OperationKind.ATTENDANCE, OperationKind.SICK_LEAVE}


@dataclass(frozen=True)
class ConflictDetail:
    date: date
    type: ConflictType
    description: str
    severity: Severity


@dataclass
class ConflictSummary:
    total_conflicts: int = 0
    business_trips: int = 0
    vacations: int = 0
    permissions: int = 0
    sick_leaves: int = 0
    attendances: int = 0


@dataclass
class ConflictIndex:
    conflict_dates: set[date] = field(default_factory=set)
    details: list[ConflictDetail] = field(default_factory=list)
    summary: ConflictSummary = field(default_factory=ConflictSummary)

    def is_date_disabled(self, day: date) -> bool:
        return day in self.conflict_dates

    def details_for_date(self, day: date) -> list[ConflictDetail]:
        return [detail for detail in self.details if detail.date == day]

    def _add(self, day: date, conflict_type: ConflictType, description: str, severity: Severity) -> None:
        self.conflict_dates.add(day)
        self.details.append(
            ConflictDetail(date=day, type=conflict_type, description=description, severity=severity)
        )


def _hhmm(value) -> str:
    return value.strftime("%H:%M")


def build_conflict_index(timeline: EmployeeTimeline | None, kind: OperationKind | str) -> ConflictIndex:
    """Collect every date already occupied for ``timeline`` from the point of view of ``kind``.

    Business trips, vacations and sick leaves always block. Approved permissions only block
    permission, sick-leave and attendance entries. Existing attendance rows only matter for
    attendance (warning) and sick-leave (critical) entries.

    ``summary.total_conflicts`` counts distinct dates, while the per-type counters count raw
    occurrences, so a date blocked twice adds one to the total and two to the counters.
    """
    index = ConflictIndex()
    if timeline is None:
        return index

    kind = OperationKind(kind)
    summary = index.summary

    for trip in timeline.approved_business_trips:
        days = list(iter_days(trip.start_date, trip.end_date))
        for day in days:
            index._add(day, ConflictType.BUSINESS_TRIP, f"Trasferta a {trip.destination}", Severity.CRITICAL)
        summary.business_trips += len(days)

    for vacation in timeline.approved_vacations:
        days = list(iter_days(vacation.date_from, vacation.date_to))
        for day in days:
            index._add(day, ConflictType.VACATION, "Ferie approvate", Severity.CRITICAL)
        summary.vacations += len(days)

    if kind in _PERMISSION_AWARE_KINDS:
        permissions = timeline.approved_permissions
        for permission in permissions:
            if permission.time_from is not None and permission.time_to is not None:
                time_info = f" ({_hhmm(permission.time_from)}-{_hhmm(permission.time_to)})"
            else:
                time_info = " (giornaliero)"
            index._add(permission.day, ConflictType.PERMISSION, f"Permesso approvato{time_info}", Severity.CRITICAL)
        summary.permissions += len(permissions)

    for sick_leave in timeline.sick_leaves:
        days = list(iter_days(sick_leave.start_date, sick_leave.end_date))
        suffix = f" - {sick_leave.notes}" if sick_leave.notes else ""
        for day in days:
            index._add(day, ConflictType.SICK_LEAVE, f"Malattia registrata{suffix}", Severity.CRITICAL)
        summary.sick_leaves += len(days)

    if kind in _ATTENDANCE_AWARE_KINDS:
        is_sick_leave_entry = kind == OperationKind.SICK_LEAVE
        severity = Severity.CRITICAL if is_sick_leave_entry else Severity.WARNING

        records = timeline.worked_attendance_records
        description = (
            "Presenza già registrata - impossibile registrare malattia"
            if is_sick_leave_entry
            else "Presenza già registrata"
        )
        for record in records:
            index._add(record.day_date, ConflictType.ATTENDANCE, description, severity)
        summary.attendances += len(records)

        manual_rows = timeline.manual_attendances
        manual_description = (
            "Presenza manuale già registrata - impossibile registrare malattia"
            if is_sick_leave_entry
            else "Presenza manuale già registrata"
        )
        for row in manual_rows:
            index._add(row.day_date, ConflictType.ATTENDANCE, manual_description, severity)
        summary.attendances += len(manual_rows)

    summary.total_conflicts = len(index.conflict_dates)
    return index


def compute_conflict_index(db: Session, employee_id: int | None, kind: OperationKind | str) -> ConflictIndex:
    if employee_id is None:
        return ConflictIndex()

    timeline = load_employee_timeline(db, employee_id)
    index = build_conflict_index(timeline, kind)
    logger.info(
        "conflict_index_computed",
        extra={
            "employee_id": employee_id,
            "operation_kind": OperationKind(kind).value,
            "total_conflicts": index.summary.total_conflicts,
            "details": len(index.details),
        },
    )
    return index


def blocked_dates_for_business_trip(timelines: Iterable[EmployeeTimeline], today: date) -> set[date]:
    """Dates on which none of the selected employees may start a new business trip."""
    blocked: set[date] = set()
    for timeline in timelines:
        for trip in timeline.approved_business_trips:
            blocked.update(iter_days(trip.start_date, trip.end_date))
        for vacation in timeline.approved_vacations:
            blocked.update(iter_days(vacation.date_from, vacation.date_to))
        for permission in timeline.approved_permissions:
            blocked.add(permission.day)
        for sick_leave in timeline.sick_leaves:
            blocked.update(iter_days(sick_leave.start_date, sick_leave.end_date))
        for record in timeline.attendance_records:
            if record.check_in_at is None or record.is_business_trip or record.is_sick_leave:
                continue
            if record.day_date <= today:
                blocked.add(record.day_date)
    return blocked


def blocked_dates_for_manual_entry(timelines: Iterable[EmployeeTimeline]) -> set[date]:
    """Dates on which a manual attendance or sick leave cannot be entered.

    Permissions do not block manual entries.
    """
    blocked: set[date] = set()
    for timeline in timelines:
        for trip in timeline.approved_business_trips:
            blocked.update(iter_days(trip.start_date, trip.end_date))
        for vacation in timeline.approved_vacations:
            blocked.update(iter_days(vacation.date_from, vacation.date_to))
        for sick_leave in timeline.sick_leaves:
            blocked.update(iter_days(sick_leave.start_date, sick_leave.end_date))
        blocked.update(record.day_date for record in timeline.attendance_records)
        blocked.update(row.day_date for row in timeline.manual_attendances)
    return blocked
