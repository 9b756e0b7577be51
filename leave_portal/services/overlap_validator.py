from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, time

from leave_portal.services.conflict_index import ConflictType
from leave_portal.services.outcomes import RejectionKind, ValidationResult
from leave_portal.services.timeline import EmployeeTimeline

logger = logging.getLogger("leave_portal.overlap_validator")

CRITICAL_PREFIX = "Conflitto critico: "


def _fmt(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def _hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def ranges_overlap(start: date, end: date, other_start: date, other_end: date) -> bool:
    return start <= other_end and end >= other_start


def _conflict(result: ValidationResult, conflict_type: ConflictType, message: str) -> None:
    result.reject(RejectionKind.TEMPORAL_CONFLICT, CRITICAL_PREFIX + message, conflict_type)


def check_hire_date(result: ValidationResult, timeline: EmployeeTimeline, candidate_dates: Iterable[date]) -> None:
    hire_date = timeline.hire_date
    if hire_date is None:
        return
    early_dates = sorted(day for day in candidate_dates if day < hire_date)
    if not early_dates:
        return
    result.reject(
        RejectionKind.HIRE_DATE_VIOLATION,
        f"Impossibile salvare l'evento: la data selezionata ({_fmt(early_dates[0])}) "
        f"è antecedente alla data di assunzione ({_fmt(hire_date)}).",
    )


def _check_range_order(result: ValidationResult, start: date, end: date) -> bool:
    if end < start:
        result.reject(
            RejectionKind.INVALID_RANGE,
            f"La data di fine ({_fmt(end)}) deve essere uguale o successiva alla data di inizio ({_fmt(start)}).",
        )
        return False
    return True


def _log_outcome(entry: str, timeline: EmployeeTimeline, result: ValidationResult) -> None:
    logger.info(
        "overlap_validated",
        extra={
            "entry": entry,
            "employee_id": timeline.employee_id,
            "is_valid": result.is_valid,
            "reasons": [reason.kind.value for reason in result.reasons],
        },
    )


def validate_vacation_range(timeline: EmployeeTimeline, start: date, end: date) -> ValidationResult:
    result = ValidationResult()
    check_hire_date(result, timeline, (start, end))
    if not _check_range_order(result, start, end):
        _log_outcome("vacation", timeline, result)
        return result

    for trip in timeline.approved_business_trips:
        if ranges_overlap(start, end, trip.start_date, trip.end_date):
            _conflict(
                result,
                ConflictType.BUSINESS_TRIP,
                f"esiste una trasferta a {trip.destination} dal {_fmt(trip.start_date)} al {_fmt(trip.end_date)}",
            )

    for vacation in timeline.approved_vacations:
        if ranges_overlap(start, end, vacation.date_from, vacation.date_to):
            _conflict(
                result,
                ConflictType.VACATION,
                f"esistono già ferie approvate dal {_fmt(vacation.date_from)} al {_fmt(vacation.date_to)}",
            )

    for sick_leave in timeline.sick_leaves:
        if ranges_overlap(start, end, sick_leave.start_date, sick_leave.end_date):
            _conflict(
                result,
                ConflictType.SICK_LEAVE,
                f"esiste un periodo di malattia dal {_fmt(sick_leave.start_date)} al {_fmt(sick_leave.end_date)}",
            )

    _log_outcome("vacation", timeline, result)
    return result


def validate_permission(
    timeline: EmployeeTimeline,
    day: date,
    time_from: time | None = None,
    time_to: time | None = None,
) -> ValidationResult:
    """Check a new permission on ``day``.

    Any approved permission already on the same day is a conflict: presence is enough, the
    hourly windows are not compared. ``time_from``/``time_to`` only describe the candidate.
    """
    result = ValidationResult()
    check_hire_date(result, timeline, (day,))

    for trip in timeline.approved_business_trips:
        if trip.start_date <= day <= trip.end_date:
            _conflict(
                result,
                ConflictType.BUSINESS_TRIP,
                f"esiste una trasferta a {trip.destination} dal {_fmt(trip.start_date)} "
                f"al {_fmt(trip.end_date)} che include il {_fmt(day)}",
            )

    for vacation in timeline.approved_vacations:
        if vacation.date_from <= day <= vacation.date_to:
            _conflict(
                result,
                ConflictType.VACATION,
                f"esistono ferie approvate dal {_fmt(vacation.date_from)} al {_fmt(vacation.date_to)} "
                f"che includono il {_fmt(day)}",
            )

    for permission in timeline.approved_permissions:
        if permission.day != day:
            continue
        if permission.time_from is not None and permission.time_to is not None:
            time_info = f" dalle {_hhmm(permission.time_from)} alle {_hhmm(permission.time_to)}"
        else:
            time_info = " (giornata intera)"
        _conflict(
            result,
            ConflictType.PERMISSION,
            f"esiste già un permesso approvato il {_fmt(day)}{time_info}",
        )

    for sick_leave in timeline.sick_leaves:
        if sick_leave.start_date <= day <= sick_leave.end_date:
            _conflict(
                result,
                ConflictType.SICK_LEAVE,
                f"esiste un periodo di malattia dal {_fmt(sick_leave.start_date)} "
                f"al {_fmt(sick_leave.end_date)} che include il {_fmt(day)}",
            )
            break

    _log_outcome("permission", timeline, result)
    return result


def validate_sick_leave_range(timeline: EmployeeTimeline, start: date, end: date | None = None) -> ValidationResult:
    """Check a new sick leave. Other sick leaves and permissions are deliberately not consulted."""
    final_end = end or start
    result = ValidationResult()
    check_hire_date(result, timeline, (start, final_end))
    if not _check_range_order(result, start, final_end):
        _log_outcome("sick_leave", timeline, result)
        return result

    for trip in timeline.approved_business_trips:
        if ranges_overlap(start, final_end, trip.start_date, trip.end_date):
            _conflict(
                result,
                ConflictType.BUSINESS_TRIP,
                f"esiste una trasferta a {trip.destination} dal {_fmt(trip.start_date)} al {_fmt(trip.end_date)}",
            )

    for vacation in timeline.approved_vacations:
        if ranges_overlap(start, final_end, vacation.date_from, vacation.date_to):
            _conflict(
                result,
                ConflictType.VACATION,
                f"esistono ferie approvate dal {_fmt(vacation.date_from)} al {_fmt(vacation.date_to)}",
            )

    for record in timeline.worked_attendance_records:
        if start <= record.day_date <= final_end:
            _conflict(
                result,
                ConflictType.ATTENDANCE,
                f"esiste una presenza registrata il {_fmt(record.day_date)}",
            )

    for row in timeline.manual_attendances:
        if start <= row.day_date <= final_end:
            _conflict(
                result,
                ConflictType.ATTENDANCE,
                f"esiste una presenza manuale registrata il {_fmt(row.day_date)}",
            )

    _log_outcome("sick_leave", timeline, result)
    return result


def validate_attendance_entry(timeline: EmployeeTimeline, day: date) -> ValidationResult:
    """Check a new attendance on ``day``.

    Hourly permissions and attendance rows already on ``day`` are not rejected here: the
    former may coexist with a presence, the latter is left to the storage uniqueness rule.
    """
    result = ValidationResult()
    check_hire_date(result, timeline, (day,))

    for trip in timeline.approved_business_trips:
        if trip.start_date <= day <= trip.end_date:
            _conflict(
                result,
                ConflictType.BUSINESS_TRIP,
                f"esiste una trasferta a {trip.destination} dal {_fmt(trip.start_date)} "
                f"al {_fmt(trip.end_date)} che include il {_fmt(day)}",
            )

    for vacation in timeline.approved_vacations:
        if vacation.date_from <= day <= vacation.date_to:
            _conflict(
                result,
                ConflictType.VACATION,
                f"esistono ferie approvate dal {_fmt(vacation.date_from)} al {_fmt(vacation.date_to)} "
                f"che includono il {_fmt(day)}",
            )

    for sick_leave in timeline.sick_leaves:
        if sick_leave.start_date <= day <= sick_leave.end_date:
            _conflict(
                result,
                ConflictType.SICK_LEAVE,
                f"esiste un periodo di malattia dal {_fmt(sick_leave.start_date)} "
                f"al {_fmt(sick_leave.end_date)} che include il {_fmt(day)}",
            )
            break

    for permission in timeline.approved_permissions:
        if permission.day == day and permission.is_full_day_permission:
            _conflict(
                result,
                ConflictType.PERMISSION,
                f"esiste un permesso giornaliero approvato il {_fmt(day)}",
            )
            break

    _log_outcome("attendance", timeline, result)
    return result


def validate_bulk_attendance(
    timelines: Iterable[EmployeeTimeline],
    start: date,
    end: date | None = None,
) -> dict[int, ValidationResult]:
    results: dict[int, ValidationResult] = {}
    for timeline in timelines:
        if end is not None and end != start:
            results[timeline.employee_id] = validate_sick_leave_range(timeline, start, end)
        else:
            results[timeline.employee_id] = validate_attendance_entry(timeline, start)
    return results
