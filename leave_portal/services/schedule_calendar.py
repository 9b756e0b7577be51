from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Any

from leave_portal.models import TrackingStartType, WorkSchedule

# Indexed by date.weekday(): Monday == 0.
_WEEKDAY_FLAGS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_WEEKDAY_LABELS = ("Lunedì", "Martedì", "Mercoledì", "Giovedì", "Venerdì", "Sabato", "Domenica")
_WEEKDAY_SHORT_LABELS = ("Lun", "Mar", "Mer", "Gio", "Ven", "Sab", "Dom")


@dataclass
class PermissionTimeValidation:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def is_working_day(
    day: date,
    schedule: WorkSchedule | None,
    *,
    assume_working_when_unconfigured: bool,
) -> bool:
    if schedule is None:
        return assume_working_when_unconfigured
    return bool(getattr(schedule, _WEEKDAY_FLAGS[day.weekday()]))


def iter_days(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def working_days_in_range(
    start: date,
    end: date,
    schedule: WorkSchedule | None,
    *,
    assume_working_when_unconfigured: bool,
) -> list[date]:
    return [
        day
        for day in iter_days(start, end)
        if is_working_day(day, schedule, assume_working_when_unconfigured=assume_working_when_unconfigured)
    ]


def count_working_days(
    start: date,
    end: date,
    schedule: WorkSchedule | None,
    *,
    assume_working_when_unconfigured: bool,
) -> int:
    return len(
        working_days_in_range(
            start,
            end,
            schedule,
            assume_working_when_unconfigured=assume_working_when_unconfigured,
        )
    )


def working_day_labels(schedule: WorkSchedule | None) -> list[str]:
    if schedule is None:
        return []
    return [label for flag, label in zip(_WEEKDAY_FLAGS, _WEEKDAY_LABELS) if getattr(schedule, flag)]


def working_hours_info(schedule: WorkSchedule | None) -> dict[str, Any] | None:
    if schedule is None:
        return None
    short_labels = [label for flag, label in zip(_WEEKDAY_FLAGS, _WEEKDAY_SHORT_LABELS) if getattr(schedule, flag)]
    return {
        "working_days": ", ".join(short_labels),
        "working_hours": f"{_hhmm(schedule.start_time)} - {_hhmm(schedule.end_time)}",
        "tolerance_minutes": schedule.tolerance_minutes,
    }


def validate_permission_time(
    day: date,
    time_from: time | None,
    time_to: time | None,
    schedule: WorkSchedule | None,
) -> PermissionTimeValidation:
    result = PermissionTimeValidation()
    if schedule is None:
        result.warnings.append("Configurazione orari di lavoro non disponibile")
        return result

    if not is_working_day(day, schedule, assume_working_when_unconfigured=False):
        result.errors.append(
            f"{_WEEKDAY_LABELS[day.weekday()]} non è un giorno lavorativo secondo la configurazione aziendale"
        )

    if time_from is not None and time_to is not None:
        if time_from < schedule.start_time:
            result.errors.append(
                f"L'orario di inizio ({_hhmm(time_from)}) deve essere dopo l'inizio "
                f"dell'orario di lavoro ({_hhmm(schedule.start_time)})"
            )
        if time_to > schedule.end_time:
            result.errors.append(
                f"L'orario di fine ({_hhmm(time_to)}) deve essere prima della fine "
                f"dell'orario di lavoro ({_hhmm(schedule.end_time)})"
            )
        if time_from >= time_to:
            result.errors.append("L'orario di fine deve essere successivo all'orario di inizio")

    return result


def tracking_start_date(employee: Any, year: int) -> date:
    year_start = date(year, 1, 1)
    hire_date = getattr(employee, "hire_date", None)
    if hire_date is None:
        return year_start
    if employee.tracking_start_type == TrackingStartType.FROM_YEAR_START:
        return year_start
    return max(hire_date, year_start)


def should_track_employee_on_date(
    employee: Any,
    day: date,
    schedule: WorkSchedule | None,
    *,
    assume_working_when_unconfigured: bool,
) -> bool:
    if day < tracking_start_date(employee, day.year):
        return False
    return is_working_day(day, schedule, assume_working_when_unconfigured=assume_working_when_unconfigured)


def _hhmm(value: time) -> str:
    return value.strftime("%H:%M")
