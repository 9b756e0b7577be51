from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from leave_portal.models import WorkSchedule
from leave_portal.services.local_time import to_local_wall_clock
from leave_portal.services.schedule_calendar import is_working_day


@dataclass(frozen=True)
class LatenessResult:
    is_late: bool
    late_minutes: int


NOT_LATE = LatenessResult(is_late=False, late_minutes=0)


def compute_lateness(check_in: datetime, schedule: WorkSchedule | None) -> LatenessResult:
    if schedule is None or schedule.start_time is None:
        return NOT_LATE

    local_check_in = to_local_wall_clock(check_in)
    if not is_working_day(local_check_in.date(), schedule, assume_working_when_unconfigured=False):
        return NOT_LATE

    expected_start = datetime.combine(local_check_in.date(), schedule.start_time)
    tolerance_boundary = expected_start + timedelta(minutes=schedule.tolerance_minutes or 0)
    if local_check_in <= tolerance_boundary:
        return NOT_LATE

    elapsed_seconds = (local_check_in - tolerance_boundary).total_seconds()
    # Any instant past the boundary counts as at least one minute late.
    late_minutes = max(1, int(elapsed_seconds // 60))
    return LatenessResult(is_late=True, late_minutes=late_minutes)


def is_within_working_hours(instant: datetime, schedule: WorkSchedule | None) -> tuple[bool, int]:
    lateness = compute_lateness(instant, schedule)
    return lateness.is_late, lateness.late_minutes
