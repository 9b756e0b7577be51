from __future__ import annotations

import unittest
from datetime import date, time

from leave_portal.models import Employee, TrackingStartType, WorkSchedule
from leave_portal.services.schedule_calendar import (
    count_working_days,
    is_working_day,
    iter_days,
    should_track_employee_on_date,
    tracking_start_date,
    validate_permission_time,
    working_day_labels,
    working_days_in_range,
    working_hours_info,
)


def _office_schedule() -> WorkSchedule:
    return WorkSchedule(
        start_time=time(9, 0),
        end_time=time(18, 0),
        tolerance_minutes=10,
        monday=True,
        tuesday=True,
        wednesday=True,
        thursday=True,
        friday=True,
        saturday=False,
        sunday=False,
    )


class ScheduleCalendarTests(unittest.TestCase):
    def test_weekday_flags_decide_working_days(self) -> None:
        schedule = _office_schedule()
        # 2024-06-03 is a Monday, 2024-06-08 a Saturday.
        self.assertTrue(is_working_day(date(2024, 6, 3), schedule, assume_working_when_unconfigured=False))
        self.assertFalse(is_working_day(date(2024, 6, 8), schedule, assume_working_when_unconfigured=True))

    def test_missing_schedule_follows_caller_default(self) -> None:
        day = date(2024, 6, 8)
        self.assertTrue(is_working_day(day, None, assume_working_when_unconfigured=True))
        self.assertFalse(is_working_day(day, None, assume_working_when_unconfigured=False))

    def test_count_working_days_over_one_week(self) -> None:
        start, end = date(2024, 6, 3), date(2024, 6, 9)
        self.assertEqual(count_working_days(start, end, _office_schedule(), assume_working_when_unconfigured=True), 5)
        self.assertEqual(count_working_days(start, end, None, assume_working_when_unconfigured=True), 7)
        self.assertEqual(
            working_days_in_range(start, end, _office_schedule(), assume_working_when_unconfigured=True)[-1],
            date(2024, 6, 7),
        )

    def test_iter_days_is_inclusive_and_empty_for_reversed_range(self) -> None:
        self.assertEqual(len(list(iter_days(date(2024, 2, 27), date(2024, 3, 1)))), 4)
        self.assertEqual(list(iter_days(date(2024, 3, 2), date(2024, 3, 1))), [])

    def test_labels_and_hours_info(self) -> None:
        schedule = _office_schedule()
        self.assertEqual(working_day_labels(schedule), ["Lunedì", "Martedì", "Mercoledì", "Giovedì", "Venerdì"])
        info = working_hours_info(schedule)
        self.assertEqual(info["working_hours"], "09:00 - 18:00")
        self.assertEqual(info["working_days"], "Lun, Mar, Mer, Gio, Ven")
        self.assertIsNone(working_hours_info(None))
        self.assertEqual(working_day_labels(None), [])

    def test_permission_time_outside_working_hours(self) -> None:
        result = validate_permission_time(date(2024, 6, 3), time(8, 0), time(19, 0), _office_schedule())
        self.assertFalse(result.is_valid)
        self.assertEqual(len(result.errors), 2)
        self.assertIn("08:00", result.errors[0])
        self.assertIn("19:00", result.errors[1])

    def test_permission_time_on_non_working_day(self) -> None:
        result = validate_permission_time(date(2024, 6, 8), None, None, _office_schedule())
        self.assertFalse(result.is_valid)
        self.assertIn("Sabato", result.errors[0])

    def test_permission_time_without_schedule_only_warns(self) -> None:
        result = validate_permission_time(date(2024, 6, 8), time(8, 0), time(9, 0), None)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.warnings, ["Configurazione orari di lavoro non disponibile"])

    def test_tracking_start_date_policies(self) -> None:
        hired = Employee(
            full_name="Giulia Bianchi",
            hire_date=date(2024, 3, 10),
            tracking_start_type=TrackingStartType.FROM_HIRE_DATE,
        )
        self.assertEqual(tracking_start_date(hired, 2024), date(2024, 3, 10))
        self.assertEqual(tracking_start_date(hired, 2025), date(2025, 1, 1))

        hired.tracking_start_type = TrackingStartType.FROM_YEAR_START
        self.assertEqual(tracking_start_date(hired, 2024), date(2024, 1, 1))

    def test_employee_not_tracked_before_hire_date(self) -> None:
        employee = Employee(
            full_name="Giulia Bianchi",
            hire_date=date(2024, 3, 11),
            tracking_start_type=TrackingStartType.FROM_HIRE_DATE,
        )
        schedule = _office_schedule()
        # 2024-03-08 is a Friday, 2024-03-11 a Monday.
        self.assertFalse(
            should_track_employee_on_date(employee, date(2024, 3, 8), schedule, assume_working_when_unconfigured=True)
        )
        self.assertTrue(
            should_track_employee_on_date(employee, date(2024, 3, 11), schedule, assume_working_when_unconfigured=True)
        )


if __name__ == "__main__":
    unittest.main()
