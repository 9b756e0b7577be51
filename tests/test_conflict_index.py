from __future__ import annotations

import unittest
from datetime import date, datetime, time

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
from leave_portal.services.conflict_index import (
    ConflictType,
    OperationKind,
    Severity,
    blocked_dates_for_business_trip,
    blocked_dates_for_manual_entry,
    build_conflict_index,
)
from leave_portal.services.timeline import EmployeeTimeline


def _timeline(employee_id: int = 1, **entities) -> EmployeeTimeline:
    employee = Employee(id=employee_id, full_name="Mario Rossi", is_active=True, hire_date=date(2020, 1, 1))
    return EmployeeTimeline(employee_id=employee_id, employee=employee, **entities)


def _trip(start: date, end: date, status: RequestStatus = RequestStatus.APPROVED) -> BusinessTrip:
    return BusinessTrip(employee_id=1, start_date=start, end_date=end, destination="Milano", status=status)


def _vacation(start: date, end: date, status: RequestStatus = RequestStatus.APPROVED) -> LeaveRequest:
    return LeaveRequest(employee_id=1, type=LeaveKind.FERIE, status=status, date_from=start, date_to=end)


def _permission(day: date, time_from: time | None = None, time_to: time | None = None) -> LeaveRequest:
    return LeaveRequest(
        employee_id=1,
        type=LeaveKind.PERMESSO,
        status=RequestStatus.APPROVED,
        day=day,
        time_from=time_from,
        time_to=time_to,
    )


def _attendance(day: date, *, is_sick_leave: bool = False) -> AttendanceRecord:
    return AttendanceRecord(
        employee_id=1,
        day_date=day,
        check_in_at=datetime.combine(day, time(9, 0)),
        is_manual=False,
        is_business_trip=False,
        is_sick_leave=is_sick_leave,
    )


class ConflictIndexTests(unittest.TestCase):
    def test_no_employee_gives_empty_index(self) -> None:
        index = build_conflict_index(None, OperationKind.ATTENDANCE)
        self.assertEqual(index.conflict_dates, set())
        self.assertEqual(index.summary.total_conflicts, 0)

    def test_rebuilding_is_idempotent(self) -> None:
        timeline = _timeline(
            business_trips=[_trip(date(2024, 6, 1), date(2024, 6, 3))],
            leave_requests=[_permission(date(2024, 6, 10), time(9, 0), time(11, 0))],
            attendance_records=[_attendance(date(2024, 6, 12))],
        )
        first = build_conflict_index(timeline, OperationKind.SICK_LEAVE)
        second = build_conflict_index(timeline, OperationKind.SICK_LEAVE)
        self.assertEqual(first.conflict_dates, second.conflict_dates)
        self.assertEqual(first.details, second.details)
        self.assertEqual(first.summary, second.summary)

    def test_attendance_severity_depends_on_operation(self) -> None:
        day = date(2024, 6, 12)
        timeline = _timeline(attendance_records=[_attendance(day)])

        for_attendance = build_conflict_index(timeline, OperationKind.ATTENDANCE).details_for_date(day)
        for_sick_leave = build_conflict_index(timeline, "sick_leave").details_for_date(day)

        self.assertEqual([detail.severity for detail in for_attendance], [Severity.WARNING])
        self.assertEqual([detail.severity for detail in for_sick_leave], [Severity.CRITICAL])
        self.assertEqual(for_sick_leave[0].description, "Presenza già registrata - impossibile registrare malattia")

    def test_attendance_rows_ignored_for_leave_requests(self) -> None:
        timeline = _timeline(attendance_records=[_attendance(date(2024, 6, 12))])
        self.assertFalse(build_conflict_index(timeline, OperationKind.FERIE).is_date_disabled(date(2024, 6, 12)))
        self.assertFalse(build_conflict_index(timeline, OperationKind.PERMESSO).is_date_disabled(date(2024, 6, 12)))

    def test_sick_leave_attendance_rows_are_not_worked_days(self) -> None:
        timeline = _timeline(attendance_records=[_attendance(date(2024, 6, 12), is_sick_leave=True)])
        index = build_conflict_index(timeline, OperationKind.ATTENDANCE)
        self.assertEqual(index.conflict_dates, set())
        self.assertEqual(index.summary.attendances, 0)

    def test_manual_rows_count_as_attendance(self) -> None:
        day = date(2024, 6, 14)
        timeline = _timeline(manual_attendances=[ManualAttendance(employee_id=1, day_date=day)])
        index = build_conflict_index(timeline, OperationKind.ATTENDANCE)
        self.assertTrue(index.is_date_disabled(day))
        self.assertEqual(index.details[0].type, ConflictType.ATTENDANCE)
        self.assertEqual(index.details[0].description, "Presenza manuale già registrata")

    def test_manual_projection_is_reported_through_its_manual_row(self) -> None:
        day = date(2024, 6, 14)
        projection = AttendanceRecord(
            employee_id=1,
            day_date=day,
            is_manual=True,
            is_business_trip=False,
            is_sick_leave=False,
            entry_kind=EntryKind.MANUAL,
        )
        timeline = _timeline(
            attendance_records=[projection],
            manual_attendances=[ManualAttendance(employee_id=1, day_date=day)],
        )
        index = build_conflict_index(timeline, OperationKind.SICK_LEAVE)
        self.assertEqual(index.summary.attendances, 1)
        self.assertEqual(len(index.details), 1)

        orphan = _timeline(attendance_records=[projection])
        self.assertEqual(build_conflict_index(orphan, OperationKind.SICK_LEAVE).summary.attendances, 1)

    def test_permissions_only_block_permission_sick_and_attendance(self) -> None:
        day = date(2024, 6, 10)
        timeline = _timeline(leave_requests=[_permission(day, time(9, 0), time(11, 0))])

        self.assertFalse(build_conflict_index(timeline, OperationKind.FERIE).is_date_disabled(day))
        for kind in (OperationKind.PERMESSO, OperationKind.SICK_LEAVE, OperationKind.ATTENDANCE):
            index = build_conflict_index(timeline, kind)
            self.assertTrue(index.is_date_disabled(day))
            self.assertEqual(index.details[0].description, "Permesso approvato (09:00-11:00)")

    def test_full_day_permission_description(self) -> None:
        timeline = _timeline(leave_requests=[_permission(date(2024, 6, 10))])
        index = build_conflict_index(timeline, OperationKind.PERMESSO)
        self.assertEqual(index.details[0].description, "Permesso approvato (giornaliero)")

    def test_two_permissions_on_one_day_are_separate_details(self) -> None:
        day = date(2024, 6, 10)
        timeline = _timeline(
            leave_requests=[
                _permission(day, time(9, 0), time(10, 0)),
                _permission(day, time(15, 0), time(16, 0)),
            ]
        )
        index = build_conflict_index(timeline, OperationKind.PERMESSO)
        self.assertEqual(len(index.details), 2)
        self.assertTrue(all(detail.type == ConflictType.PERMISSION for detail in index.details))
        self.assertEqual(index.summary.total_conflicts, 1)
        self.assertEqual(index.summary.permissions, 2)

    def test_pending_and_rejected_entities_do_not_block(self) -> None:
        timeline = _timeline(
            business_trips=[_trip(date(2024, 6, 1), date(2024, 6, 5), RequestStatus.PENDING)],
            leave_requests=[_vacation(date(2024, 7, 1), date(2024, 7, 5), RequestStatus.REJECTED)],
        )
        index = build_conflict_index(timeline, OperationKind.ATTENDANCE)
        self.assertEqual(index.conflict_dates, set())

    def test_summary_counts_occurrences_but_total_counts_dates(self) -> None:
        timeline = _timeline(
            business_trips=[_trip(date(2024, 6, 1), date(2024, 6, 5))],
            leave_requests=[_vacation(date(2024, 6, 3), date(2024, 6, 4))],
        )
        summary = build_conflict_index(timeline, OperationKind.FERIE).summary
        self.assertEqual(summary.business_trips, 5)
        self.assertEqual(summary.vacations, 2)
        self.assertEqual(summary.total_conflicts, 5)

    def test_trip_and_sick_leave_descriptions(self) -> None:
        timeline = _timeline(
            business_trips=[_trip(date(2024, 6, 1), date(2024, 6, 1))],
            sick_leaves=[SickLeave(employee_id=1, start_date=date(2024, 6, 2), end_date=date(2024, 6, 2), notes="Influenza")],
        )
        index = build_conflict_index(timeline, OperationKind.FERIE)
        self.assertEqual(index.details_for_date(date(2024, 6, 1))[0].description, "Trasferta a Milano")
        self.assertEqual(index.details_for_date(date(2024, 6, 2))[0].description, "Malattia registrata - Influenza")


class BlockedDatesTests(unittest.TestCase):
    def test_business_trip_picker_unions_employees(self) -> None:
        first = _timeline(1, leave_requests=[_permission(date(2024, 6, 10))])
        second = _timeline(
            2,
            sick_leaves=[SickLeave(employee_id=2, start_date=date(2024, 6, 11), end_date=date(2024, 6, 12))],
            attendance_records=[_attendance(date(2024, 6, 3)), _attendance(date(2024, 6, 30))],
        )
        blocked = blocked_dates_for_business_trip([first, second], today=date(2024, 6, 15))
        self.assertEqual(
            blocked,
            {date(2024, 6, 3), date(2024, 6, 10), date(2024, 6, 11), date(2024, 6, 12)},
        )

    def test_manual_entry_picker_ignores_permissions(self) -> None:
        timeline = _timeline(
            leave_requests=[_permission(date(2024, 6, 10)), _vacation(date(2024, 6, 20), date(2024, 6, 21))],
            manual_attendances=[ManualAttendance(employee_id=1, day_date=date(2024, 6, 5))],
        )
        blocked = blocked_dates_for_manual_entry([timeline])
        self.assertNotIn(date(2024, 6, 10), blocked)
        self.assertIn(date(2024, 6, 5), blocked)
        self.assertIn(date(2024, 6, 21), blocked)


if __name__ == "__main__":
    unittest.main()
