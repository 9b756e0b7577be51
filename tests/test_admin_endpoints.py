import unittest
from collections.abc import Generator
from datetime import date, datetime, time
from unittest.mock import patch

from fastapi.testclient import TestClient

from leave_portal.db import get_db
from leave_portal.errors import StorageUnavailableError
from leave_portal.main import app
from leave_portal.models import (
    AttendanceRecord,
    BusinessTrip,
    Employee,
    LeaveKind,
    LeaveRequest,
    RequestStatus,
    SickLeave,
    WorkSchedule,
)
from leave_portal.routers.admin import conflict_requests
from leave_portal.services.conflict_index import build_conflict_index
from leave_portal.services.timeline import EmployeeTimeline


class FakeDB:
    def __init__(self) -> None:
        self.added: list[object] = []
        self.committed = False

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return None

    def add(self, obj: object) -> None:
        self.added.append(obj)

    def commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        return

    def refresh(self, obj: object) -> None:
        if getattr(obj, "id", None) is None:
            obj.id = 1


def override_get_db(fake_db: FakeDB):
    def _override() -> Generator[FakeDB, None, None]:
        yield fake_db

    return _override


def _timeline(employee_id: int = 1, **entities) -> EmployeeTimeline:
    employee = Employee(id=employee_id, full_name="Mario Rossi", is_active=True, hire_date=date(2024, 3, 10))
    return EmployeeTimeline(employee_id=employee_id, employee=employee, **entities)


def _milano_trip() -> BusinessTrip:
    return BusinessTrip(
        employee_id=1,
        start_date=date(2024, 6, 1),
        end_date=date(2024, 6, 5),
        destination="Milano",
        status=RequestStatus.APPROVED,
    )


class AdminEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.fake_db = FakeDB()
        app.dependency_overrides[get_db] = override_get_db(self.fake_db)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        conflict_requests.discard("vacation-form")

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_conflicts_for_attendance(self) -> None:
        timeline = _timeline(
            business_trips=[_milano_trip()],
            attendance_records=[
                AttendanceRecord(employee_id=1, day_date=date(2024, 6, 10), is_sick_leave=False, is_business_trip=False),
            ],
        )
        with patch("leave_portal.services.conflict_index.load_employee_timeline", return_value=timeline):
            response = self.client.get("/api/admin/conflicts", params={"kind": "attendance", "employee_id": 1})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(
            body["conflict_dates"],
            ["2024-06-01", "2024-06-02", "2024-06-03", "2024-06-04", "2024-06-05", "2024-06-10"],
        )
        self.assertEqual(body["summary"]["total_conflicts"], 6)
        self.assertEqual(body["details"][-1]["severity"], "warning")
        self.assertEqual(body["debounce_ms"], 300)
        self.assertIsNone(body["generation"])

    def test_conflicts_with_session_key_report_generation(self) -> None:
        with patch("leave_portal.services.conflict_index.load_employee_timeline", return_value=_timeline()):
            first = self.client.get(
                "/api/admin/conflicts",
                params={"kind": "ferie", "employee_id": 1, "session_key": "vacation-form"},
            ).json()
            second = self.client.get(
                "/api/admin/conflicts",
                params={"kind": "ferie", "employee_id": 1, "session_key": "vacation-form"},
            ).json()

        self.assertFalse(first["stale"])
        self.assertFalse(second["stale"])
        self.assertGreater(second["generation"], first["generation"])

    def test_superseded_conflict_request_is_empty_and_stale(self) -> None:
        newer_index = build_conflict_index(_timeline(2, business_trips=[_milano_trip()]), "attendance")

        def _compute_while_newer_request_starts(_db, _employee_id, _kind):  # type: ignore[no-untyped-def]
            conflict_requests.publish(conflict_requests.begin("vacation-form"), newer_index)
            return build_conflict_index(_timeline(1), "ferie")

        with patch("leave_portal.routers.admin.compute_conflict_index", side_effect=_compute_while_newer_request_starts):
            response = self.client.get(
                "/api/admin/conflicts",
                params={"kind": "ferie", "employee_id": 1, "session_key": "vacation-form"},
            )

        body = response.json()
        self.assertTrue(body["stale"])
        self.assertEqual(body["employee_id"], 1)
        self.assertEqual(body["operation_kind"], "ferie")
        self.assertEqual(body["conflict_dates"], [])
        self.assertEqual(body["summary"]["total_conflicts"], 0)

    def test_conflicts_without_employee_are_empty(self) -> None:
        response = self.client.get("/api/admin/conflicts", params={"kind": "sick_leave"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["conflict_dates"], [])

    def test_validate_vacation_reports_trip(self) -> None:
        with patch("leave_portal.routers.admin.load_employee_timeline", return_value=_timeline(business_trips=[_milano_trip()])):
            response = self.client.post(
                "/api/admin/validate/vacation",
                json={"employee_id": 1, "start_date": "2024-06-03", "end_date": "2024-06-07"},
            )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertFalse(body["is_valid"])
        self.assertEqual(body["reasons"][0]["kind"], "TEMPORAL_CONFLICT")
        self.assertEqual(body["reasons"][0]["conflict_type"], "business_trip")
        self.assertIn("Milano", body["conflicts"][0])

    def test_validate_attendance_before_hire_date(self) -> None:
        with patch("leave_portal.routers.admin.load_employee_timeline", return_value=_timeline()):
            response = self.client.post("/api/admin/validate/attendance", json={"employee_id": 1, "day": "2024-03-09"})
        self.assertEqual(response.json()["reasons"][0]["kind"], "HIRE_DATE_VIOLATION")

    def test_validate_unknown_employee_uses_error_envelope(self) -> None:
        with patch("leave_portal.routers.admin.load_employee_timeline", return_value=EmployeeTimeline(employee_id=9)):
            response = self.client.post("/api/admin/validate/attendance", json={"employee_id": 9, "day": "2024-06-03"})

        self.assertEqual(response.status_code, 404)
        error = response.json()["error"]
        self.assertEqual(error["code"], "EMPLOYEE_NOT_FOUND")
        self.assertIn("request_id", error)

    def test_storage_failure_is_service_unavailable(self) -> None:
        failure = StorageUnavailableError(
            "Archivio presenze non raggiungibile: impossibile verificare i conflitti.",
            operation="load_employee_timeline",
        )
        with patch("leave_portal.routers.admin.load_employee_timeline", side_effect=failure):
            response = self.client.post(
                "/api/admin/validate/sick-leave",
                json={"employee_id": 1, "start_date": "2024-06-03"},
            )

        self.assertEqual(response.status_code, 503)
        error = response.json()["error"]
        self.assertEqual(error["code"], "STORAGE_UNAVAILABLE")
        self.assertEqual(error["message"], failure.message)

    def test_blocked_dates_for_manual_entry(self) -> None:
        permission = LeaveRequest(employee_id=2, type=LeaveKind.PERMESSO, status=RequestStatus.APPROVED, day=date(2024, 6, 20))
        timelines = {
            1: _timeline(1, business_trips=[_milano_trip()]),
            2: _timeline(2, leave_requests=[permission]),
        }
        with patch(
            "leave_portal.services.timeline.load_employee_timeline",
            side_effect=lambda _db, employee_id: timelines[employee_id],
        ):
            response = self.client.get(
                "/api/admin/blocked-dates",
                params=[("purpose", "manual_entry"), ("employee_ids", 1), ("employee_ids", 2), ("employee_ids", 1)],
            )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["employee_ids"], [1, 2])
        self.assertEqual(len(body["dates"]), 5)
        self.assertNotIn("2024-06-20", body["dates"])

    def test_permission_time_validation(self) -> None:
        schedule = WorkSchedule(
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
        with patch("leave_portal.routers.admin.get_work_schedule", return_value=schedule):
            response = self.client.post(
                "/api/admin/validate/permission-time",
                json={"day": "2024-06-03", "time_from": "08:30:00", "time_to": "10:00:00"},
            )
        body = response.json()
        self.assertFalse(body["is_valid"])
        self.assertIn("08:30", body["errors"][0])

    def test_working_days_without_schedule_assume_every_day(self) -> None:
        with patch("leave_portal.routers.admin.get_work_schedule", return_value=None):
            response = self.client.get(
                "/api/admin/working-days",
                params={"start_date": "2024-06-03", "end_date": "2024-06-09"},
            )
        body = response.json()
        self.assertEqual(body["count"], 7)
        self.assertFalse(body["schedule_configured"])

    def test_create_leave_request_conflict_returns_409(self) -> None:
        with patch("leave_portal.services.entries.load_employee_timeline", return_value=_timeline(business_trips=[_milano_trip()])):
            response = self.client.post(
                "/api/admin/leave-requests",
                json={"employee_id": 1, "type": "ferie", "date_from": "2024-06-03", "date_to": "2024-06-07"},
            )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "TEMPORAL_CONFLICT")
        self.assertFalse(self.fake_db.committed)

    def test_create_leave_request_shape_is_validated(self) -> None:
        response = self.client.post(
            "/api/admin/leave-requests",
            json={"employee_id": 1, "type": "permesso", "date_from": "2024-06-03"},
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")


class AttendanceEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.fake_db = FakeDB()
        app.dependency_overrides[get_db] = override_get_db(self.fake_db)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_check_in_success(self) -> None:
        with (
            patch("leave_portal.services.attendance_status.load_employee_timeline", return_value=_timeline()),
            patch("leave_portal.services.attendance_status.get_work_schedule", return_value=None),
            patch("leave_portal.services.attendance_status.get_attendance_settings", return_value=None),
        ):
            response = self.client.post("/api/attendance/check-in", json={"employee_id": 1, "lat": 45.0, "lon": 9.0})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["ok"])
        self.assertFalse(body["is_late"])
        self.assertEqual(body["record"]["entry_kind"], "presence")
        self.assertTrue(self.fake_db.committed)

    def test_check_in_on_sick_leave_is_conflict(self) -> None:
        today = datetime.now().date()
        sick = SickLeave(employee_id=1, start_date=date(today.year - 1, 1, 1), end_date=date(today.year + 1, 12, 31))
        with (
            patch("leave_portal.services.attendance_status.load_employee_timeline", return_value=_timeline(sick_leaves=[sick])),
            patch("leave_portal.services.attendance_status.get_work_schedule", return_value=None),
            patch("leave_portal.services.attendance_status.get_attendance_settings", return_value=None),
        ):
            response = self.client.post("/api/attendance/check-in", json={"employee_id": 1, "lat": 45.0, "lon": 9.0})

        self.assertEqual(response.status_code, 409)
        error = response.json()["error"]
        self.assertEqual(error["code"], "TEMPORAL_CONFLICT")
        self.assertIn("malattia", error["message"])

    def test_check_out_without_check_in(self) -> None:
        with (
            patch("leave_portal.services.attendance_status.load_employee_timeline", return_value=_timeline()),
            patch("leave_portal.services.attendance_status.get_attendance_settings", return_value=None),
        ):
            response = self.client.post("/api/attendance/check-out", json={"employee_id": 1})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "CHECKIN_REQUIRED")

    def test_status_for_fresh_day(self) -> None:
        with (
            patch("leave_portal.services.attendance_status.load_employee_timeline", return_value=_timeline()),
            patch("leave_portal.services.attendance_status.get_attendance_settings", return_value=None),
        ):
            response = self.client.get("/api/attendance/status/1")

        body = response.json()
        self.assertEqual(body["state"], "NOT_STARTED")
        self.assertTrue(body["can_check_in"])
        self.assertIsNone(body["record"])


if __name__ == "__main__":
    unittest.main()
