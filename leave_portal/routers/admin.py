from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from leave_portal.db import get_db
from leave_portal.errors import ApiError
from leave_portal.models import BusinessTrip, LeaveRequest, ManualAttendance, RequestStatus, SickLeave
from leave_portal.schemas import (
    AttendanceSettingsRead,
    AttendanceSettingsUpsertRequest,
    AttendanceValidateRequest,
    BlockedDatesResponse,
    BulkAttendanceValidateRequest,
    BulkAttendanceValidateResponse,
    BusinessTripCreate,
    BusinessTripRead,
    ConflictDetailRead,
    ConflictIndexResponse,
    ConflictSummaryRead,
    LeaveRequestCreate,
    LeaveRequestRead,
    ManualAttendanceCreate,
    ManualAttendanceRead,
    PermissionTimeValidateRequest,
    PermissionTimeValidateResponse,
    PermissionValidateRequest,
    RequestStatusUpdate,
    SickLeaveCreate,
    SickLeaveRead,
    SickLeaveValidateRequest,
    VacationValidateRequest,
    ValidationResponse,
    WorkScheduleRead,
    WorkScheduleUpsertRequest,
    WorkingDaysResponse,
)
from leave_portal.services.company_config import (
    get_attendance_settings,
    get_work_schedule,
    upsert_attendance_settings,
    upsert_work_schedule,
)
from leave_portal.services.conflict_index import (
    ConflictIndex,
    OperationKind,
    blocked_dates_for_business_trip,
    blocked_dates_for_manual_entry,
    compute_conflict_index,
)
from leave_portal.services.conflict_requests import ConflictRequestTracker
from leave_portal.services.entries import (
    create_business_trip,
    create_leave_request,
    create_manual_attendance,
    create_sick_leave,
    delete_attendance_record,
    delete_business_trip,
    delete_leave_request,
    delete_manual_attendance,
    delete_sick_leave,
    set_business_trip_status,
    set_leave_request_status,
)
from leave_portal.services.local_time import now_utc, to_local_wall_clock
from leave_portal.services.overlap_validator import (
    validate_attendance_entry,
    validate_bulk_attendance,
    validate_permission,
    validate_sick_leave_range,
    validate_vacation_range,
)
from leave_portal.services.schedule_calendar import (
    iter_days,
    is_working_day,
    should_track_employee_on_date,
    validate_permission_time,
    working_day_labels,
    working_hours_info,
)
from leave_portal.services.timeline import EmployeeTimeline, load_employee_timeline, load_employee_timelines
from leave_portal.settings import get_settings

router = APIRouter(tags=["admin"])
conflict_requests: ConflictRequestTracker[ConflictIndex] = ConflictRequestTracker(
    max_keys=get_settings().conflict_session_max_keys,
)


def _timeline_or_404(db: Session, employee_id: int) -> EmployeeTimeline:
    timeline = load_employee_timeline(db, employee_id)
    if timeline.employee is None:
        raise ApiError.not_found("EMPLOYEE_NOT_FOUND", "Dipendente non trovato.")
    return timeline


def _conflict_index_response(
    employee_id: int | None,
    kind: OperationKind,
    index: ConflictIndex,
    *,
    generation: int | None,
    stale: bool,
) -> ConflictIndexResponse:
    return ConflictIndexResponse(
        employee_id=employee_id,
        operation_kind=kind,
        conflict_dates=sorted(index.conflict_dates),
        details=[ConflictDetailRead.model_validate(detail) for detail in index.details],
        summary=ConflictSummaryRead.model_validate(index.summary),
        generation=generation,
        stale=stale,
        debounce_ms=get_settings().conflict_recompute_debounce_ms,
    )


@router.get("/api/admin/conflicts", response_model=ConflictIndexResponse)
def get_conflicts(
    kind: OperationKind = Query(...),
    employee_id: int | None = Query(default=None),
    session_key: str | None = Query(default=None, max_length=128),
    db: Session = Depends(get_db),
) -> ConflictIndexResponse:
    if session_key is None:
        index = compute_conflict_index(db, employee_id, kind)
        return _conflict_index_response(employee_id, kind, index, generation=None, stale=False)

    token = conflict_requests.begin(session_key)
    index = compute_conflict_index(db, employee_id, kind)
    if conflict_requests.publish(token, index):
        return _conflict_index_response(employee_id, kind, index, generation=token.generation, stale=False)

    # Superseded: the newer request may target another employee or kind.
    return _conflict_index_response(employee_id, kind, ConflictIndex(), generation=token.generation, stale=True)


@router.get("/api/admin/blocked-dates", response_model=BlockedDatesResponse)
def get_blocked_dates(
    purpose: Literal["business_trip", "manual_entry"] = Query(...),
    employee_ids: list[int] = Query(default=[]),
    today: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> BlockedDatesResponse:
    timelines = load_employee_timelines(db, employee_ids)
    if purpose == "business_trip":
        reference_day = today or to_local_wall_clock(now_utc()).date()
        blocked = blocked_dates_for_business_trip(timelines, reference_day)
    else:
        blocked = blocked_dates_for_manual_entry(timelines)
    return BlockedDatesResponse(
        employee_ids=[timeline.employee_id for timeline in timelines],
        purpose=purpose,
        dates=sorted(blocked),
    )


@router.post("/api/admin/validate/vacation", response_model=ValidationResponse)
def validate_vacation_endpoint(
    payload: VacationValidateRequest,
    db: Session = Depends(get_db),
) -> ValidationResponse:
    timeline = _timeline_or_404(db, payload.employee_id)
    result = validate_vacation_range(timeline, payload.start_date, payload.end_date)
    return ValidationResponse.model_validate(result)


@router.post("/api/admin/validate/permission", response_model=ValidationResponse)
def validate_permission_endpoint(
    payload: PermissionValidateRequest,
    db: Session = Depends(get_db),
) -> ValidationResponse:
    timeline = _timeline_or_404(db, payload.employee_id)
    result = validate_permission(timeline, payload.day, payload.time_from, payload.time_to)
    return ValidationResponse.model_validate(result)


@router.post("/api/admin/validate/sick-leave", response_model=ValidationResponse)
def validate_sick_leave_endpoint(
    payload: SickLeaveValidateRequest,
    db: Session = Depends(get_db),
) -> ValidationResponse:
    timeline = _timeline_or_404(db, payload.employee_id)
    result = validate_sick_leave_range(timeline, payload.start_date, payload.end_date)
    return ValidationResponse.model_validate(result)


@router.post("/api/admin/validate/attendance", response_model=ValidationResponse)
def validate_attendance_endpoint(
    payload: AttendanceValidateRequest,
    db: Session = Depends(get_db),
) -> ValidationResponse:
    timeline = _timeline_or_404(db, payload.employee_id)
    result = validate_attendance_entry(timeline, payload.day)
    return ValidationResponse.model_validate(result)


@router.post("/api/admin/validate/bulk-attendance", response_model=BulkAttendanceValidateResponse)
def validate_bulk_attendance_endpoint(
    payload: BulkAttendanceValidateRequest,
    db: Session = Depends(get_db),
) -> BulkAttendanceValidateResponse:
    timelines = load_employee_timelines(db, payload.employee_ids)
    results = validate_bulk_attendance(timelines, payload.start_date, payload.end_date)
    return BulkAttendanceValidateResponse(
        results={
            employee_id: ValidationResponse.model_validate(result)
            for employee_id, result in results.items()
        }
    )


@router.post("/api/admin/validate/permission-time", response_model=PermissionTimeValidateResponse)
def validate_permission_time_endpoint(
    payload: PermissionTimeValidateRequest,
    db: Session = Depends(get_db),
) -> PermissionTimeValidateResponse:
    result = validate_permission_time(payload.day, payload.time_from, payload.time_to, get_work_schedule(db))
    return PermissionTimeValidateResponse(
        is_valid=result.is_valid,
        errors=result.errors,
        warnings=result.warnings,
    )


@router.get("/api/admin/sick-leaves", response_model=list[SickLeaveRead])
def list_sick_leaves(
    employee_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[SickLeaveRead]:
    stmt = select(SickLeave).order_by(SickLeave.start_date.desc(), SickLeave.id.desc())
    if employee_id is not None:
        stmt = stmt.where(SickLeave.employee_id == employee_id)
    return list(db.scalars(stmt).all())


@router.post("/api/admin/sick-leaves", response_model=SickLeaveRead, status_code=status.HTTP_201_CREATED)
def create_sick_leave_endpoint(
    payload: SickLeaveCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> SickLeaveRead:
    request.state.actor = "admin"
    request.state.employee_id = payload.employee_id
    return create_sick_leave(db, payload)


@router.delete("/api/admin/sick-leaves/{sick_leave_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_sick_leave_endpoint(sick_leave_id: int, db: Session = Depends(get_db)) -> None:
    delete_sick_leave(db, sick_leave_id)


@router.get("/api/admin/manual-attendances", response_model=list[ManualAttendanceRead])
def list_manual_attendances(
    employee_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[ManualAttendanceRead]:
    stmt = select(ManualAttendance).order_by(ManualAttendance.day_date.desc(), ManualAttendance.id.desc())
    if employee_id is not None:
        stmt = stmt.where(ManualAttendance.employee_id == employee_id)
    return list(db.scalars(stmt).all())


@router.post(
    "/api/admin/manual-attendances",
    response_model=ManualAttendanceRead,
    status_code=status.HTTP_201_CREATED,
)
def create_manual_attendance_endpoint(
    payload: ManualAttendanceCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> ManualAttendanceRead:
    request.state.actor = "admin"
    request.state.employee_id = payload.employee_id
    return create_manual_attendance(db, payload)


@router.delete("/api/admin/manual-attendances/{manual_attendance_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_manual_attendance_endpoint(manual_attendance_id: int, db: Session = Depends(get_db)) -> None:
    delete_manual_attendance(db, manual_attendance_id)


@router.get("/api/admin/leave-requests", response_model=list[LeaveRequestRead])
def list_leave_requests(
    employee_id: int | None = Query(default=None),
    request_status: RequestStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> list[LeaveRequestRead]:
    stmt = select(LeaveRequest).order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
    if employee_id is not None:
        stmt = stmt.where(LeaveRequest.employee_id == employee_id)
    if request_status is not None:
        stmt = stmt.where(LeaveRequest.status == request_status)
    return list(db.scalars(stmt).all())


@router.post("/api/admin/leave-requests", response_model=LeaveRequestRead, status_code=status.HTTP_201_CREATED)
def create_leave_request_endpoint(
    payload: LeaveRequestCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveRequestRead:
    request.state.actor = "admin"
    request.state.employee_id = payload.employee_id
    return create_leave_request(db, payload)


@router.patch("/api/admin/leave-requests/{leave_request_id}/status", response_model=LeaveRequestRead)
def update_leave_request_status(
    leave_request_id: int,
    payload: RequestStatusUpdate,
    db: Session = Depends(get_db),
) -> LeaveRequestRead:
    return set_leave_request_status(db, leave_request_id, RequestStatus(payload.status))


@router.delete("/api/admin/leave-requests/{leave_request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_leave_request_endpoint(leave_request_id: int, db: Session = Depends(get_db)) -> None:
    delete_leave_request(db, leave_request_id)


@router.get("/api/admin/business-trips", response_model=list[BusinessTripRead])
def list_business_trips(
    employee_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[BusinessTripRead]:
    stmt = select(BusinessTrip).order_by(BusinessTrip.start_date.desc(), BusinessTrip.id.desc())
    if employee_id is not None:
        stmt = stmt.where(BusinessTrip.employee_id == employee_id)
    return list(db.scalars(stmt).all())


@router.post("/api/admin/business-trips", response_model=BusinessTripRead, status_code=status.HTTP_201_CREATED)
def create_business_trip_endpoint(
    payload: BusinessTripCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> BusinessTripRead:
    request.state.actor = "admin"
    request.state.employee_id = payload.employee_id
    return create_business_trip(db, payload)


@router.patch("/api/admin/business-trips/{business_trip_id}/status", response_model=BusinessTripRead)
def update_business_trip_status(
    business_trip_id: int,
    payload: RequestStatusUpdate,
    db: Session = Depends(get_db),
) -> BusinessTripRead:
    return set_business_trip_status(db, business_trip_id, RequestStatus(payload.status))


@router.delete("/api/admin/business-trips/{business_trip_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_business_trip_endpoint(business_trip_id: int, db: Session = Depends(get_db)) -> None:
    delete_business_trip(db, business_trip_id)


@router.delete("/api/admin/attendance-records/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_attendance_record_endpoint(record_id: int, db: Session = Depends(get_db)) -> None:
    delete_attendance_record(db, record_id)


def _work_schedule_read(schedule) -> WorkScheduleRead:
    read = WorkScheduleRead.model_validate(schedule)
    read.working_day_labels = working_day_labels(schedule)
    return read


@router.get("/api/admin/work-schedule", response_model=WorkScheduleRead)
def read_work_schedule(db: Session = Depends(get_db)) -> WorkScheduleRead:
    schedule = get_work_schedule(db)
    if schedule is None:
        raise ApiError(
            status_code=404,
            code="WORK_SCHEDULE_NOT_CONFIGURED",
            message="Configurazione orari di lavoro non disponibile.",
        )
    return _work_schedule_read(schedule)


@router.put("/api/admin/work-schedule", response_model=WorkScheduleRead)
def update_work_schedule(
    payload: WorkScheduleUpsertRequest,
    db: Session = Depends(get_db),
) -> WorkScheduleRead:
    return _work_schedule_read(upsert_work_schedule(db, payload))


@router.get("/api/admin/attendance-settings", response_model=AttendanceSettingsRead)
def read_attendance_settings(db: Session = Depends(get_db)) -> AttendanceSettingsRead:
    settings_row = get_attendance_settings(db)
    if settings_row is None:
        raise ApiError(
            status_code=404,
            code="ATTENDANCE_SETTINGS_NOT_CONFIGURED",
            message="Configurazione presenze non disponibile.",
        )
    return settings_row


@router.put("/api/admin/attendance-settings", response_model=AttendanceSettingsRead)
def update_attendance_settings(
    payload: AttendanceSettingsUpsertRequest,
    db: Session = Depends(get_db),
) -> AttendanceSettingsRead:
    return upsert_attendance_settings(db, payload)


@router.delete("/api/admin/conflicts/sessions/{session_key}", status_code=status.HTTP_204_NO_CONTENT)
def discard_conflict_session(session_key: str) -> None:
    conflict_requests.discard(session_key)


@router.get("/api/admin/working-days", response_model=WorkingDaysResponse)
def get_working_days(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> WorkingDaysResponse:
    if end_date < start_date:
        raise ApiError(
            status_code=422,
            code="INVALID_RANGE",
            message="end_date must be greater than or equal to start_date",
        )
    schedule = get_work_schedule(db)
    assume_working = get_settings().schedule_assume_working_without_config

    if employee_id is None:
        days = [
            day
            for day in iter_days(start_date, end_date)
            if is_working_day(day, schedule, assume_working_when_unconfigured=assume_working)
        ]
    else:
        employee = _timeline_or_404(db, employee_id).employee
        days = [
            day
            for day in iter_days(start_date, end_date)
            if should_track_employee_on_date(employee, day, schedule, assume_working_when_unconfigured=assume_working)
        ]

    return WorkingDaysResponse(
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
        schedule_configured=schedule is not None,
        working_days=days,
        count=len(days),
        working_hours=working_hours_info(schedule),
    )
