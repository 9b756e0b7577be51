from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from leave_portal.db import get_db
from leave_portal.errors import ApiError
from leave_portal.schemas import (
    AttendanceActionResponse,
    AttendanceCheckinRequest,
    AttendanceCheckoutRequest,
    AttendanceRecordRead,
    EmployeeTodayStatusResponse,
)
from leave_portal.services.attendance_status import (
    AttendanceActionOutcome,
    check_in,
    check_out,
    get_today_status,
)

router = APIRouter(tags=["attendance"])


def _raise_if_refused(outcome: AttendanceActionOutcome) -> None:
    decision = outcome.decision
    if decision.allowed and outcome.record is not None:
        return
    reason = decision.reason or "Operazione non consentita."
    raise ApiError.conflict(decision.result.primary_kind.value, [reason])


@router.post("/api/attendance/check-in", response_model=AttendanceActionResponse)
def attendance_check_in(
    payload: AttendanceCheckinRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AttendanceActionResponse:
    request.state.actor = "employee"
    request.state.employee_id = payload.employee_id
    outcome = check_in(
        db,
        employee_id=payload.employee_id,
        lat=payload.lat,
        lon=payload.lon,
        is_business_trip=payload.is_business_trip,
        business_trip_id=payload.business_trip_id,
    )
    _raise_if_refused(outcome)

    decision = outcome.decision
    return AttendanceActionResponse(
        ok=True,
        record=AttendanceRecordRead.model_validate(outcome.record),
        is_late=decision.lateness.is_late,
        late_minutes=decision.lateness.late_minutes,
        distance_m=decision.geofence.distance_m if decision.geofence is not None else None,
    )


@router.post("/api/attendance/check-out", response_model=AttendanceActionResponse)
def attendance_check_out(
    payload: AttendanceCheckoutRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AttendanceActionResponse:
    request.state.actor = "employee"
    request.state.employee_id = payload.employee_id
    outcome = check_out(db, employee_id=payload.employee_id, lat=payload.lat, lon=payload.lon)
    _raise_if_refused(outcome)

    record = outcome.record
    return AttendanceActionResponse(
        ok=True,
        record=AttendanceRecordRead.model_validate(record),
        is_late=bool(record.is_late),
        late_minutes=record.late_minutes or 0,
    )


@router.get("/api/attendance/status/{employee_id}", response_model=EmployeeTodayStatusResponse)
def attendance_status(
    employee_id: int,
    request: Request,
    db: Session = Depends(get_db),
) -> EmployeeTodayStatusResponse:
    request.state.employee_id = employee_id
    status = get_today_status(db, employee_id=employee_id)
    return EmployeeTodayStatusResponse(
        employee_id=status.employee_id,
        day=status.day,
        state=status.state,
        block=status.block,
        can_check_in=status.can_check_in,
        can_check_out=status.can_check_out,
        reason=status.reason,
        entry_kind=status.entry_kind,
        record=AttendanceRecordRead.model_validate(status.record) if status.record is not None else None,
    )
