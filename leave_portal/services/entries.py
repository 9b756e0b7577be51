from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from leave_portal.errors import ApiError, StorageUnavailableError
from leave_portal.models import (
    AttendanceRecord,
    BusinessTrip,
    EntryKind,
    LeaveKind,
    LeaveRequest,
    ManualAttendance,
    RequestStatus,
    SickLeave,
)
from leave_portal.services.local_time import attendance_timezone
from leave_portal.services.outcomes import RejectionKind, ValidationResult
from leave_portal.services.overlap_validator import (
    check_hire_date,
    validate_attendance_entry,
    validate_permission,
    validate_sick_leave_range,
    validate_vacation_range,
)
from leave_portal.services.timeline import EmployeeTimeline, load_employee_timeline

if TYPE_CHECKING:
    from leave_portal.schemas import (
        BusinessTripCreate,
        LeaveRequestCreate,
        ManualAttendanceCreate,
        SickLeaveCreate,
    )

logger = logging.getLogger("leave_portal.entries")


def _load_existing_employee_timeline(db: Session, employee_id: int) -> EmployeeTimeline:
    timeline = load_employee_timeline(db, employee_id)
    if timeline.employee is None:
        raise ApiError.not_found("EMPLOYEE_NOT_FOUND", "Dipendente non trovato.")
    return timeline


def _raise_if_rejected(result: ValidationResult, *, entry: str, employee_id: int) -> None:
    if result.is_valid:
        return
    logger.info(
        "entry_rejected",
        extra={
            "entry": entry,
            "employee_id": employee_id,
            "rejection": result.primary_kind.value,
            "conflicts": result.conflicts,
        },
    )
    raise ApiError.conflict(result.primary_kind.value, result.conflicts)


def _commit(db: Session, *, operation: str, duplicate_message: str | None = None) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if duplicate_message is None:
            raise StorageUnavailableError(
                "Scrittura rifiutata dall'archivio presenze.",
                operation=operation,
            ) from exc
        raise ApiError(
            status_code=409,
            code=RejectionKind.DUPLICATE_ENTRY.value,
            message=duplicate_message,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("entry_write_failed", extra={"operation": operation})
        raise StorageUnavailableError(
            "Archivio presenze non raggiungibile: operazione non salvata.",
            operation=operation,
        ) from exc


def _get_or_404(db: Session, model, entity_id: int, *, code: str, message: str):
    try:
        entity = db.get(model, entity_id)
    except SQLAlchemyError as exc:
        raise StorageUnavailableError(
            "Archivio presenze non raggiungibile.",
            operation=f"get_{model.__tablename__}",
        ) from exc
    if entity is None:
        raise ApiError.not_found(code, message)
    return entity


def _delete(db: Session, entity, *, operation: str) -> None:
    db.delete(entity)
    _commit(db, operation=operation)
    logger.info("entry_deleted", extra={"operation": operation, "entity_id": entity.id})


def _local_instant(day: date, value: time | None) -> datetime | None:
    if value is None:
        return None
    return datetime.combine(day, value, tzinfo=attendance_timezone()).astimezone(timezone.utc)


def create_sick_leave(db: Session, payload: SickLeaveCreate) -> SickLeave:
    end_date = payload.end_date or payload.start_date
    timeline = _load_existing_employee_timeline(db, payload.employee_id)
    result = validate_sick_leave_range(timeline, payload.start_date, end_date)
    _raise_if_rejected(result, entry="sick_leave", employee_id=payload.employee_id)

    sick_leave = SickLeave(
        employee_id=payload.employee_id,
        start_date=payload.start_date,
        end_date=end_date,
        reference_code=payload.reference_code,
        notes=payload.notes,
    )
    db.add(sick_leave)
    _commit(db, operation="create_sick_leave")
    db.refresh(sick_leave)
    logger.info(
        "sick_leave_created",
        extra={"employee_id": payload.employee_id, "sick_leave_id": sick_leave.id},
    )
    return sick_leave


def delete_sick_leave(db: Session, sick_leave_id: int) -> None:
    sick_leave = _get_or_404(
        db, SickLeave, sick_leave_id, code="SICK_LEAVE_NOT_FOUND", message="Malattia non trovata."
    )
    _delete(db, sick_leave, operation="delete_sick_leave")


def create_manual_attendance(
    db: Session,
    payload: ManualAttendanceCreate,
    *,
    created_by: str = "admin",
) -> ManualAttendance:
    timeline = _load_existing_employee_timeline(db, payload.employee_id)
    result = validate_attendance_entry(timeline, payload.day_date)
    _raise_if_rejected(result, entry="manual_attendance", employee_id=payload.employee_id)

    manual = ManualAttendance(
        employee_id=payload.employee_id,
        day_date=payload.day_date,
        check_in_time=payload.check_in_time,
        check_out_time=payload.check_out_time,
        notes=payload.notes,
        created_by=created_by,
    )
    projection = AttendanceRecord(
        employee_id=payload.employee_id,
        day_date=payload.day_date,
        check_in_at=_local_instant(payload.day_date, payload.check_in_time),
        check_out_at=_local_instant(payload.day_date, payload.check_out_time),
        is_manual=True,
        is_business_trip=False,
        is_sick_leave=False,
        is_late=False,
        late_minutes=0,
        entry_kind=EntryKind.MANUAL,
        notes=payload.notes,
    )
    db.add(manual)
    db.add(projection)
    _commit(
        db,
        operation="create_manual_attendance",
        duplicate_message="Presenza già registrata per questa data.",
    )
    db.refresh(manual)
    logger.info(
        "manual_attendance_created",
        extra={"employee_id": payload.employee_id, "manual_attendance_id": manual.id},
    )
    return manual


def delete_manual_attendance(db: Session, manual_attendance_id: int) -> None:
    manual = _get_or_404(
        db,
        ManualAttendance,
        manual_attendance_id,
        code="MANUAL_ATTENDANCE_NOT_FOUND",
        message="Presenza manuale non trovata.",
    )
    try:
        projection = db.scalar(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == manual.employee_id,
                AttendanceRecord.day_date == manual.day_date,
                AttendanceRecord.is_manual.is_(True),
            )
        )
    except SQLAlchemyError as exc:
        raise StorageUnavailableError(
            "Archivio presenze non raggiungibile.",
            operation="delete_manual_attendance",
        ) from exc
    if projection is not None:
        db.delete(projection)
    _delete(db, manual, operation="delete_manual_attendance")


def delete_attendance_record(db: Session, record_id: int) -> None:
    record = _get_or_404(
        db, AttendanceRecord, record_id, code="ATTENDANCE_NOT_FOUND", message="Presenza non trovata."
    )
    if record.is_manual or record.entry_kind == EntryKind.MANUAL:
        # The projection and its manual row are removed together.
        try:
            manual = db.scalar(
                select(ManualAttendance).where(
                    ManualAttendance.employee_id == record.employee_id,
                    ManualAttendance.day_date == record.day_date,
                )
            )
        except SQLAlchemyError as exc:
            raise StorageUnavailableError(
                "Archivio presenze non raggiungibile.",
                operation="delete_attendance_record",
            ) from exc
        if manual is not None:
            db.delete(manual)
    _delete(db, record, operation="delete_attendance_record")


def _validate_leave_request(timeline: EmployeeTimeline, leave: LeaveRequest | LeaveRequestCreate) -> ValidationResult:
    if leave.type == LeaveKind.FERIE:
        return validate_vacation_range(timeline, leave.date_from, leave.date_to)
    return validate_permission(timeline, leave.day, leave.time_from, leave.time_to)


def create_leave_request(db: Session, payload: LeaveRequestCreate) -> LeaveRequest:
    timeline = _load_existing_employee_timeline(db, payload.employee_id)
    result = _validate_leave_request(timeline, payload)
    _raise_if_rejected(result, entry=payload.type.value, employee_id=payload.employee_id)

    leave = LeaveRequest(
        employee_id=payload.employee_id,
        type=payload.type,
        status=RequestStatus.PENDING,
        date_from=payload.date_from,
        date_to=payload.date_to,
        day=payload.day,
        time_from=payload.time_from,
        time_to=payload.time_to,
        note=payload.note,
    )
    db.add(leave)
    _commit(db, operation="create_leave_request")
    db.refresh(leave)
    logger.info(
        "leave_request_created",
        extra={"employee_id": payload.employee_id, "leave_request_id": leave.id, "type": payload.type.value},
    )
    return leave


def _ensure_pending(status: RequestStatus, *, entity: str) -> None:
    if status != RequestStatus.PENDING:
        raise ApiError(
            status_code=409,
            code="INVALID_STATUS_TRANSITION",
            message=f"{entity} già {RequestStatus(status).value}: lo stato non può essere modificato.",
        )


def set_leave_request_status(db: Session, leave_request_id: int, status: RequestStatus) -> LeaveRequest:
    leave = _get_or_404(
        db, LeaveRequest, leave_request_id, code="LEAVE_REQUEST_NOT_FOUND", message="Richiesta non trovata."
    )
    _ensure_pending(leave.status, entity="Richiesta")

    if status == RequestStatus.APPROVED:
        # Other requests may have been approved since this one was filed.
        timeline = load_employee_timeline(db, leave.employee_id)
        result = _validate_leave_request(timeline, leave)
        _raise_if_rejected(result, entry=LeaveKind(leave.type).value, employee_id=leave.employee_id)

    leave.status = status
    leave.reviewed_at = datetime.now(timezone.utc)
    _commit(db, operation="set_leave_request_status")
    db.refresh(leave)
    logger.info(
        "leave_request_reviewed",
        extra={"leave_request_id": leave.id, "employee_id": leave.employee_id, "status": status.value},
    )
    return leave


def delete_leave_request(db: Session, leave_request_id: int) -> None:
    leave = _get_or_404(
        db, LeaveRequest, leave_request_id, code="LEAVE_REQUEST_NOT_FOUND", message="Richiesta non trovata."
    )
    _delete(db, leave, operation="delete_leave_request")


def create_business_trip(db: Session, payload: BusinessTripCreate) -> BusinessTrip:
    if payload.end_date < payload.start_date:
        raise ApiError(
            status_code=422,
            code=RejectionKind.INVALID_RANGE.value,
            message="end_date must be greater than or equal to start_date",
        )
    timeline = _load_existing_employee_timeline(db, payload.employee_id)
    result = ValidationResult()
    check_hire_date(result, timeline, (payload.start_date, payload.end_date))
    _raise_if_rejected(result, entry="business_trip", employee_id=payload.employee_id)

    trip = BusinessTrip(
        employee_id=payload.employee_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        destination=payload.destination,
        status=RequestStatus.PENDING,
        reason=payload.reason,
    )
    db.add(trip)
    _commit(db, operation="create_business_trip")
    db.refresh(trip)
    logger.info("business_trip_created", extra={"employee_id": payload.employee_id, "business_trip_id": trip.id})
    return trip


def set_business_trip_status(db: Session, business_trip_id: int, status: RequestStatus) -> BusinessTrip:
    trip = _get_or_404(
        db, BusinessTrip, business_trip_id, code="BUSINESS_TRIP_NOT_FOUND", message="Trasferta non trovata."
    )
    _ensure_pending(trip.status, entity="Trasferta")

    trip.status = status
    _commit(db, operation="set_business_trip_status")
    db.refresh(trip)
    logger.info(
        "business_trip_reviewed",
        extra={"business_trip_id": trip.id, "employee_id": trip.employee_id, "status": status.value},
    )
    return trip


def delete_business_trip(db: Session, business_trip_id: int) -> None:
    trip = _get_or_404(
        db, BusinessTrip, business_trip_id, code="BUSINESS_TRIP_NOT_FOUND", message="Trasferta non trovata."
    )
    _delete(db, trip, operation="delete_business_trip")
