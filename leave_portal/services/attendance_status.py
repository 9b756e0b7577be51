from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from leave_portal.errors import ApiError, StorageUnavailableError
from leave_portal.models import AttendanceRecord, AttendanceSettings, BusinessTrip, EntryKind, WorkSchedule
from leave_portal.services.company_config import get_attendance_settings, get_work_schedule
from leave_portal.services.conflict_index import ConflictType
from leave_portal.services.geofence import GeofenceResult, validate_geofence
from leave_portal.services.lateness import NOT_LATE, LatenessResult, compute_lateness
from leave_portal.services.local_time import now_utc, to_local_wall_clock
from leave_portal.services.outcomes import Rejection, RejectionKind, ValidationResult
from leave_portal.services.timeline import EmployeeTimeline, load_employee_timeline, resolve_entry_kind

logger = logging.getLogger("leave_portal.attendance_status")

BLOCKED_PREFIX = "Non è possibile registrare presenza: "


class DayState(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"


class DayBlock(str, enum.Enum):
    ON_SICK_LEAVE = "ON_SICK_LEAVE"
    ON_VACATION = "ON_VACATION"
    ON_PERMISSION = "ON_PERMISSION"
    ON_HOURLY_PERMISSION = "ON_HOURLY_PERMISSION"
    ON_BUSINESS_TRIP = "ON_BUSINESS_TRIP"


@dataclass
class CheckInDecision:
    result: ValidationResult = field(default_factory=ValidationResult)
    lateness: LatenessResult = NOT_LATE
    geofence: GeofenceResult | None = None
    business_trip: BusinessTrip | None = None

    @property
    def allowed(self) -> bool:
        return self.result.is_valid

    @property
    def reason(self) -> str | None:
        conflicts = self.result.conflicts
        return conflicts[0] if conflicts else None


@dataclass
class AttendanceActionOutcome:
    decision: CheckInDecision
    record: AttendanceRecord | None = None


@dataclass
class TodayStatus:
    employee_id: int
    day: date
    state: DayState
    block: DayBlock | None
    can_check_in: bool
    can_check_out: bool
    reason: str | None
    record: AttendanceRecord | None
    entry_kind: EntryKind | None


def _fmt(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def _today_record(timeline: EmployeeTimeline, today: date) -> AttendanceRecord | None:
    for record in timeline.attendance_records:
        if record.day_date == today:
            return record
    return None


def _covering_business_trip(
    timeline: EmployeeTimeline,
    today: date,
    business_trip_id: int | None,
) -> BusinessTrip | None:
    for trip in timeline.approved_business_trips:
        if not trip.start_date <= today <= trip.end_date:
            continue
        if business_trip_id is None or trip.id == business_trip_id:
            return trip
    return None


def _day_state(record: AttendanceRecord | None) -> DayState:
    if record is None or record.check_in_at is None:
        return DayState.NOT_STARTED
    if record.check_out_at is None:
        return DayState.CHECKED_IN
    return DayState.CHECKED_OUT


def evaluate_day_guards(timeline: EmployeeTimeline, now_local: datetime) -> tuple[Rejection | None, DayBlock | None]:
    """Apply the check-in guards that depend only on stored entities, first failure wins."""
    today = now_local.date()

    for sick_leave in timeline.sick_leaves:
        if sick_leave.start_date <= today <= sick_leave.end_date:
            message = (
                f"{BLOCKED_PREFIX}il dipendente è in malattia dal {_fmt(sick_leave.start_date)} "
                f"al {_fmt(sick_leave.end_date)} (Codice: {sick_leave.reference_code or 'N/A'})"
            )
            return Rejection(RejectionKind.TEMPORAL_CONFLICT, message, ConflictType.SICK_LEAVE), DayBlock.ON_SICK_LEAVE

    for vacation in timeline.approved_vacations:
        if vacation.date_from <= today <= vacation.date_to:
            message = (
                f"{BLOCKED_PREFIX}il dipendente è in ferie dal {_fmt(vacation.date_from)} "
                f"al {_fmt(vacation.date_to)}"
            )
            return Rejection(RejectionKind.TEMPORAL_CONFLICT, message, ConflictType.VACATION), DayBlock.ON_VACATION

    todays_permissions = [item for item in timeline.approved_permissions if item.day == today]
    for permission in todays_permissions:
        if permission.is_full_day_permission:
            message = f"{BLOCKED_PREFIX}il dipendente ha un permesso giornaliero"
            return Rejection(RejectionKind.TEMPORAL_CONFLICT, message, ConflictType.PERMISSION), DayBlock.ON_PERMISSION

    for permission in todays_permissions:
        # Blocked until the permission window has elapsed.
        if now_local.time() <= permission.time_to:
            message = (
                f"{BLOCKED_PREFIX}il dipendente ha un permesso orario attivo dalle "
                f"{permission.time_from.strftime('%H:%M')} alle {permission.time_to.strftime('%H:%M')}"
            )
            return (
                Rejection(RejectionKind.TEMPORAL_CONFLICT, message, ConflictType.PERMISSION),
                DayBlock.ON_HOURLY_PERMISSION,
            )

    record = _today_record(timeline, today)
    if record is not None and (
        record.check_in_at is not None
        or (
            not record.is_sick_leave
            and not record.is_business_trip
            and resolve_entry_kind(record) != EntryKind.BUSINESS_TRIP
        )
    ):
        message = f"{BLOCKED_PREFIX}presenza già registrata per questa data"
        return Rejection(RejectionKind.DUPLICATE_ENTRY, message, ConflictType.ATTENDANCE), None

    return None, None


def evaluate_check_in(
    timeline: EmployeeTimeline,
    *,
    now: datetime,
    lat: float,
    lon: float,
    is_business_trip: bool,
    schedule: WorkSchedule | None,
    settings_row: AttendanceSettings | None,
    business_trip_id: int | None = None,
) -> CheckInDecision:
    decision = CheckInDecision()
    now_local = to_local_wall_clock(now)
    rejection, _ = evaluate_day_guards(timeline, now_local)
    if rejection is not None:
        decision.result.reasons.append(rejection)
        return decision

    if is_business_trip:
        decision.business_trip = _covering_business_trip(timeline, now_local.date(), business_trip_id)
        if decision.business_trip is None:
            decision.result.reject(
                RejectionKind.GEOFENCE_VIOLATION,
                f"Nessuna trasferta approvata per il {_fmt(now_local.date())}: "
                "la posizione deve rientrare nell'area aziendale.",
                ConflictType.BUSINESS_TRIP,
            )
            return decision

    decision.geofence = validate_geofence(
        lat,
        lon,
        settings_row,
        is_business_trip=decision.business_trip is not None,
    )
    if not decision.geofence.is_valid:
        decision.result.reject(
            RejectionKind.GEOFENCE_VIOLATION,
            decision.geofence.message or "Posizione non valida",
        )
        return decision

    decision.lateness = compute_lateness(now, schedule)
    return decision


def _require_employee(timeline: EmployeeTimeline) -> None:
    employee = timeline.employee
    if employee is None:
        raise ApiError.not_found("EMPLOYEE_NOT_FOUND", "Dipendente non trovato.")
    if employee.is_active is False:
        raise ApiError(
            status_code=403,
            code="EMPLOYEE_INACTIVE",
            message="Un dipendente non attivo non può registrare presenze.",
        )


def _commit_or_rollback(db: Session, *, operation: str) -> bool:
    """Commit the pending write. False means a uniqueness race was lost."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("attendance_write_failed", extra={"operation": operation})
        raise StorageUnavailableError(
            "Archivio presenze non raggiungibile: registrazione non salvata.",
            operation=operation,
        ) from exc
    return True


def check_in(
    db: Session,
    *,
    employee_id: int,
    lat: float,
    lon: float,
    is_business_trip: bool = False,
    business_trip_id: int | None = None,
    now: datetime | None = None,
) -> AttendanceActionOutcome:
    instant = now or now_utc()
    timeline = load_employee_timeline(db, employee_id)
    _require_employee(timeline)

    decision = evaluate_check_in(
        timeline,
        now=instant,
        lat=lat,
        lon=lon,
        is_business_trip=is_business_trip,
        schedule=get_work_schedule(db),
        settings_row=get_attendance_settings(db),
        business_trip_id=business_trip_id,
    )
    if not decision.allowed:
        logger.info(
            "check_in_rejected",
            extra={
                "employee_id": employee_id,
                "rejection": decision.result.primary_kind.value,
                "reason": decision.reason,
            },
        )
        return AttendanceActionOutcome(decision=decision)

    today = to_local_wall_clock(instant).date()
    record = _today_record(timeline, today)
    if record is None:
        record = AttendanceRecord(employee_id=employee_id, day_date=today)
        db.add(record)

    record.check_in_at = instant
    record.check_in_lat = lat
    record.check_in_lon = lon
    record.is_manual = False
    on_trip = decision.business_trip is not None
    record.is_business_trip = on_trip
    record.is_sick_leave = False
    record.business_trip_id = decision.business_trip.id if on_trip else None
    record.is_late = decision.lateness.is_late
    record.late_minutes = decision.lateness.late_minutes
    record.entry_kind = EntryKind.BUSINESS_TRIP if on_trip else EntryKind.PRESENCE

    if not _commit_or_rollback(db, operation="check_in"):
        decision.result.reject(
            RejectionKind.DUPLICATE_ENTRY,
            f"{BLOCKED_PREFIX}presenza già registrata per questa data",
            ConflictType.ATTENDANCE,
        )
        logger.info("check_in_rejected", extra={"employee_id": employee_id, "rejection": "DUPLICATE_ENTRY"})
        return AttendanceActionOutcome(decision=decision)

    db.refresh(record)
    logger.info(
        "check_in_recorded",
        extra={
            "employee_id": employee_id,
            "record_id": record.id,
            "business_trip_id": record.business_trip_id,
            "is_late": decision.lateness.is_late,
            "late_minutes": decision.lateness.late_minutes,
        },
    )
    return AttendanceActionOutcome(decision=decision, record=record)


def check_out(
    db: Session,
    *,
    employee_id: int,
    lat: float | None = None,
    lon: float | None = None,
    now: datetime | None = None,
) -> AttendanceActionOutcome:
    instant = now or now_utc()
    timeline = load_employee_timeline(db, employee_id)
    _require_employee(timeline)
    decision = CheckInDecision()

    settings_row = get_attendance_settings(db)
    if settings_row is not None and settings_row.checkout_enabled is False:
        decision.result.reject(RejectionKind.CHECKOUT_DISABLED, "Il check-out è disabilitato dall'amministratore.")
        return AttendanceActionOutcome(decision=decision)

    today = to_local_wall_clock(instant).date()
    record = _today_record(timeline, today)
    state = _day_state(record)
    if state == DayState.NOT_STARTED:
        decision.result.reject(RejectionKind.CHECKIN_REQUIRED, "Nessun check-in registrato per oggi.")
        return AttendanceActionOutcome(decision=decision)
    if state == DayState.CHECKED_OUT:
        decision.result.reject(RejectionKind.ALREADY_CHECKED_OUT, "Check-out già registrato per oggi.")
        return AttendanceActionOutcome(decision=decision)

    record.check_out_at = instant
    record.check_out_lat = lat
    record.check_out_lon = lon
    if not _commit_or_rollback(db, operation="check_out"):
        decision.result.reject(
            RejectionKind.ALREADY_CHECKED_OUT,
            "Check-out non salvato: la presenza di oggi è stata modificata da un'altra operazione.",
        )
        logger.info("check_out_rejected", extra={"employee_id": employee_id, "record_id": record.id})
        return AttendanceActionOutcome(decision=decision)

    db.refresh(record)
    logger.info("check_out_recorded", extra={"employee_id": employee_id, "record_id": record.id})
    return AttendanceActionOutcome(decision=decision, record=record)


def get_today_status(db: Session, *, employee_id: int, now: datetime | None = None) -> TodayStatus:
    instant = now or now_utc()
    now_local = to_local_wall_clock(instant)
    today = now_local.date()

    timeline = load_employee_timeline(db, employee_id)
    _require_employee(timeline)
    settings_row = get_attendance_settings(db)

    record = _today_record(timeline, today)
    state = _day_state(record)
    rejection, block = evaluate_day_guards(timeline, now_local)
    if block is None and any(
        trip.start_date <= today <= trip.end_date for trip in timeline.approved_business_trips
    ):
        block = DayBlock.ON_BUSINESS_TRIP

    checkout_enabled = settings_row is None or settings_row.checkout_enabled is not False
    return TodayStatus(
        employee_id=employee_id,
        day=today,
        state=state,
        block=block,
        can_check_in=state == DayState.NOT_STARTED and rejection is None,
        can_check_out=state == DayState.CHECKED_IN and checkout_enabled,
        reason=rejection.message if rejection is not None else None,
        record=record,
        entry_kind=resolve_entry_kind(record) if record is not None else None,
    )
