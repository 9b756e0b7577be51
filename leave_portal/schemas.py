from datetime import date, datetime, time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leave_portal.models import EntryKind, LeaveKind, RequestStatus
from leave_portal.services.attendance_status import DayBlock, DayState
from leave_portal.services.conflict_index import ConflictType, OperationKind, Severity
from leave_portal.services.outcomes import RejectionKind


class RejectionRead(BaseModel):
    kind: RejectionKind
    message: str
    conflict_type: ConflictType | None = None
    severity: Severity

    model_config = ConfigDict(from_attributes=True)


class ValidationResponse(BaseModel):
    is_valid: bool
    conflicts: list[str]
    reasons: list[RejectionRead]

    model_config = ConfigDict(from_attributes=True)


class ConflictDetailRead(BaseModel):
    date: date
    type: ConflictType
    description: str
    severity: Severity

    model_config = ConfigDict(from_attributes=True)


class ConflictSummaryRead(BaseModel):
    total_conflicts: int
    business_trips: int
    vacations: int
    permissions: int
    sick_leaves: int
    attendances: int

    model_config = ConfigDict(from_attributes=True)


class ConflictIndexResponse(BaseModel):
    employee_id: int | None
    operation_kind: OperationKind
    conflict_dates: list[date]
    details: list[ConflictDetailRead]
    summary: ConflictSummaryRead
    generation: int | None = None
    stale: bool = False
    debounce_ms: int


class BlockedDatesResponse(BaseModel):
    employee_ids: list[int]
    purpose: Literal["business_trip", "manual_entry"]
    dates: list[date]


class VacationValidateRequest(BaseModel):
    employee_id: int
    start_date: date
    end_date: date


class PermissionValidateRequest(BaseModel):
    employee_id: int
    day: date
    time_from: time | None = None
    time_to: time | None = None


class SickLeaveValidateRequest(BaseModel):
    employee_id: int
    start_date: date
    end_date: date | None = None


class AttendanceValidateRequest(BaseModel):
    employee_id: int
    day: date


class BulkAttendanceValidateRequest(BaseModel):
    employee_ids: list[int] = Field(min_length=1)
    start_date: date
    end_date: date | None = None


class BulkAttendanceValidateResponse(BaseModel):
    results: dict[int, ValidationResponse]


class PermissionTimeValidateRequest(BaseModel):
    day: date
    time_from: time | None = None
    time_to: time | None = None


class PermissionTimeValidateResponse(BaseModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]


class AttendanceCheckinRequest(BaseModel):
    employee_id: int
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    is_business_trip: bool = False
    business_trip_id: int | None = None


class AttendanceCheckoutRequest(BaseModel):
    employee_id: int
    lat: float | None = Field(default=None, ge=-90, le=90)
    lon: float | None = Field(default=None, ge=-180, le=180)


class AttendanceRecordRead(BaseModel):
    id: int
    employee_id: int
    day_date: date
    check_in_at: datetime | None
    check_out_at: datetime | None
    is_manual: bool
    is_business_trip: bool
    is_sick_leave: bool
    is_late: bool
    late_minutes: int
    entry_kind: EntryKind | None
    notes: str | None

    model_config = ConfigDict(from_attributes=True)


class AttendanceActionResponse(BaseModel):
    ok: bool
    record: AttendanceRecordRead
    is_late: bool = False
    late_minutes: int = 0
    distance_m: int | None = None


class EmployeeTodayStatusResponse(BaseModel):
    employee_id: int
    day: date
    state: DayState
    block: DayBlock | None
    can_check_in: bool
    can_check_out: bool
    reason: str | None
    entry_kind: EntryKind | None
    record: AttendanceRecordRead | None


class SickLeaveCreate(BaseModel):
    employee_id: int
    start_date: date
    end_date: date | None = None
    reference_code: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=1000)


class SickLeaveRead(BaseModel):
    id: int
    employee_id: int
    start_date: date
    end_date: date
    reference_code: str | None
    notes: str | None

    model_config = ConfigDict(from_attributes=True)


class ManualAttendanceCreate(BaseModel):
    employee_id: int
    day_date: date
    check_in_time: time | None = None
    check_out_time: time | None = None
    notes: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def validate_times(self) -> "ManualAttendanceCreate":
        if self.check_in_time and self.check_out_time and self.check_out_time <= self.check_in_time:
            raise ValueError("check_out_time must be after check_in_time")
        return self


class ManualAttendanceRead(BaseModel):
    id: int
    employee_id: int
    day_date: date
    check_in_time: time | None
    check_out_time: time | None
    notes: str | None
    created_by: str

    model_config = ConfigDict(from_attributes=True)


class LeaveRequestCreate(BaseModel):
    employee_id: int
    type: LeaveKind
    date_from: date | None = None
    date_to: date | None = None
    day: date | None = None
    time_from: time | None = None
    time_to: time | None = None
    note: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def validate_shape(self) -> "LeaveRequestCreate":
        if self.type == LeaveKind.FERIE:
            if self.date_from is None or self.date_to is None:
                raise ValueError("date_from and date_to are required for ferie")
            if self.day is not None or self.time_from is not None or self.time_to is not None:
                raise ValueError("day and times are only allowed for permesso")
            return self

        if self.day is None:
            raise ValueError("day is required for permesso")
        if self.date_from is not None or self.date_to is not None:
            raise ValueError("date_from and date_to are only allowed for ferie")
        if (self.time_from is None) != (self.time_to is None):
            raise ValueError("time_from and time_to must be provided together")
        if self.time_from is not None and self.time_to is not None and self.time_from >= self.time_to:
            raise ValueError("time_to must be after time_from")
        return self


class LeaveRequestRead(BaseModel):
    id: int
    employee_id: int
    type: LeaveKind
    status: RequestStatus
    date_from: date | None
    date_to: date | None
    day: date | None
    time_from: time | None
    time_to: time | None
    note: str | None

    model_config = ConfigDict(from_attributes=True)


class RequestStatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]


class BusinessTripCreate(BaseModel):
    employee_id: int
    start_date: date
    end_date: date
    destination: str = Field(min_length=1, max_length=255)
    reason: str | None = Field(default=None, max_length=1000)


class BusinessTripRead(BaseModel):
    id: int
    employee_id: int
    start_date: date
    end_date: date
    destination: str
    status: RequestStatus
    reason: str | None

    model_config = ConfigDict(from_attributes=True)


class WorkScheduleUpsertRequest(BaseModel):
    start_time: time
    end_time: time
    tolerance_minutes: int = Field(default=10, ge=0, le=240)
    monday: bool = True
    tuesday: bool = True
    wednesday: bool = True
    thursday: bool = True
    friday: bool = True
    saturday: bool = False
    sunday: bool = False

    @model_validator(mode="after")
    def validate_hours(self) -> "WorkScheduleUpsertRequest":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class WorkScheduleRead(BaseModel):
    id: int
    start_time: time
    end_time: time
    tolerance_minutes: int
    monday: bool
    tuesday: bool
    wednesday: bool
    thursday: bool
    friday: bool
    saturday: bool
    sunday: bool
    working_day_labels: list[str] = []

    model_config = ConfigDict(from_attributes=True)


class AttendanceSettingsUpsertRequest(BaseModel):
    company_latitude: float | None = Field(default=None, ge=-90, le=90)
    company_longitude: float | None = Field(default=None, ge=-180, le=180)
    attendance_radius_meters: int | None = Field(default=None, ge=1)
    checkout_enabled: bool = True

    @model_validator(mode="after")
    def validate_coordinates(self) -> "AttendanceSettingsUpsertRequest":
        if (self.company_latitude is None) != (self.company_longitude is None):
            raise ValueError("company_latitude and company_longitude must be provided together")
        return self


class AttendanceSettingsRead(BaseModel):
    id: int
    company_latitude: float | None
    company_longitude: float | None
    attendance_radius_meters: int
    checkout_enabled: bool

    model_config = ConfigDict(from_attributes=True)


class WorkingDaysResponse(BaseModel):
    start_date: date
    end_date: date
    employee_id: int | None = None
    schedule_configured: bool
    working_days: list[date]
    count: int
    working_hours: dict[str, Any] | None = None
