from __future__ import annotations

import enum
from datetime import date, datetime, time, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leave_portal.db import Base


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class TrackingStartType(str, enum.Enum):
    FROM_HIRE_DATE = "from_hire_date"
    FROM_YEAR_START = "from_year_start"


class LeaveKind(str, enum.Enum):
    FERIE = "ferie"
    PERMESSO = "permesso"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EntryKind(str, enum.Enum):
    PRESENCE = "presence"
    BUSINESS_TRIP = "business_trip"
    SICK_LEAVE = "sick_leave"
    VACATION = "vacation"
    PERMISSION = "permission"
    MANUAL = "manual"


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    tracking_start_type: Mapped[TrackingStartType] = mapped_column(
        Enum(TrackingStartType, name="tracking_start_type", values_callable=_enum_values),
        nullable=False,
        default=TrackingStartType.FROM_HIRE_DATE,
        server_default=text("'from_hire_date'"),
    )

    leave_requests: Mapped[list[LeaveRequest]] = relationship(back_populates="employee")
    sick_leaves: Mapped[list[SickLeave]] = relationship(back_populates="employee")
    business_trips: Mapped[list[BusinessTrip]] = relationship(back_populates="employee")
    attendance_records: Mapped[list[AttendanceRecord]] = relationship(back_populates="employee")
    manual_attendances: Mapped[list[ManualAttendance]] = relationship(back_populates="employee")


class WorkSchedule(Base):
    __tablename__ = "work_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False, default=time(9, 0))
    end_time: Mapped[time] = mapped_column(Time, nullable=False, default=time(18, 0))
    tolerance_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=10, server_default=text("10"))
    monday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    tuesday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    wednesday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    thursday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    friday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    saturday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    sunday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class AttendanceSettings(Base):
    __tablename__ = "attendance_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    company_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    attendance_radius_meters: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=500,
        server_default=text("500"),
    )
    checkout_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[LeaveKind] = mapped_column(
        Enum(LeaveKind, name="leave_kind", values_callable=_enum_values),
        nullable=False,
    )
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name="request_status", values_callable=_enum_values),
        nullable=False,
        default=RequestStatus.PENDING,
        server_default=text("'pending'"),
    )
    date_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    day: Mapped[date | None] = mapped_column(Date, nullable=True)
    time_from: Mapped[time | None] = mapped_column(Time, nullable=True)
    time_to: Mapped[time | None] = mapped_column(Time, nullable=True)
    note: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    employee: Mapped[Employee] = relationship(back_populates="leave_requests")

    @property
    def is_full_day_permission(self) -> bool:
        return self.time_from is None or self.time_to is None


class SickLeave(Base):
    __tablename__ = "sick_leaves"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reference_code: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employee: Mapped[Employee] = relationship(back_populates="sick_leaves")


class BusinessTrip(Base):
    __tablename__ = "business_trips"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name="request_status", values_callable=_enum_values),
        nullable=False,
        default=RequestStatus.PENDING,
        server_default=text("'pending'"),
    )
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employee: Mapped[Employee] = relationship(back_populates="business_trips")


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (UniqueConstraint("employee_id", "day_date", name="uq_attendance_records_employee_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    day_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_in_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    check_in_lon: Mapped[float | None] = mapped_column(Float, nullable=True)
    check_out_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    check_out_lon: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_business_trip: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_sick_leave: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_late: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    entry_kind: Mapped[EntryKind | None] = mapped_column(
        Enum(EntryKind, name="entry_kind", values_callable=_enum_values),
        nullable=True,
    )
    business_trip_id: Mapped[int | None] = mapped_column(
        ForeignKey("business_trips.id", ondelete="SET NULL"),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employee: Mapped[Employee] = relationship(back_populates="attendance_records")


class ManualAttendance(Base):
    __tablename__ = "manual_attendances"
    __table_args__ = (UniqueConstraint("employee_id", "day_date", name="uq_manual_attendances_employee_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    day_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_in_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    check_out_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, default="admin")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employee: Mapped[Employee] = relationship(back_populates="manual_attendances")
