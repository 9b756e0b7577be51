"""Initial leave portal schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

tracking_start_type = postgresql.ENUM(
    "from_hire_date",
    "from_year_start",
    name="tracking_start_type",
    create_type=False,
)

leave_kind = postgresql.ENUM(
    "ferie",
    "permesso",
    name="leave_kind",
    create_type=False,
)

request_status = postgresql.ENUM(
    "pending",
    "approved",
    "rejected",
    name="request_status",
    create_type=False,
)

entry_kind = postgresql.ENUM(
    "presence",
    "business_trip",
    "sick_leave",
    "vacation",
    "permission",
    "manual",
    name="entry_kind",
    create_type=False,
)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    bind = op.get_bind()
    tracking_start_type.create(bind, checkfirst=True)
    leave_kind.create(bind, checkfirst=True)
    request_status.create(bind, checkfirst=True)
    entry_kind.create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("hire_date", sa.Date(), nullable=True),
        sa.Column(
            "tracking_start_type",
            tracking_start_type,
            nullable=False,
            server_default=sa.text("'from_hire_date'"),
        ),
    )

    op.create_table(
        "work_schedules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("tolerance_minutes", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("monday", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("tuesday", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("wednesday", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("thursday", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("friday", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("saturday", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("sunday", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )

    op.create_table(
        "attendance_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_latitude", sa.Float(), nullable=True),
        sa.Column("company_longitude", sa.Float(), nullable=True),
        sa.Column("attendance_radius_meters", sa.Integer(), nullable=False, server_default=sa.text("500")),
        sa.Column("checkout_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )

    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("type", leave_kind, nullable=False),
        sa.Column("status", request_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("date_from", sa.Date(), nullable=True),
        sa.Column("date_to", sa.Date(), nullable=True),
        sa.Column("day", sa.Date(), nullable=True),
        sa.Column("time_from", sa.Time(), nullable=True),
        sa.Column("time_to", sa.Time(), nullable=True),
        sa.Column("note", sa.String(length=1000), nullable=True),
        _created_at(),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_leave_requests_employee_id", "leave_requests", ["employee_id"], unique=False)

    op.create_table(
        "sick_leaves",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reference_code", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_sick_leaves_employee_id", "sick_leaves", ["employee_id"], unique=False)

    op.create_table(
        "business_trips",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("destination", sa.String(length=255), nullable=False),
        sa.Column("status", request_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_business_trips_employee_id", "business_trips", ["employee_id"], unique=False)

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("check_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_in_lat", sa.Float(), nullable=True),
        sa.Column("check_in_lon", sa.Float(), nullable=True),
        sa.Column("check_out_lat", sa.Float(), nullable=True),
        sa.Column("check_out_lon", sa.Float(), nullable=True),
        sa.Column("is_manual", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_business_trip", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_sick_leave", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_late", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("late_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("entry_kind", entry_kind, nullable=True),
        sa.Column("business_trip_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["business_trip_id"], ["business_trips.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("employee_id", "day_date", name="uq_attendance_records_employee_date"),
    )
    op.create_index("ix_attendance_records_employee_id", "attendance_records", ["employee_id"], unique=False)
    op.create_index("ix_attendance_records_day_date", "attendance_records", ["day_date"], unique=False)

    op.create_table(
        "manual_attendances",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("check_in_time", sa.Time(), nullable=True),
        sa.Column("check_out_time", sa.Time(), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "day_date", name="uq_manual_attendances_employee_date"),
    )
    op.create_index("ix_manual_attendances_employee_id", "manual_attendances", ["employee_id"], unique=False)
    op.create_index("ix_manual_attendances_day_date", "manual_attendances", ["day_date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_manual_attendances_day_date", table_name="manual_attendances")
    op.drop_index("ix_manual_attendances_employee_id", table_name="manual_attendances")
    op.drop_table("manual_attendances")
    op.drop_index("ix_attendance_records_day_date", table_name="attendance_records")
    op.drop_index("ix_attendance_records_employee_id", table_name="attendance_records")
    op.drop_table("attendance_records")
    op.drop_index("ix_business_trips_employee_id", table_name="business_trips")
    op.drop_table("business_trips")
    op.drop_index("ix_sick_leaves_employee_id", table_name="sick_leaves")
    op.drop_table("sick_leaves")
    op.drop_index("ix_leave_requests_employee_id", table_name="leave_requests")
    op.drop_table("leave_requests")
    op.drop_table("attendance_settings")
    op.drop_table("work_schedules")
    op.drop_table("employees")

    bind = op.get_bind()
    entry_kind.drop(bind, checkfirst=True)
    request_status.drop(bind, checkfirst=True)
    leave_kind.drop(bind, checkfirst=True)
    tracking_start_type.drop(bind, checkfirst=True)
