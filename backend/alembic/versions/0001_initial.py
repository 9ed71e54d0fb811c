"""Initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 10:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

booking_status = sa.Enum("PENDING", "CONFIRMED", "CANCELLED", "NOSHOW", name="bookingstatus")


def upgrade() -> None:
    op.create_table(
        "providers",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("timezone", sa.String(50)),
        sa.Column("is_active", sa.Boolean()),
        sa.Column("requires_confirmation", sa.Boolean()),
        sa.Column("default_buffer_time", sa.Integer()),
        sa.Column("slot_interval", sa.Integer()),
        sa.Column("min_booking_notice_minutes", sa.Integer()),
        sa.Column("max_booking_advance_days", sa.Integer()),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    
    op.create_table(
        "locations",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("provider_id", sa.String(64), sa.ForeignKey("providers.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500)),
        sa.Column("is_active", sa.Boolean()),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_index("ix_locations_provider_id", "locations", ["provider_id"])
    
    op.create_table(
        "members",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("provider_id", sa.String(64), sa.ForeignKey("providers.id"), nullable=False),
        sa.Column("location_id", sa.String(64), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean()),
        sa.Column("is_default", sa.Boolean()),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_index("ix_members_provider_id", "members", ["provider_id"])
    
    op.create_table(
        "services",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("provider_id", sa.String(64), sa.ForeignKey("providers.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("buffer_time", sa.Integer()),
        sa.Column("is_active", sa.Boolean()),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_index("ix_services_provider_id", "services", ["provider_id"])
    
    op.create_table(
        "availability",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("provider_id", sa.String(64), nullable=False),
        sa.Column("location_id", sa.String(64), nullable=False),
        sa.Column("member_id", sa.String(64)),
        sa.Column("calendar_key", sa.String(140), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("is_open", sa.Boolean(), nullable=False),
        sa.Column("windows", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
        sa.UniqueConstraint(
            "provider_id", "calendar_key", "day_of_week",
            name="uq_availability_calendar_day",
        ),
    )
    
    op.create_table(
        "blocked_periods",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("provider_id", sa.String(64), nullable=False),
        sa.Column("location_id", sa.String(64)),
        sa.Column("member_id", sa.String(64)),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("all_day", sa.Boolean(), nullable=False),
        sa.Column("start_time", sa.String(5)),
        sa.Column("end_time", sa.String(5)),
        sa.Column("reason", sa.String(200)),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_index(
        "ix_blocked_periods_provider_range",
        "blocked_periods",
        ["provider_id", "start_date", "end_date"],
    )
    
    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("provider_id", sa.String(64), nullable=False),
        sa.Column("location_id", sa.String(64), nullable=False),
        sa.Column("member_id", sa.String(64)),
        sa.Column("calendar_key", sa.String(140), nullable=False),
        sa.Column("service_id", sa.String(64), nullable=False),
        sa.Column("client_id", sa.String(64)),
        sa.Column("client_name", sa.String(100)),
        sa.Column("client_email", sa.String(255)),
        sa.Column("client_phone", sa.String(30)),
        sa.Column("notes", sa.Text()),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("ends_at", sa.DateTime(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("status", booking_status, nullable=False),
        sa.Column("cancel_token", sa.String(64), nullable=False, unique=True),
        sa.Column("idempotency_key", sa.String(100), unique=True),
        sa.Column("cancelled_at", sa.DateTime()),
        sa.Column("cancelled_by", sa.String(20)),
        sa.Column("cancel_reason", sa.String(200)),
        sa.Column("confirmed_at", sa.DateTime()),
        sa.Column("no_show_at", sa.DateTime()),
        sa.Column("rescheduled_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    # One occupying booking per calendar start
    op.create_index(
        "ix_bookings_unique_slot",
        "bookings",
        ["provider_id", "calendar_key", "starts_at"],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'CONFIRMED')"),
        sqlite_where=sa.text("status IN ('PENDING', 'CONFIRMED')"),
    )
    op.create_index(
        "ix_bookings_calendar_range",
        "bookings",
        ["provider_id", "calendar_key", "starts_at", "ends_at"],
    )
    
    op.create_table(
        "booking_status_history",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("booking_id", sa.Uuid(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("from_status", sa.String(20)),
        sa.Column("to_status", sa.String(20), nullable=False),
        sa.Column("changed_by", sa.String(20)),
        sa.Column("reason", sa.Text()),
        sa.Column("created_at", sa.DateTime()),
    )


def downgrade() -> None:
    op.drop_table("booking_status_history")
    op.drop_index("ix_bookings_calendar_range", table_name="bookings")
    op.drop_index("ix_bookings_unique_slot", table_name="bookings")
    op.drop_table("bookings")
    booking_status.drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_blocked_periods_provider_range", table_name="blocked_periods")
    op.drop_table("blocked_periods")
    op.drop_table("availability")
    op.drop_index("ix_services_provider_id", table_name="services")
    op.drop_table("services")
    op.drop_index("ix_members_provider_id", table_name="members")
    op.drop_table("members")
    op.drop_index("ix_locations_provider_id", table_name="locations")
    op.drop_table("locations")
    op.drop_table("providers")
