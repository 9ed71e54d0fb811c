"""Exclude overlapping occupying bookings on PostgreSQL

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19 14:00:00

"""
from alembic import op

from slotbook.models.booking import BOOKING_OVERLAP_CONSTRAINT, BOOKING_OVERLAP_EXTENSION


# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute(BOOKING_OVERLAP_EXTENSION)
    op.execute(BOOKING_OVERLAP_CONSTRAINT)


def downgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_no_overlap")
