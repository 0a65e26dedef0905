"""Initial schema: ambulance drivers and transport requests.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

REQUEST_STATUSES = ("pending", "accepted", "en-route", "arrived", "completed", "cancelled")
PRIORITIES = ("low", "medium", "high", "critical")


def upgrade() -> None:
    # ── ambulance_drivers ─────────────────────────────────────────────
    op.create_table(
        "ambulance_drivers",
        sa.Column("driver_ref", sa.String(64), primary_key=True),
        sa.Column("display_name", sa.String(120), nullable=True),
        sa.Column("vehicle_registration", sa.String(32), nullable=True),
        sa.Column("vehicle_type", sa.String(32), nullable=True),
        sa.Column("is_available", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("current_location", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_drivers_available", "ambulance_drivers", ["is_available"])

    # ── ambulance_requests ────────────────────────────────────────────
    op.create_table(
        "ambulance_requests",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("requester_ref", sa.String(64), nullable=False),
        sa.Column("driver_ref", sa.String(64), nullable=True),
        sa.Column("pickup_text", sa.Text, nullable=False),
        sa.Column("destination_text", sa.Text, nullable=False),
        sa.Column(
            "priority",
            sa.Enum(*PRIORITIES, name="request_priority"),
            nullable=False,
            server_default="medium",
        ),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column(
            "status",
            sa.Enum(*REQUEST_STATUSES, name="request_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("location_text", sa.Text, nullable=True),
        sa.Column("driver_latitude", sa.Float, nullable=True),
        sa.Column("driver_longitude", sa.Float, nullable=True),
        sa.Column("estimated_arrival", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column("cancelled_by", sa.String(64), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_requests_status", "ambulance_requests", ["status"])
    op.create_index("idx_requests_requester", "ambulance_requests", ["requester_ref"])
    op.create_index("idx_requests_driver", "ambulance_requests", ["driver_ref"])
    op.create_index("idx_requests_created", "ambulance_requests", ["created_at"])


def downgrade() -> None:
    op.drop_table("ambulance_requests")
    op.drop_table("ambulance_drivers")
    op.execute("DROP TYPE IF EXISTS request_status")
    op.execute("DROP TYPE IF EXISTS request_priority")
