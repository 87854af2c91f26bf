"""Initial schema: bookings, riders, rider assignments, admin settings.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── riders ────────────────────────────────────────────────────────
    op.create_table(
        "riders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("profile_image", sa.String(512), nullable=True),
        sa.Column("total_orders", sa.Integer, default=0, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_number", sa.String(32), unique=True, nullable=False),
        sa.Column("service_type", sa.String(32), nullable=False),
        sa.Column("delivery_type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("tracking", sa.JSON, nullable=False),
        sa.Column("stage_version", sa.Integer, default=0, nullable=False),
        sa.Column("pickup_rider", sa.JSON, nullable=True),
        sa.Column("delivery_rider", sa.JSON, nullable=True),
        sa.Column("pickup_rider_id", sa.String(36), nullable=True),
        sa.Column("delivery_rider_id", sa.String(36), nullable=True),
        sa.Column("is_available_for_pickup", sa.Boolean, nullable=False),
        sa.Column("customer_details", sa.JSON, nullable=False),
        sa.Column("address_details", sa.JSON, nullable=False),
        sa.Column("helmet_details", sa.JSON, nullable=False),
        sa.Column("pricing", sa.JSON, nullable=False),
        sa.Column("schedule", sa.JSON, nullable=False),
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
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_pickup_rider", "bookings", ["pickup_rider_id"])
    op.create_index("idx_bookings_delivery_rider", "bookings", ["delivery_rider_id"])

    # ── rider_assignments ─────────────────────────────────────────────
    op.create_table(
        "rider_assignments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "booking_id",
            sa.String(36),
            sa.ForeignKey("bookings.id"),
            nullable=False,
        ),
        sa.Column("booking_number", sa.String(32), nullable=False),
        sa.Column("rider_id", sa.String(36), nullable=False),
        sa.Column("rider_name", sa.String(120), nullable=False),
        sa.Column("assignment_type", sa.String(16), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("customer_address", sa.String(512), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_by", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("otp", sa.String(4), nullable=True),
    )
    op.create_index(
        "idx_rider_assignments_booking", "rider_assignments", ["booking_id"]
    )
    op.create_index("idx_rider_assignments_rider", "rider_assignments", ["rider_id"])

    # ── admin_settings ────────────────────────────────────────────────
    op.create_table(
        "admin_settings",
        sa.Column("key", sa.String(64), primary_key=True),
        sa.Column("same_rider_for_pickup_and_delivery", sa.Boolean, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(64), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("admin_settings")
    op.drop_table("rider_assignments")
    op.drop_table("bookings")
    op.drop_table("riders")
