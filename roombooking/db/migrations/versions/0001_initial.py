"""initial room booking schema

Revision ID: 0001_initial
Revises:
Create Date: 2025-02-03 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


room_status = postgresql.ENUM("available", "occupied", "maintenance", name="roomstatus", create_type=False)
booking_status = postgresql.ENUM("active", "cancelled", "completed", name="bookingstatus", create_type=False)
payment_status = postgresql.ENUM("pending", "paid", "failed", "refunded", name="paymentstatus", create_type=False)
payment_method = postgresql.ENUM("card", "cash", "bank_transfer", name="paymentmethod", create_type=False)
payment_provider = postgresql.ENUM("manual", "stub", "stripe", name="paymentprovider", create_type=False)
actor_type = postgresql.ENUM("user", "admin", "system", name="actortype", create_type=False)

ENUMS = (room_status, booking_status, payment_status, payment_method, payment_provider, actor_type)


def upgrade() -> None:
    bind = op.get_bind()
    for enum in ENUMS:
        postgresql.ENUM(*enum.enums, name=enum.name).create(bind, checkfirst=True)
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("price_per_hour", sa.Numeric(10, 2), nullable=False),
        sa.Column("open_time", sa.Time(), nullable=False),
        sa.Column("close_time", sa.Time(), nullable=False),
        sa.Column("slot_duration_min", sa.Integer(), nullable=False),
        sa.Column("break_duration_min", sa.Integer(), nullable=False),
        sa.Column("amenities", sa.JSON(), nullable=False),
        sa.Column("status", room_status, nullable=False, server_default="available"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("capacity > 0", name="ck_room_capacity_positive"),
        sa.CheckConstraint("price_per_hour >= 0", name="ck_room_price_non_negative"),
        sa.CheckConstraint("slot_duration_min > 0", name="ck_room_slot_duration_positive"),
        sa.CheckConstraint("break_duration_min >= 0", name="ck_room_break_non_negative"),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("requester_id", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_hours", sa.Integer(), nullable=False),
        sa.Column("status", booking_status, nullable=False, server_default="active"),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_status", payment_status, nullable=False, server_default="pending"),
        sa.Column("notes", sa.String(length=500)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.String(length=64)),
        sa.Column("cancellation_reason", sa.String(length=255)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("end_time > start_time", name="ck_booking_interval_order"),
        sa.CheckConstraint("duration_hours >= 1 AND duration_hours <= 24", name="ck_booking_duration_range"),
    )
    op.create_index("ix_bookings_room_id", "bookings", ["room_id"])
    op.create_index("ix_bookings_requester_id", "bookings", ["requester_id"])
    op.create_index(
        "ix_bookings_room_status_interval", "bookings", ["room_id", "status", "start_time", "end_time"]
    )
    # Last line of defence against double booking when two writers race past the room lock.
    op.execute(
        """
        ALTER TABLE bookings
        ADD CONSTRAINT ex_bookings_room_active_interval
        EXCLUDE USING gist (room_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&)
        WHERE (status = 'active')
        """
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.CHAR(length=3), nullable=False, server_default="THB"),
        sa.Column("method", payment_method, nullable=False),
        sa.Column("provider", payment_provider, nullable=False, server_default="manual"),
        sa.Column("status", payment_status, nullable=False, server_default="pending"),
        sa.Column("intent_id", sa.String(length=128)),
        sa.Column("transaction_id", sa.String(length=128)),
        sa.Column("proof_reference", sa.String(length=512)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("intent_id", name="uq_payment_intent_id"),
    )
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])

    op.create_table(
        "payment_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.String(length=128), nullable=False),
        sa.Column("intent_id", sa.String(length=128)),
        sa.Column("event_type", sa.String(length=64)),
        sa.Column("applied", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", name="uq_payment_event_id"),
    )
    op.create_index("ix_payment_events_intent_id", "payment_events", ["intent_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_type", actor_type, nullable=False),
        sa.Column("actor_id", sa.Integer()),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Integer()),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("ix_payment_events_intent_id", table_name="payment_events")
    op.drop_table("payment_events")
    op.drop_index("ix_payments_booking_id", table_name="payments")
    op.drop_table("payments")
    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_room_active_interval")
    op.drop_index("ix_bookings_room_status_interval", table_name="bookings")
    op.drop_index("ix_bookings_requester_id", table_name="bookings")
    op.drop_index("ix_bookings_room_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("rooms")
    bind = op.get_bind()
    for enum in reversed(ENUMS):
        postgresql.ENUM(name=enum.name).drop(bind, checkfirst=True)
