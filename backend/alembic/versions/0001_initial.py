"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2024-03-01 00:00:00
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)
TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", UUID, primary_key=True),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("created_at", TS),
    )
    op.create_table(
        "households",
        sa.Column("household_id", UUID, primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("timezone", sa.String(), nullable=False),
        sa.Column("created_at", TS),
    )
    op.create_table(
        "household_members",
        sa.Column("household_id", UUID, sa.ForeignKey("households.household_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role", sa.String(), nullable=False),
    )
    op.create_table(
        "animals",
        sa.Column("animal_id", UUID, primary_key=True),
        sa.Column("household_id", UUID, sa.ForeignKey("households.household_id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("species", sa.String(), nullable=False),
        sa.Column("breed", sa.String()),
        sa.Column("sex", sa.String()),
        sa.Column("microchip_number", sa.String()),
        sa.Column("timezone", sa.String()),
        sa.Column("date_of_birth", sa.Date()),
        sa.Column("weight_kg", sa.Numeric(6, 2)),
        sa.Column("created_at", TS),
        sa.Column("deleted_at", TS),
    )
    op.create_table(
        "medications",
        sa.Column("medication_id", UUID, primary_key=True),
        sa.Column("generic_name", sa.String(), nullable=False),
        sa.Column("brand_name", sa.String()),
        sa.Column("route", sa.String(), nullable=False),
        sa.Column("form", sa.String(), nullable=False),
        sa.Column("strength", sa.String()),
    )
    op.create_table(
        "inventory_items",
        sa.Column("item_id", UUID, primary_key=True),
        sa.Column("household_id", UUID, sa.ForeignKey("households.household_id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("medication_id", UUID, sa.ForeignKey("medications.medication_id"), nullable=False),
        sa.Column("lot", sa.String()),
        sa.Column("expires_on", sa.Date(), nullable=False),
        sa.Column("units_remaining", sa.Integer()),
        sa.Column("in_use", sa.Boolean(), nullable=False),
        sa.Column("assigned_animal_id", UUID, sa.ForeignKey("animals.animal_id", ondelete="SET NULL")),
    )
    op.create_table(
        "regimens",
        sa.Column("regimen_id", UUID, primary_key=True),
        sa.Column("animal_id", UUID, sa.ForeignKey("animals.animal_id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("medication_id", UUID, sa.ForeignKey("medications.medication_id"), nullable=False),
        sa.Column("name", sa.String()),
        sa.Column("instructions", sa.String()),
        sa.Column("schedule_type", sa.String(), nullable=False),
        sa.Column("times_local", sa.JSON(), nullable=False),
        sa.Column("interval_hours", sa.Integer()),
        sa.Column("taper_steps", sa.JSON()),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date()),
        sa.Column("prn_reason", sa.String()),
        sa.Column("max_daily_doses", sa.Integer()),
        sa.Column("cutoff_mins", sa.Integer(), nullable=False),
        sa.Column("high_risk", sa.Boolean(), nullable=False),
        sa.Column("requires_cosign", sa.Boolean(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, index=True),
        sa.Column("dose", sa.String()),
        sa.Column("route", sa.String()),
        sa.Column("created_at", TS),
        sa.Column("deleted_at", TS),
    )
    op.create_table(
        "administrations",
        sa.Column("administration_id", UUID, primary_key=True),
        sa.Column("household_id", UUID, sa.ForeignKey("households.household_id"), nullable=False, index=True),
        sa.Column("animal_id", UUID, sa.ForeignKey("animals.animal_id"), nullable=False, index=True),
        sa.Column("regimen_id", UUID, sa.ForeignKey("regimens.regimen_id"), nullable=False, index=True),
        sa.Column("caregiver_id", UUID, sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("scheduled_for", TS, index=True),
        sa.Column("recorded_at", TS, nullable=False, index=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("idempotency_key", sa.String(), nullable=False, unique=True),
        sa.Column("inventory_source_id", UUID, sa.ForeignKey("inventory_items.item_id")),
        sa.Column("inventory_override", sa.Boolean(), nullable=False),
        sa.Column("dose", sa.String()),
        sa.Column("site", sa.String()),
        sa.Column("notes", sa.String()),
        sa.Column("condition_tags", sa.JSON(), nullable=False),
        sa.Column("requires_cosign", sa.Boolean(), nullable=False),
        sa.Column("cosign_state", sa.String(), nullable=False),
        sa.Column("cosign_user_id", UUID, sa.ForeignKey("users.user_id")),
        sa.Column("cosigned_at", TS),
        sa.Column("created_at", TS),
        sa.Column("updated_at", TS),
        sa.Column("deleted_at", TS),
        sa.Column("deleted_by", UUID),
        sa.Column("delete_reason", sa.String()),
    )
    op.create_table(
        "cosign_requests",
        sa.Column("request_id", UUID, primary_key=True),
        sa.Column(
            "administration_id",
            UUID,
            sa.ForeignKey("administrations.administration_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("household_id", UUID, sa.ForeignKey("households.household_id", ondelete="CASCADE"), nullable=False),
        sa.Column("requester_id", UUID, sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("cosigner_id", UUID, sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("signature", sa.String()),
        sa.Column("rejection_reason", sa.String()),
        sa.Column("expires_at", TS, nullable=False),
        sa.Column("signed_at", TS),
        sa.Column("created_at", TS),
    )
    op.create_table(
        "pending_mutations",
        sa.Column("idempotency_key", sa.String(), primary_key=True),
        sa.Column("mutation_type", sa.String(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("household_id", UUID, index=True),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("max_retries", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.String()),
        sa.Column("next_attempt_at", TS),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", TS),
    )
    op.create_table(
        "audit_log",
        sa.Column("audit_id", UUID, primary_key=True),
        sa.Column("actor_user_id", UUID),
        sa.Column("household_id", UUID, index=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("target_type", sa.String(), nullable=False),
        sa.Column("target_id", UUID),
        sa.Column("meta", sa.JSON()),
        sa.Column("occurred_at", TS),
    )


def downgrade() -> None:
    for table in (
        "audit_log",
        "pending_mutations",
        "cosign_requests",
        "administrations",
        "regimens",
        "inventory_items",
        "medications",
        "animals",
        "household_members",
        "households",
        "users",
    ):
        op.drop_table(table)
