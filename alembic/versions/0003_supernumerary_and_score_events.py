"""standby coverage on duty types and duty score history

Revision ID: 0003_supernumerary_and_score_events
Revises: 0002_swap_workflow
Create Date: 2026-10-12
"""

from alembic import op
import sqlalchemy as sa

revision = "0003_supernumerary_and_score_events"
down_revision = "0002_swap_workflow"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "duty_types",
        sa.Column("requires_supernumerary", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.add_column("duty_types", sa.Column("supernumerary_count", sa.Integer(), nullable=False, server_default="1"))
    op.add_column(
        "duty_types",
        sa.Column("supernumerary_period_type", sa.String(length=20), nullable=False, server_default="full_month"),
    )
    op.add_column("duty_types", sa.Column("supernumerary_value", sa.Float(), nullable=False, server_default="0"))
    with op.batch_alter_table("duty_types") as batch_op:
        batch_op.create_check_constraint(
            "ck_duty_types_supernumerary_period_type",
            "supernumerary_period_type IN ('full_month', 'half_month', 'weekly', 'bi_weekly')",
        )
        batch_op.create_check_constraint("ck_duty_types_supernumerary_count", "supernumerary_count >= 0")

    op.create_table(
        "supernumerary_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), nullable=True),
        sa.Column("duty_type_id", sa.Integer(), nullable=False),
        sa.Column("personnel_id", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("points", sa.Float(), nullable=False),
        sa.Column("activation_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("period_start <= period_end", name="ck_supernumerary_assignments_period"),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["duty_type_id"], ["duty_types.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["personnel_id"], ["personnel.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_supernumerary_assignments_organization_id", "supernumerary_assignments", ["organization_id"], unique=False
    )
    op.create_index(
        "ix_supernumerary_assignments_duty_type_id", "supernumerary_assignments", ["duty_type_id"], unique=False
    )
    op.create_index(
        "ix_supernumerary_assignments_personnel_id", "supernumerary_assignments", ["personnel_id"], unique=False
    )
    op.create_index(
        "ix_supernumerary_assignments_period_start", "supernumerary_assignments", ["period_start"], unique=False
    )
    op.create_index("ix_supernumerary_assignments_period_end", "supernumerary_assignments", ["period_end"], unique=False)

    op.create_table(
        "duty_score_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("personnel_id", sa.Integer(), nullable=False),
        sa.Column("duty_slot_id", sa.Integer(), nullable=True),
        sa.Column("supernumerary_assignment_id", sa.Integer(), nullable=True),
        sa.Column("unit_id", sa.Integer(), nullable=True),
        sa.Column("duty_type_name", sa.String(length=120), nullable=False),
        sa.Column("points", sa.Float(), nullable=False),
        sa.Column("date_earned", sa.Date(), nullable=False),
        sa.Column("roster_month", sa.String(length=7), nullable=False),
        sa.Column("reason", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "reason IN ('assigned', 'standby', 'cleared', 'swapped')", name="ck_duty_score_events_reason"
        ),
        sa.ForeignKeyConstraint(["personnel_id"], ["personnel.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["duty_slot_id"], ["duty_slots.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["supernumerary_assignment_id"], ["supernumerary_assignments.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_duty_score_events_personnel_id", "duty_score_events", ["personnel_id"], unique=False)
    op.create_index("ix_duty_score_events_duty_slot_id", "duty_score_events", ["duty_slot_id"], unique=False)
    op.create_index("ix_duty_score_events_unit_id", "duty_score_events", ["unit_id"], unique=False)
    op.create_index("ix_duty_score_events_roster_month", "duty_score_events", ["roster_month"], unique=False)
    op.create_index("ix_duty_score_events_created_at", "duty_score_events", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_duty_score_events_created_at", table_name="duty_score_events")
    op.drop_index("ix_duty_score_events_roster_month", table_name="duty_score_events")
    op.drop_index("ix_duty_score_events_unit_id", table_name="duty_score_events")
    op.drop_index("ix_duty_score_events_duty_slot_id", table_name="duty_score_events")
    op.drop_index("ix_duty_score_events_personnel_id", table_name="duty_score_events")
    op.drop_table("duty_score_events")
    op.drop_index("ix_supernumerary_assignments_period_end", table_name="supernumerary_assignments")
    op.drop_index("ix_supernumerary_assignments_period_start", table_name="supernumerary_assignments")
    op.drop_index("ix_supernumerary_assignments_personnel_id", table_name="supernumerary_assignments")
    op.drop_index("ix_supernumerary_assignments_duty_type_id", table_name="supernumerary_assignments")
    op.drop_index("ix_supernumerary_assignments_organization_id", table_name="supernumerary_assignments")
    op.drop_table("supernumerary_assignments")
    with op.batch_alter_table("duty_types") as batch_op:
        batch_op.drop_constraint("ck_duty_types_supernumerary_count", type_="check")
        batch_op.drop_constraint("ck_duty_types_supernumerary_period_type", type_="check")
        batch_op.drop_column("supernumerary_value")
        batch_op.drop_column("supernumerary_period_type")
        batch_op.drop_column("supernumerary_count")
        batch_op.drop_column("requires_supernumerary")
