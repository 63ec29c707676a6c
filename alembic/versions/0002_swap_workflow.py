"""two-row duty swap requests with approvals and recommendations

Revision ID: 0002_swap_workflow
Revises: 0001_core_roster
Create Date: 2026-10-08
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_swap_workflow"
down_revision = "0001_core_roster"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("duty_slots", sa.Column("swapped_from_personnel_id", sa.Integer(), nullable=True))
    op.add_column("duty_slots", sa.Column("swap_pair_id", sa.String(length=36), nullable=True))
    op.add_column("duty_slots", sa.Column("swapped_at", sa.DateTime(timezone=True), nullable=True))
    op.create_index("ix_duty_slots_swap_pair_id", "duty_slots", ["swap_pair_id"], unique=False)

    op.create_table(
        "duty_change_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("swap_pair_id", sa.String(length=36), nullable=False),
        sa.Column("personnel_id", sa.Integer(), nullable=False),
        sa.Column("swap_partner_id", sa.Integer(), nullable=False),
        sa.Column("giving_slot_id", sa.Integer(), nullable=False),
        sa.Column("receiving_slot_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("partner_accepted", sa.Boolean(), nullable=False),
        sa.Column("partner_accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("partner_accepted_by", sa.Integer(), nullable=True),
        sa.Column("requested_by", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_duty_change_requests_status"),
        sa.UniqueConstraint("swap_pair_id", "personnel_id", name="uq_duty_change_requests_pair_person"),
        sa.ForeignKeyConstraint(["personnel_id"], ["personnel.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["swap_partner_id"], ["personnel.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["giving_slot_id"], ["duty_slots.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiving_slot_id"], ["duty_slots.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_duty_change_requests_swap_pair_id", "duty_change_requests", ["swap_pair_id"], unique=False)
    op.create_index("ix_duty_change_requests_personnel_id", "duty_change_requests", ["personnel_id"], unique=False)
    op.create_index("ix_duty_change_requests_status", "duty_change_requests", ["status"], unique=False)

    op.create_table(
        "swap_approvals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("approval_order", sa.Integer(), nullable=False),
        sa.Column("approver_type", sa.String(length=30), nullable=False),
        sa.Column("scope_unit_id", sa.Integer(), nullable=True),
        sa.Column("is_approver", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("request_id", "approval_order", name="uq_swap_approvals_order"),
        sa.CheckConstraint(
            "approver_type IN ('work_section_manager', 'section_manager', 'company_manager')",
            name="ck_swap_approvals_approver_type",
        ),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_swap_approvals_status"),
        sa.ForeignKeyConstraint(["request_id"], ["duty_change_requests.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["scope_unit_id"], ["units.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_swap_approvals_request_id", "swap_approvals", ["request_id"], unique=False)

    op.create_table(
        "swap_recommendations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("recommender_id", sa.Integer(), nullable=False),
        sa.Column("recommendation", sa.String(length=20), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("request_id", "recommender_id", name="uq_swap_recommendations_recommender"),
        sa.CheckConstraint(
            "recommendation IN ('recommend', 'not_recommend')", name="ck_swap_recommendations_recommendation"
        ),
        sa.ForeignKeyConstraint(["request_id"], ["duty_change_requests.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_swap_recommendations_request_id", "swap_recommendations", ["request_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_swap_recommendations_request_id", table_name="swap_recommendations")
    op.drop_table("swap_recommendations")
    op.drop_index("ix_swap_approvals_request_id", table_name="swap_approvals")
    op.drop_table("swap_approvals")
    op.drop_index("ix_duty_change_requests_status", table_name="duty_change_requests")
    op.drop_index("ix_duty_change_requests_personnel_id", table_name="duty_change_requests")
    op.drop_index("ix_duty_change_requests_swap_pair_id", table_name="duty_change_requests")
    op.drop_table("duty_change_requests")
    op.drop_index("ix_duty_slots_swap_pair_id", table_name="duty_slots")
    op.drop_column("duty_slots", "swapped_at")
    op.drop_column("duty_slots", "swap_pair_id")
    op.drop_column("duty_slots", "swapped_from_personnel_id")
