"""organizations, units, personnel, duty types and duty slots

Revision ID: 0001_core_roster
Revises:
Create Date: 2026-10-05
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_core_roster"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ruc_code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_organizations_ruc_code", "organizations", ["ruc_code"], unique=True)

    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), nullable=True),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=40), nullable=True),
        sa.Column("hierarchy_level", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "hierarchy_level IN ('unit', 'company', 'section', 'work_section')", name="ck_units_hierarchy_level"
        ),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_id"], ["units.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_units_organization_id", "units", ["organization_id"], unique=False)
    op.create_index("ix_units_parent_id", "units", ["parent_id"], unique=False)

    op.create_table(
        "personnel",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), nullable=True),
        sa.Column("unit_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.String(length=20), nullable=True, unique=True),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("rank", sa.String(length=20), nullable=False),
        sa.Column("current_duty_score", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_personnel_organization_id", "personnel", ["organization_id"], unique=False)
    op.create_index("ix_personnel_unit_id", "personnel", ["unit_id"], unique=False)

    op.create_table(
        "personnel_qualifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("personnel_id", sa.Integer(), nullable=False),
        sa.Column("qualification_name", sa.String(length=120), nullable=False),
        sa.ForeignKeyConstraint(["personnel_id"], ["personnel.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("personnel_id", "qualification_name", name="uq_personnel_qualification"),
    )
    op.create_index(
        "ix_personnel_qualifications_personnel_id", "personnel_qualifications", ["personnel_id"], unique=False
    )

    op.create_table(
        "duty_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organization_id", sa.Integer(), nullable=True),
        sa.Column("unit_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("slots_needed", sa.Integer(), nullable=False),
        sa.Column("rank_filter_mode", sa.String(length=10), nullable=False),
        sa.Column("rank_filter_values", sa.JSON(), nullable=False),
        sa.Column("section_filter_mode", sa.String(length=10), nullable=False),
        sa.Column("section_filter_values", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("slots_needed >= 1", name="ck_duty_types_slots_needed"),
        sa.CheckConstraint("rank_filter_mode IN ('none', 'include', 'exclude')", name="ck_duty_types_rank_filter_mode"),
        sa.CheckConstraint(
            "section_filter_mode IN ('none', 'include', 'exclude')", name="ck_duty_types_section_filter_mode"
        ),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_duty_types_organization_id", "duty_types", ["organization_id"], unique=False)
    op.create_index("ix_duty_types_unit_id", "duty_types", ["unit_id"], unique=False)

    op.create_table(
        "duty_requirements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("duty_type_id", sa.Integer(), nullable=False),
        sa.Column("qualification_name", sa.String(length=120), nullable=False),
        sa.ForeignKeyConstraint(["duty_type_id"], ["duty_types.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("duty_type_id", "qualification_name", name="uq_duty_requirement"),
    )
    op.create_index("ix_duty_requirements_duty_type_id", "duty_requirements", ["duty_type_id"], unique=False)

    op.create_table(
        "duty_values",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("duty_type_id", sa.Integer(), nullable=False),
        sa.Column("base_weight", sa.Float(), nullable=False),
        sa.Column("weekend_multiplier", sa.Float(), nullable=False),
        sa.Column("holiday_multiplier", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["duty_type_id"], ["duty_types.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_duty_values_duty_type_id", "duty_values", ["duty_type_id"], unique=True)

    op.create_table(
        "non_availability",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("personnel_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'recommended', 'approved', 'rejected')", name="ck_non_availability_status"
        ),
        sa.CheckConstraint("start_date <= end_date", name="ck_non_availability_date_range"),
        sa.ForeignKeyConstraint(["personnel_id"], ["personnel.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_non_availability_personnel_id", "non_availability", ["personnel_id"], unique=False)
    op.create_index("ix_non_availability_start_date", "non_availability", ["start_date"], unique=False)
    op.create_index("ix_non_availability_end_date", "non_availability", ["end_date"], unique=False)
    op.create_index("ix_non_availability_status", "non_availability", ["status"], unique=False)

    op.create_table(
        "duty_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("duty_type_id", sa.Integer(), nullable=False),
        sa.Column("personnel_id", sa.Integer(), nullable=True),
        sa.Column("date_assigned", sa.Date(), nullable=False),
        sa.Column("points", sa.Float(), nullable=False),
        sa.Column("assigned_by", sa.String(length=120), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('scheduled', 'approved', 'completed', 'missed', 'swapped')", name="ck_duty_slots_status"
        ),
        sa.ForeignKeyConstraint(["duty_type_id"], ["duty_types.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["personnel_id"], ["personnel.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_duty_slots_duty_type_id", "duty_slots", ["duty_type_id"], unique=False)
    op.create_index("ix_duty_slots_personnel_id", "duty_slots", ["personnel_id"], unique=False)
    op.create_index("ix_duty_slots_date_assigned", "duty_slots", ["date_assigned"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_duty_slots_date_assigned", table_name="duty_slots")
    op.drop_index("ix_duty_slots_personnel_id", table_name="duty_slots")
    op.drop_index("ix_duty_slots_duty_type_id", table_name="duty_slots")
    op.drop_table("duty_slots")
    op.drop_index("ix_non_availability_status", table_name="non_availability")
    op.drop_index("ix_non_availability_end_date", table_name="non_availability")
    op.drop_index("ix_non_availability_start_date", table_name="non_availability")
    op.drop_index("ix_non_availability_personnel_id", table_name="non_availability")
    op.drop_table("non_availability")
    op.drop_index("ix_duty_values_duty_type_id", table_name="duty_values")
    op.drop_table("duty_values")
    op.drop_index("ix_duty_requirements_duty_type_id", table_name="duty_requirements")
    op.drop_table("duty_requirements")
    op.drop_index("ix_duty_types_unit_id", table_name="duty_types")
    op.drop_index("ix_duty_types_organization_id", table_name="duty_types")
    op.drop_table("duty_types")
    op.drop_index("ix_personnel_qualifications_personnel_id", table_name="personnel_qualifications")
    op.drop_table("personnel_qualifications")
    op.drop_index("ix_personnel_unit_id", table_name="personnel")
    op.drop_index("ix_personnel_organization_id", table_name="personnel")
    op.drop_table("personnel")
    op.drop_index("ix_units_parent_id", table_name="units")
    op.drop_index("ix_units_organization_id", table_name="units")
    op.drop_table("units")
    op.drop_index("ix_organizations_ruc_code", table_name="organizations")
    op.drop_table("organizations")
