from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dutysync.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ruc_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    units = relationship("Unit", back_populates="organization", cascade="all, delete-orphan")


class Unit(Base):
    __tablename__ = "units"
    __table_args__ = (
        CheckConstraint(
            "hierarchy_level IN ('unit', 'company', 'section', 'work_section')",
            name="ck_units_hierarchy_level",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("units.id", ondelete="SET NULL"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(40), nullable=True)
    hierarchy_level: Mapped[str] = mapped_column(String(20), nullable=False, default="unit")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    organization = relationship("Organization", back_populates="units")
    personnel = relationship("Personnel", back_populates="unit")


class Personnel(Base):
    __tablename__ = "personnel"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    rank: Mapped[str] = mapped_column(String(20), nullable=False)
    current_duty_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    unit = relationship("Unit", back_populates="personnel")
    qualifications = relationship("PersonnelQualification", back_populates="personnel", cascade="all, delete-orphan")


class PersonnelQualification(Base):
    __tablename__ = "personnel_qualifications"
    __table_args__ = (UniqueConstraint("personnel_id", "qualification_name", name="uq_personnel_qualification"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    personnel_id: Mapped[int] = mapped_column(ForeignKey("personnel.id", ondelete="CASCADE"), nullable=False, index=True)
    qualification_name: Mapped[str] = mapped_column(String(120), nullable=False)

    personnel = relationship("Personnel", back_populates="qualifications")


class DutyType(Base):
    __tablename__ = "duty_types"
    __table_args__ = (
        CheckConstraint("slots_needed >= 1", name="ck_duty_types_slots_needed"),
        CheckConstraint("rank_filter_mode IN ('none', 'include', 'exclude')", name="ck_duty_types_rank_filter_mode"),
        CheckConstraint(
            "section_filter_mode IN ('none', 'include', 'exclude')", name="ck_duty_types_section_filter_mode"
        ),
        CheckConstraint(
            "supernumerary_period_type IN ('full_month', 'half_month', 'weekly', 'bi_weekly')",
            name="ck_duty_types_supernumerary_period_type",
        ),
        CheckConstraint("supernumerary_count >= 0", name="ck_duty_types_supernumerary_count"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    slots_needed: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    rank_filter_mode: Mapped[str] = mapped_column(String(10), nullable=False, default="none")
    rank_filter_values: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    section_filter_mode: Mapped[str] = mapped_column(String(10), nullable=False, default="none")
    section_filter_values: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    requires_supernumerary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    supernumerary_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    supernumerary_period_type: Mapped[str] = mapped_column(String(20), nullable=False, default="full_month")
    supernumerary_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    value = relationship("DutyValue", back_populates="duty_type", uselist=False, cascade="all, delete-orphan")
    requirements = relationship("DutyRequirement", back_populates="duty_type", cascade="all, delete-orphan")


class DutyRequirement(Base):
    __tablename__ = "duty_requirements"
    __table_args__ = (UniqueConstraint("duty_type_id", "qualification_name", name="uq_duty_requirement"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    duty_type_id: Mapped[int] = mapped_column(ForeignKey("duty_types.id", ondelete="CASCADE"), nullable=False, index=True)
    qualification_name: Mapped[str] = mapped_column(String(120), nullable=False)

    duty_type = relationship("DutyType", back_populates="requirements")


class DutyValue(Base):
    __tablename__ = "duty_values"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    duty_type_id: Mapped[int] = mapped_column(
        ForeignKey("duty_types.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    base_weight: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    weekend_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.5)
    holiday_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=2.0)

    duty_type = relationship("DutyType", back_populates="value")


class NonAvailability(Base):
    __tablename__ = "non_availability"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'recommended', 'approved', 'rejected')", name="ck_non_availability_status"
        ),
        CheckConstraint("start_date <= end_date", name="ck_non_availability_date_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    personnel_id: Mapped[int] = mapped_column(ForeignKey("personnel.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class DutySlot(Base):
    __tablename__ = "duty_slots"
    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'approved', 'completed', 'missed', 'swapped')", name="ck_duty_slots_status"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    duty_type_id: Mapped[int] = mapped_column(ForeignKey("duty_types.id", ondelete="CASCADE"), nullable=False, index=True)
    personnel_id: Mapped[int | None] = mapped_column(
        ForeignKey("personnel.id", ondelete="SET NULL"), nullable=True, index=True
    )
    date_assigned: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    assigned_by: Mapped[str] = mapped_column(String(120), nullable=False, default="system")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    swapped_from_personnel_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    swap_pair_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    swapped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    duty_type = relationship("DutyType")


class SupernumeraryAssignment(Base):
    __tablename__ = "supernumerary_assignments"
    __table_args__ = (
        CheckConstraint("period_start <= period_end", name="ck_supernumerary_assignments_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    duty_type_id: Mapped[int] = mapped_column(ForeignKey("duty_types.id", ondelete="CASCADE"), nullable=False, index=True)
    personnel_id: Mapped[int] = mapped_column(ForeignKey("personnel.id", ondelete="CASCADE"), nullable=False, index=True)
    period_start: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    period_end: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    activation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    duty_type = relationship("DutyType")


class DutyChangeRequest(Base):
    __tablename__ = "duty_change_requests"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_duty_change_requests_status"),
        UniqueConstraint("swap_pair_id", "personnel_id", name="uq_duty_change_requests_pair_person"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    swap_pair_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    personnel_id: Mapped[int] = mapped_column(ForeignKey("personnel.id", ondelete="CASCADE"), nullable=False, index=True)
    swap_partner_id: Mapped[int] = mapped_column(ForeignKey("personnel.id", ondelete="CASCADE"), nullable=False)
    giving_slot_id: Mapped[int] = mapped_column(ForeignKey("duty_slots.id", ondelete="CASCADE"), nullable=False)
    receiving_slot_id: Mapped[int] = mapped_column(ForeignKey("duty_slots.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    partner_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    partner_accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    partner_accepted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    requested_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    approvals = relationship(
        "SwapApproval",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="SwapApproval.approval_order",
    )
    recommendations = relationship("SwapRecommendation", back_populates="request", cascade="all, delete-orphan")


class SwapApproval(Base):
    __tablename__ = "swap_approvals"
    __table_args__ = (
        UniqueConstraint("request_id", "approval_order", name="uq_swap_approvals_order"),
        CheckConstraint(
            "approver_type IN ('work_section_manager', 'section_manager', 'company_manager')",
            name="ck_swap_approvals_approver_type",
        ),
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_swap_approvals_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(
        ForeignKey("duty_change_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    approval_order: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_type: Mapped[str] = mapped_column(String(30), nullable=False)
    scope_unit_id: Mapped[int | None] = mapped_column(ForeignKey("units.id", ondelete="SET NULL"), nullable=True)
    is_approver: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    request = relationship("DutyChangeRequest", back_populates="approvals")


class SwapRecommendation(Base):
    __tablename__ = "swap_recommendations"
    __table_args__ = (
        UniqueConstraint("request_id", "recommender_id", name="uq_swap_recommendations_recommender"),
        CheckConstraint(
            "recommendation IN ('recommend', 'not_recommend')", name="ck_swap_recommendations_recommendation"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(
        ForeignKey("duty_change_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    recommender_id: Mapped[int] = mapped_column(Integer, nullable=False)
    recommendation: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    request = relationship("DutyChangeRequest", back_populates="recommendations")


class DutyScoreEvent(Base):
    __tablename__ = "duty_score_events"
    __table_args__ = (
        CheckConstraint(
            "reason IN ('assigned', 'standby', 'cleared', 'swapped')", name="ck_duty_score_events_reason"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    personnel_id: Mapped[int] = mapped_column(ForeignKey("personnel.id", ondelete="CASCADE"), nullable=False, index=True)
    duty_slot_id: Mapped[int | None] = mapped_column(
        ForeignKey("duty_slots.id", ondelete="SET NULL"), nullable=True, index=True
    )
    supernumerary_assignment_id: Mapped[int | None] = mapped_column(
        ForeignKey("supernumerary_assignments.id", ondelete="SET NULL"), nullable=True
    )
    unit_id: Mapped[int | None] = mapped_column(ForeignKey("units.id", ondelete="SET NULL"), nullable=True, index=True)
    duty_type_name: Mapped[str] = mapped_column(String(120), nullable=False)
    points: Mapped[float] = mapped_column(Float, nullable=False)
    date_earned: Mapped[date] = mapped_column(Date, nullable=False)
    roster_month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(20), nullable=False, default="assigned")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
