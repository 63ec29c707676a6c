from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Literal

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from dutysync.commit import apply_previewed_slots, apply_supernumerary_assignments
from dutysync.config import get_environment, get_max_range_days
from dutysync.db import get_db
from dutysync.domain import PlannedSlot, PlannedSupernumerary
from dutysync.errors import DutySyncError
from dutysync.log import configure_logging
from dutysync.planner import ScheduleRequest, ScheduleResult, validate_request
from dutysync.repository import SqlRepository
from dutysync.scheduler import generate_schedule, preview_schedule, preview_supernumerary_assignments
from dutysync.swap_service import (
    accept_swap,
    approve_swap,
    decline_swap,
    get_swap,
    recommend_swap,
    reject_swap,
    request_swap,
)
from dutysync.swaps import ApprovalStep, RecommendationEntry, SwapPair, SwapRequestSide

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="DutySync Scheduler")


@app.middleware("http")
async def disable_cache_for_api(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/api/"):
        response.headers["Cache-Control"] = "no-store, no-cache, max-age=0, must-revalidate"
        response.headers["Pragma"] = "no-cache"
    return response


@app.exception_handler(DutySyncError)
async def handle_dutysync_error(request: Request, exc: DutySyncError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def get_repository(db: Session = Depends(get_db)) -> SqlRepository:
    return SqlRepository(db)


class DateRangePayload(BaseModel):
    unit_id: int
    start_date: date
    end_date: date

    def as_request(self, assigned_by: str = "system", clear_existing: bool = False) -> ScheduleRequest:
        return ScheduleRequest(
            unit_id=self.unit_id,
            start_date=self.start_date,
            end_date=self.end_date,
            assigned_by=assigned_by,
            clear_existing=clear_existing,
        )


class SchedulerPayload(DateRangePayload):
    preview: bool = False
    clear_existing: bool = False
    assigned_by: str = "system"


class SlotPayload(BaseModel):
    duty_type_id: int
    personnel_id: int
    date_assigned: date
    points: float = Field(ge=0)
    assigned_by: str = "system"
    duty_type_name: str = ""


class SlotOut(SlotPayload):
    id: int | None = None
    status: str = "scheduled"


class ApplySlotsPayload(DateRangePayload):
    clear_existing: bool = False
    slots: list[SlotPayload] = Field(default_factory=list)


class ScheduleResponse(BaseModel):
    success: bool
    preview: bool
    slots_created: int
    slots_skipped: int
    errors: list[str]
    warnings: list[str]
    slots: list[SlotOut]
    projected_scores: dict[int, float] = Field(default_factory=dict)


class SupernumeraryPreviewPayload(DateRangePayload):
    organization_id: int | None = None
    clear_existing: bool = False


class SupernumeraryAssignmentPayload(BaseModel):
    duty_type_id: int
    personnel_id: int
    period_start: date
    period_end: date
    points: float = Field(default=0.0, ge=0)
    organization_id: int | None = None
    duty_type_name: str = ""
    activation_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_period(self) -> SupernumeraryAssignmentPayload:
        if self.period_start > self.period_end:
            raise ValueError("period_start must be before or equal to period_end")
        return self


class SupernumeraryAssignmentOut(SupernumeraryAssignmentPayload):
    id: int | None = None


class SupernumeraryPreviewResponse(BaseModel):
    assignments: list[SupernumeraryAssignmentOut]
    warnings: list[str]
    already_covered: int


class ApplySupernumeraryPayload(DateRangePayload):
    clear_existing: bool = False
    assignments: list[SupernumeraryAssignmentPayload] = Field(default_factory=list)


class SupernumeraryApplyResponse(BaseModel):
    success: bool
    created: int
    warnings: list[str]
    errors: list[str]
    assignments: list[SupernumeraryAssignmentOut]


class SwapCreatePayload(BaseModel):
    giving_slot_id: int
    receiving_slot_id: int
    requested_by: int | None = None
    reason: str | None = None


class SwapPartnerPayload(BaseModel):
    personnel_id: int
    reason: str | None = None


class ApprovalActionPayload(BaseModel):
    approver_id: int | None = None
    reason: str | None = None


class RecommendationPayload(BaseModel):
    recommender_id: int
    recommendation: Literal["recommend", "not_recommend"]
    comment: str | None = None


class ApprovalOut(BaseModel):
    id: int | None
    approval_order: int
    approver_type: str
    is_approver: bool
    scope_unit_id: int | None
    status: str
    approved_by: int | None
    approved_at: datetime | None
    rejection_reason: str | None


class RecommendationOut(BaseModel):
    id: int | None
    recommender_id: int
    recommendation: str
    comment: str | None
    created_at: datetime | None


class SwapRequestOut(BaseModel):
    id: int | None
    personnel_id: int
    swap_partner_id: int
    giving_slot_id: int
    receiving_slot_id: int
    status: str
    partner_accepted: bool
    partner_accepted_at: datetime | None
    rejection_reason: str | None
    executed_at: datetime | None
    approvals: list[ApprovalOut]
    recommendations: list[RecommendationOut]


class SwapPairOut(BaseModel):
    swap_pair_id: str
    status: str
    ready_to_execute: bool
    requests: list[SwapRequestOut]


def serialize_schedule_result(result: ScheduleResult) -> ScheduleResponse:
    return ScheduleResponse(
        success=result.success,
        preview=result.preview,
        slots_created=result.slots_created,
        slots_skipped=result.slots_skipped,
        errors=result.errors,
        warnings=result.warnings,
        slots=[
            SlotOut(
                id=slot.id,
                duty_type_id=slot.duty_type_id,
                duty_type_name=slot.duty_type_name,
                personnel_id=slot.personnel_id,
                date_assigned=slot.date_assigned,
                points=slot.points,
                assigned_by=slot.assigned_by,
                status=slot.status,
            )
            for slot in result.slots
        ],
        projected_scores=result.projected_scores,
    )


def serialize_supernumerary(assignment: PlannedSupernumerary) -> SupernumeraryAssignmentOut:
    return SupernumeraryAssignmentOut(
        id=assignment.id,
        duty_type_id=assignment.duty_type_id,
        duty_type_name=assignment.duty_type_name,
        personnel_id=assignment.personnel_id,
        period_start=assignment.period_start,
        period_end=assignment.period_end,
        points=assignment.points,
        organization_id=assignment.organization_id,
        activation_count=assignment.activation_count,
    )


def serialize_approval(step: ApprovalStep) -> ApprovalOut:
    return ApprovalOut(
        id=step.id,
        approval_order=step.approval_order,
        approver_type=step.approver_type.value,
        is_approver=step.is_approver,
        scope_unit_id=step.scope_unit_id,
        status=step.status.value,
        approved_by=step.approved_by,
        approved_at=step.approved_at,
        rejection_reason=step.rejection_reason,
    )


def serialize_recommendation(entry: RecommendationEntry) -> RecommendationOut:
    return RecommendationOut(
        id=entry.id,
        recommender_id=entry.recommender_id,
        recommendation=entry.recommendation.value,
        comment=entry.comment,
        created_at=entry.created_at,
    )


def serialize_swap_side(side: SwapRequestSide) -> SwapRequestOut:
    return SwapRequestOut(
        id=side.id,
        personnel_id=side.personnel_id,
        swap_partner_id=side.swap_partner_id,
        giving_slot_id=side.giving_slot_id,
        receiving_slot_id=side.receiving_slot_id,
        status=side.status.value,
        partner_accepted=side.partner_accepted,
        partner_accepted_at=side.partner_accepted_at,
        rejection_reason=side.rejection_reason,
        executed_at=side.executed_at,
        approvals=[serialize_approval(step) for step in side.chain.steps],
        recommendations=[serialize_recommendation(entry) for entry in side.recommendations],
    )


def serialize_swap_pair(pair: SwapPair) -> SwapPairOut:
    return SwapPairOut(
        swap_pair_id=pair.swap_pair_id,
        status=pair.status.value,
        ready_to_execute=pair.is_ready_to_execute,
        requests=[serialize_swap_side(side) for side in pair.sides],
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "environment": get_environment()}


@app.post("/api/scheduler", response_model=ScheduleResponse)
def run_scheduler(
    payload: SchedulerPayload,
    repository: SqlRepository = Depends(get_repository),
) -> ScheduleResponse:
    request = payload.as_request(assigned_by=payload.assigned_by, clear_existing=payload.clear_existing)
    if payload.preview:
        result = preview_schedule(repository, request)
    else:
        result = generate_schedule(repository, request)
    return serialize_schedule_result(result)


@app.post("/api/scheduler/apply", response_model=ScheduleResponse)
def apply_schedule(
    payload: ApplySlotsPayload,
    repository: SqlRepository = Depends(get_repository),
) -> ScheduleResponse:
    validate_request(payload.as_request(), get_max_range_days())
    slots = [
        PlannedSlot(
            duty_type_id=slot.duty_type_id,
            personnel_id=slot.personnel_id,
            date_assigned=slot.date_assigned,
            points=slot.points,
            assigned_by=slot.assigned_by,
            duty_type_name=slot.duty_type_name,
        )
        for slot in payload.slots
    ]
    result = apply_previewed_slots(
        repository,
        slots,
        clear_existing=payload.clear_existing,
        start_date=payload.start_date,
        end_date=payload.end_date,
        unit_id=payload.unit_id,
    )
    return serialize_schedule_result(result)


@app.post("/api/supernumerary/preview", response_model=SupernumeraryPreviewResponse)
def supernumerary_preview(
    payload: SupernumeraryPreviewPayload,
    repository: SqlRepository = Depends(get_repository),
) -> SupernumeraryPreviewResponse:
    plan = preview_supernumerary_assignments(
        repository,
        payload.unit_id,
        payload.organization_id,
        payload.start_date,
        payload.end_date,
        clear_existing=payload.clear_existing,
    )
    return SupernumeraryPreviewResponse(
        assignments=[serialize_supernumerary(a) for a in plan.assignments],
        warnings=plan.warnings,
        already_covered=plan.already_covered,
    )


@app.post("/api/supernumerary/apply", response_model=SupernumeraryApplyResponse)
def supernumerary_apply(
    payload: ApplySupernumeraryPayload,
    repository: SqlRepository = Depends(get_repository),
) -> SupernumeraryApplyResponse:
    validate_request(payload.as_request(), get_max_range_days())
    assignments = [
        PlannedSupernumerary(
            duty_type_id=a.duty_type_id,
            personnel_id=a.personnel_id,
            period_start=a.period_start,
            period_end=a.period_end,
            points=a.points,
            organization_id=a.organization_id,
            duty_type_name=a.duty_type_name,
            activation_count=a.activation_count,
        )
        for a in payload.assignments
    ]
    result = apply_supernumerary_assignments(
        repository,
        assignments,
        clear_existing=payload.clear_existing,
        start_date=payload.start_date,
        end_date=payload.end_date,
        unit_id=payload.unit_id,
    )
    return SupernumeraryApplyResponse(
        success=result.success,
        created=result.created,
        warnings=result.warnings,
        errors=result.errors,
        assignments=[serialize_supernumerary(a) for a in result.assignments],
    )


@app.post("/api/swaps", response_model=SwapPairOut, status_code=status.HTTP_201_CREATED)
def create_swap(
    payload: SwapCreatePayload,
    repository: SqlRepository = Depends(get_repository),
) -> SwapPairOut:
    pair = request_swap(
        repository,
        payload.giving_slot_id,
        payload.receiving_slot_id,
        requested_by=payload.requested_by,
        reason=payload.reason,
    )
    return serialize_swap_pair(pair)


@app.get("/api/swaps/{swap_pair_id}", response_model=SwapPairOut)
def read_swap(swap_pair_id: str, repository: SqlRepository = Depends(get_repository)) -> SwapPairOut:
    return serialize_swap_pair(get_swap(repository, swap_pair_id))


@app.post("/api/swaps/{swap_pair_id}/accept", response_model=SwapPairOut)
def accept_swap_route(
    swap_pair_id: str,
    payload: SwapPartnerPayload,
    repository: SqlRepository = Depends(get_repository),
) -> SwapPairOut:
    pair = accept_swap(repository, swap_pair_id, payload.personnel_id, accepted_by=payload.personnel_id)
    return serialize_swap_pair(pair)


@app.post("/api/swaps/{swap_pair_id}/decline", response_model=SwapPairOut)
def decline_swap_route(
    swap_pair_id: str,
    payload: SwapPartnerPayload,
    repository: SqlRepository = Depends(get_repository),
) -> SwapPairOut:
    pair = decline_swap(repository, swap_pair_id, payload.personnel_id, reason=payload.reason)
    return serialize_swap_pair(pair)


@app.post("/api/swap-requests/{request_id}/approvals/{approval_order}/approve", response_model=SwapPairOut)
def approve_swap_route(
    request_id: int,
    approval_order: int,
    payload: ApprovalActionPayload,
    repository: SqlRepository = Depends(get_repository),
) -> SwapPairOut:
    pair = approve_swap(repository, request_id, approval_order, approver_id=payload.approver_id)
    return serialize_swap_pair(pair)


@app.post("/api/swap-requests/{request_id}/approvals/{approval_order}/reject", response_model=SwapPairOut)
def reject_swap_route(
    request_id: int,
    approval_order: int,
    payload: ApprovalActionPayload,
    repository: SqlRepository = Depends(get_repository),
) -> SwapPairOut:
    pair = reject_swap(repository, request_id, approval_order, approver_id=payload.approver_id, reason=payload.reason)
    return serialize_swap_pair(pair)


@app.post(
    "/api/swap-requests/{request_id}/recommendations",
    response_model=RecommendationOut,
    status_code=status.HTTP_201_CREATED,
)
def recommend_swap_route(
    request_id: int,
    payload: RecommendationPayload,
    repository: SqlRepository = Depends(get_repository),
) -> RecommendationOut:
    entry = recommend_swap(
        repository,
        request_id,
        payload.recommender_id,
        payload.recommendation,
        comment=payload.comment,
    )
    return serialize_recommendation(entry)
