from __future__ import annotations

import logging
from datetime import date

from dutysync.commit import apply_previewed_slots
from dutysync.config import get_max_range_days
from dutysync.errors import NotFoundError
from dutysync.planner import ScheduleRequest, ScheduleResult, plan_schedule, validate_request
from dutysync.repository import SqlRepository
from dutysync.supernumerary import SupernumeraryPlan, plan_supernumerary

logger = logging.getLogger(__name__)


def _check_request(repository: SqlRepository, request: ScheduleRequest) -> None:
    validate_request(request, get_max_range_days())
    if repository.get_unit(request.unit_id) is None:
        raise NotFoundError(f"Unit {request.unit_id} not found")


def preview_schedule(repository: SqlRepository, request: ScheduleRequest) -> ScheduleResult:
    _check_request(repository, request)
    snapshot = repository.build_snapshot(
        request.unit_id, request.start_date, request.end_date, clear_existing=request.clear_existing
    )
    return plan_schedule(request, snapshot)


def generate_schedule(repository: SqlRepository, request: ScheduleRequest) -> ScheduleResult:
    preview = preview_schedule(repository, request)
    result = apply_previewed_slots(
        repository,
        preview.slots,
        clear_existing=request.clear_existing,
        start_date=request.start_date,
        end_date=request.end_date,
        unit_id=request.unit_id,
    )
    result.warnings = result.warnings + preview.warnings
    result.errors = preview.errors + result.errors
    result.slots_skipped += preview.slots_skipped
    result.success = preview.success and result.success
    result.projected_scores = preview.projected_scores
    return result


def preview_supernumerary_assignments(
    repository: SqlRepository,
    unit_id: int,
    organization_id: int | None,
    start_date: date,
    end_date: date,
    clear_existing: bool = False,
) -> SupernumeraryPlan:
    _check_request(repository, ScheduleRequest(unit_id=unit_id, start_date=start_date, end_date=end_date))
    snapshot = repository.build_snapshot(unit_id, start_date, end_date, clear_standby=clear_existing)
    return plan_supernumerary(
        snapshot,
        start_date,
        end_date,
        organization_id=organization_id,
    )
