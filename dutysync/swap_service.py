"""Swap workflow entry points: load the pair, apply one transition, persist.

Every transition runs in one transaction. When a transition leaves the pair
ready to execute, the slots change hands in that same transaction.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import contextmanager

from dutysync.commit import execute_swap
from dutysync.errors import NotFoundError, SwapWorkflowError
from dutysync.repository import SqlRepository
from dutysync.swaps import (
    Recommendation,
    RecommendationEntry,
    SwapPair,
    build_approval_chain,
    create_swap_pair,
)

logger = logging.getLogger(__name__)

UNSWAPPABLE_SLOT_STATUSES = ("completed", "missed")


@contextmanager
def _transaction(repository: SqlRepository):
    try:
        yield
    except Exception:
        repository.rollback()
        raise


def _finish(repository: SqlRepository, pair: SwapPair) -> SwapPair:
    repository.save_swap_pair(pair)
    if pair.is_ready_to_execute:
        execute_swap(repository, pair)
    else:
        repository.commit()
    return pair


def request_swap(
    repository: SqlRepository,
    giving_slot_id: int,
    receiving_slot_id: int,
    requested_by: int | None = None,
    reason: str | None = None,
) -> SwapPair:
    with _transaction(repository):
        giving = repository.get_slot(giving_slot_id)
        receiving = repository.get_slot(receiving_slot_id)
        if giving is None or receiving is None:
            missing = giving_slot_id if giving is None else receiving_slot_id
            raise NotFoundError(f"Duty slot {missing} not found")
        for slot in (giving, receiving):
            if slot.personnel_id is None:
                raise SwapWorkflowError(f"Duty slot {slot.id} has nobody assigned")
            if slot.status in UNSWAPPABLE_SLOT_STATUSES:
                raise SwapWorkflowError(f"Duty slot {slot.id} is {slot.status} and cannot be swapped")
            if repository.slot_has_open_swap(slot.id):
                raise SwapWorkflowError(f"Duty slot {slot.id} already has a pending swap")

        requester = repository.get_personnel(giving.personnel_id)
        partner = repository.get_personnel(receiving.personnel_id)
        units = repository.unit_nodes()
        pair = create_swap_pair(
            requester_personnel_id=requester.id,
            partner_personnel_id=partner.id,
            giving_slot_id=giving.id,
            receiving_slot_id=receiving.id,
            requester_steps=build_approval_chain(requester.unit_id, partner.unit_id, units),
            partner_steps=build_approval_chain(partner.unit_id, requester.unit_id, units),
            requested_by=requested_by,
            reason=reason,
        )
        repository.add_swap_pair(pair)
        repository.commit()
    logger.info(
        "Swap %s requested: personnel %s gives slot %s to personnel %s for slot %s",
        pair.swap_pair_id,
        requester.id,
        giving.id,
        partner.id,
        receiving.id,
    )
    return pair


def get_swap(repository: SqlRepository, swap_pair_id: str) -> SwapPair:
    return repository.load_swap_pair(swap_pair_id, for_update=False)


def _transition(repository: SqlRepository, load: Callable[[], SwapPair], apply: Callable[[SwapPair], object]) -> SwapPair:
    with _transaction(repository):
        pair = load()
        apply(pair)
        return _finish(repository, pair)


def accept_swap(repository: SqlRepository, swap_pair_id: str, personnel_id: int, accepted_by: int | None = None) -> SwapPair:
    pair = _transition(
        repository,
        lambda: repository.load_swap_pair(swap_pair_id),
        lambda p: p.accept(personnel_id, accepted_by=accepted_by),
    )
    logger.info("Swap %s accepted by personnel %s (status %s)", swap_pair_id, personnel_id, pair.status.value)
    return pair


def decline_swap(repository: SqlRepository, swap_pair_id: str, personnel_id: int, reason: str | None = None) -> SwapPair:
    pair = _transition(
        repository,
        lambda: repository.load_swap_pair(swap_pair_id),
        lambda p: p.decline(personnel_id, reason=reason),
    )
    logger.info("Swap %s declined by personnel %s", swap_pair_id, personnel_id)
    return pair


def approve_swap(
    repository: SqlRepository,
    request_id: int,
    approval_order: int,
    approver_id: int | None = None,
) -> SwapPair:
    pair = _transition(
        repository,
        lambda: repository.load_swap_pair_for_request(request_id),
        lambda p: p.approve(request_id, approval_order, approver_id=approver_id),
    )
    logger.info(
        "Swap request %s approval %s granted by %s (status %s)",
        request_id,
        approval_order,
        approver_id,
        pair.status.value,
    )
    return pair


def reject_swap(
    repository: SqlRepository,
    request_id: int,
    approval_order: int,
    approver_id: int | None = None,
    reason: str | None = None,
) -> SwapPair:
    pair = _transition(
        repository,
        lambda: repository.load_swap_pair_for_request(request_id),
        lambda p: p.reject(request_id, approval_order, approver_id=approver_id, reason=reason),
    )
    logger.info("Swap request %s rejected at approval %s by %s", request_id, approval_order, approver_id)
    return pair


def recommend_swap(
    repository: SqlRepository,
    request_id: int,
    recommender_id: int,
    recommendation: Recommendation | str,
    comment: str | None = None,
) -> RecommendationEntry:
    with _transaction(repository):
        pair = repository.load_swap_pair_for_request(request_id)
        entry = pair.recommend(request_id, recommender_id, recommendation, comment=comment)
        repository.save_swap_pair(pair)
        repository.commit()
    return entry
