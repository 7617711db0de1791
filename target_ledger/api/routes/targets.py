"""Target lifecycle endpoints."""
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from target_ledger.api.deps import get_actor, get_db_session, get_side_effects
from target_ledger.models import TargetStatus
from target_ledger.schemas import TargetCreate, TargetExtend, TargetUpdate, TargetWithMetrics
from target_ledger.services.effects import LedgerSideEffects
from target_ledger.services.identity import Actor
from target_ledger.services.targets import (
    create_target,
    delete_target,
    extend_target,
    get_target,
    list_targets,
    update_target,
)

router = APIRouter(prefix="/targets")


@router.post("", response_model=TargetWithMetrics, status_code=status.HTTP_201_CREATED)
def create(
    payload: TargetCreate,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> TargetWithMetrics:
    """Create an ACTIVE target; the owner defaults to the caller."""

    view = create_target(
        session,
        effects,
        actor=actor,
        owner_id=payload.owner_id if payload.owner_id is not None else actor.owner_id,
        target_amount=payload.target_amount,
        category=payload.category,
        period_start=payload.period_start,
        period_end=payload.period_end,
        notes=payload.notes,
    )
    return TargetWithMetrics.model_validate(view)


@router.get("", response_model=list[TargetWithMetrics])
def list_all(
    target_status: TargetStatus | None = Query(default=None, alias="status"),
    period_start: date | None = None,
    owner_id: int | None = None,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> list[TargetWithMetrics]:
    views = list_targets(session, effects, status=target_status, period_start=period_start, owner_id=owner_id)
    return [TargetWithMetrics.model_validate(view) for view in views]


@router.get("/{target_id}", response_model=TargetWithMetrics)
def read(
    target_id: int,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> TargetWithMetrics:
    return TargetWithMetrics.model_validate(get_target(session, effects, target_id=target_id))


@router.put("/{target_id}", response_model=TargetWithMetrics)
def update(
    target_id: int,
    payload: TargetUpdate,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> TargetWithMetrics:
    """Apply a partial update. Root only; fields that are sent must not be null."""

    view = update_target(
        session,
        effects,
        actor=actor,
        target_id=target_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return TargetWithMetrics.model_validate(view)


@router.delete("/{target_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(
    target_id: int,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> Response:
    delete_target(session, effects, actor=actor, target_id=target_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{target_id}/extend", response_model=TargetWithMetrics, status_code=status.HTTP_201_CREATED)
def extend(
    target_id: int,
    payload: TargetExtend,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> TargetWithMetrics:
    """Retire the target as EXTENDED and return its larger replacement."""

    view = extend_target(
        session,
        effects,
        actor=actor,
        target_id=target_id,
        additional_amount=payload.additional_amount,
        period_end=payload.period_end,
    )
    return TargetWithMetrics.model_validate(view)


__all__ = ["router"]
