"""Progress submission and approval endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from target_ledger.api.deps import get_actor, get_db_session, get_side_effects
from target_ledger.schemas import ProgressDecision, ProgressEntryRead, ProgressSubmit
from target_ledger.services.effects import LedgerSideEffects
from target_ledger.services.identity import Actor
from target_ledger.services.progress import decide_progress, list_progress, submit_progress

router = APIRouter(prefix="/targets")


@router.put("/progress/{entry_id}/decision", response_model=ProgressEntryRead)
def decide(
    entry_id: int,
    payload: ProgressDecision,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> ProgressEntryRead:
    """Approve or reject a progress entry. Root only."""

    entry = decide_progress(session, effects, actor=actor, entry_id=entry_id, decision=payload.decision)
    return ProgressEntryRead.model_validate(entry)


@router.post("/{target_id}/progress", response_model=ProgressEntryRead, status_code=status.HTTP_201_CREATED)
def submit(
    target_id: int,
    payload: ProgressSubmit,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> ProgressEntryRead:
    entry = submit_progress(
        session,
        effects,
        actor=actor,
        target_id=target_id,
        amount=payload.amount,
        category=payload.category,
        transaction_date=payload.transaction_date,
        source_reference=payload.source_reference,
        notes=payload.notes,
    )
    return ProgressEntryRead.model_validate(entry)


@router.get("/{target_id}/progress", response_model=list[ProgressEntryRead])
def history(
    target_id: int,
    session: Session = Depends(get_db_session),
    actor: Actor = Depends(get_actor),
) -> list[ProgressEntryRead]:
    return [ProgressEntryRead.model_validate(entry) for entry in list_progress(session, target_id=target_id)]


__all__ = ["router"]
