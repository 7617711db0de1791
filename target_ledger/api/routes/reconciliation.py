"""Roll-up, reconciliation and diagnostics endpoints."""
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from target_ledger.api.deps import get_actor, get_db_session, get_side_effects
from target_ledger.schemas import ReconciliationReportRead, TargetDiagnosticsRead, TargetWithMetrics
from target_ledger.services.effects import LedgerSideEffects
from target_ledger.services.identity import Actor, require_root
from target_ledger.services.reconciliation import ReconciliationService
from target_ledger.services.targets import get_rollup

router = APIRouter(prefix="/targets")


@router.get("/rollups/{period_start}", response_model=TargetWithMetrics)
def read_rollup(
    period_start: date,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> TargetWithMetrics:
    return TargetWithMetrics.model_validate(get_rollup(session, effects, period_start=period_start))


@router.post("/reconciliation", response_model=ReconciliationReportRead)
def reconcile(
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> ReconciliationReportRead:
    """Recompute every ACTIVE target and period roll-up. Root only."""

    require_root(actor, action="run reconciliation")
    report = ReconciliationService(session, effects=effects).recalculate_all()
    return ReconciliationReportRead.model_validate(report)


@router.get("/{target_id}/diagnostics", response_model=TargetDiagnosticsRead)
def diagnostics(
    target_id: int,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> TargetDiagnosticsRead:
    require_root(actor, action="inspect ledger diagnostics")
    result = ReconciliationService(session, effects=effects).diagnose_target(target_id)
    return TargetDiagnosticsRead.model_validate(result)


__all__ = ["router"]
