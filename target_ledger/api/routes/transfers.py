"""Fund transfer endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from target_ledger.api.deps import get_actor, get_db_session, get_side_effects
from target_ledger.models import TransferStatus
from target_ledger.schemas import FundTransferCreate, FundTransferRead, FundTransferReverse
from target_ledger.services.effects import LedgerSideEffects
from target_ledger.services.identity import Actor
from target_ledger.services.transfers import list_transfers, reverse_transfer, transfer_funds

router = APIRouter(prefix="/targets/fund-transfers")


@router.post("", response_model=FundTransferRead, status_code=status.HTTP_201_CREATED)
def share(
    payload: FundTransferCreate,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> FundTransferRead:
    """Share achieved value with another owner; the sender defaults to the caller."""

    transfer = transfer_funds(
        session,
        effects,
        actor=actor,
        from_owner_id=payload.from_owner_id if payload.from_owner_id is not None else actor.owner_id,
        to_owner_id=payload.to_owner_id,
        amount=payload.amount,
        reason=payload.reason,
        source_reference=payload.source_reference,
    )
    return FundTransferRead.model_validate(transfer)


@router.get("", response_model=list[FundTransferRead])
def history(
    owner_id: int | None = None,
    transfer_status: TransferStatus | None = Query(default=None, alias="status"),
    session: Session = Depends(get_db_session),
    actor: Actor = Depends(get_actor),
) -> list[FundTransferRead]:
    transfers = list_transfers(session, owner_id=owner_id, status=transfer_status)
    return [FundTransferRead.model_validate(transfer) for transfer in transfers]


@router.post("/{transfer_id}/reverse", response_model=FundTransferRead)
def reverse(
    transfer_id: int,
    payload: FundTransferReverse | None = None,
    session: Session = Depends(get_db_session),
    effects: LedgerSideEffects = Depends(get_side_effects),
    actor: Actor = Depends(get_actor),
) -> FundTransferRead:
    """Reverse an ACTIVE transfer. Root only."""

    transfer = reverse_transfer(
        session,
        effects,
        actor=actor,
        transfer_id=transfer_id,
        reason=payload.reason if payload is not None else None,
    )
    return FundTransferRead.model_validate(transfer)


__all__ = ["router"]
