"""Peer-to-peer fund transfers between owners."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from target_ledger.core.errors import ConflictError, NotFoundError, ValidationError
from target_ledger.db.session import atomic, serializable_transaction
from target_ledger.models import FundTransfer, Target, TargetStatus, TransferStatus
from target_ledger.services.aggregation import compute_target_metrics, to_money
from target_ledger.services.effects import LedgerSideEffects, PostCommitHooks
from target_ledger.services.events import LedgerAction, LedgerEvent
from target_ledger.services.identity import Actor, require_root, require_self_or_root

logger = logging.getLogger(__name__)


class SelfTransferError(ConflictError):
    """Raised when sender and recipient are the same owner."""


class NoActiveTargetError(ConflictError):
    """Raised when the sender has no ACTIVE target to draw from."""


class InsufficientFundsError(ConflictError):
    """Raised when the transfer exceeds the sender's available balance."""


class TransferNotFoundError(NotFoundError):
    """Raised when the transfer identifier does not exist."""


class NotReversibleError(ConflictError):
    """Raised when reversing a transfer that is not ACTIVE."""


def _latest_active_target(session: Session, owner_id: int) -> Target | None:
    return session.scalar(
        select(Target)
        .where(Target.owner_id == owner_id, Target.status == TargetStatus.ACTIVE)
        .order_by(Target.period_start.desc(), Target.id.desc())
        .limit(1)
    )


def _schedule_owner_cascade(
    session: Session,
    effects: LedgerSideEffects,
    hooks: PostCommitHooks,
    *,
    action: LedgerAction,
    owner_ids: tuple[int, ...],
    transfer_id: int,
) -> None:
    """Queue recomputes for every ACTIVE target of the parties, then each affected roll-up."""

    active = session.execute(
        select(Target.id, Target.owner_id, Target.period_start)
        .where(Target.owner_id.in_(owner_ids), Target.status == TargetStatus.ACTIVE)
        .order_by(Target.id)
    ).all()

    periods: list[date] = []
    for target_id, owner_id, period_start in active:
        effects.target_changed(
            hooks,
            action=action,
            target_id=target_id,
            owner_id=owner_id,
            period_start=period_start,
            entity_id=transfer_id,
            recompute_rollup=False,
        )
        if owner_id != effects.root_owner_id and period_start not in periods:
            periods.append(period_start)

    if not active:
        hooks.add(
            "notify",
            lambda: effects.publish(
                LedgerEvent.build(action=action, target_id=None, owner_id=owner_ids[0], entity_id=transfer_id)
            ),
        )
    for period_start in periods:
        hooks.add("recompute_rollup", lambda period=period_start: effects.refresh_rollup(period))


def transfer_funds(
    session: Session,
    effects: LedgerSideEffects,
    *,
    actor: Actor,
    from_owner_id: int,
    to_owner_id: int,
    amount: Decimal,
    reason: str | None = None,
    source_reference: str | None = None,
) -> FundTransfer:
    """Move achieved value from one owner to another.

    The balance check and the insert run in one serializable transaction. The
    available balance is the sender's net amount on their most recent ACTIVE
    target, which already deducts everything the sender has shared.
    """

    require_self_or_root(actor, from_owner_id, action="share funds on behalf of another owner")
    normalized_amount = to_money(amount)
    if normalized_amount <= 0:
        raise ValidationError("amount must be greater than zero")
    if from_owner_id == to_owner_id:
        raise SelfTransferError("Cannot transfer funds to the same owner")
    if effects.root_owner_id in (from_owner_id, to_owner_id):
        raise ValidationError("The root owner cannot take part in fund transfers")

    hooks = effects.hooks()
    with serializable_transaction(session):
        sender_target = _latest_active_target(session, from_owner_id)
        if sender_target is None:
            raise NoActiveTargetError(f"Owner '{from_owner_id}' has no active target")

        metrics = compute_target_metrics(session, sender_target, root_owner_id=effects.root_owner_id)
        if normalized_amount > metrics.net_amount:
            raise InsufficientFundsError(
                f"Transfer of {normalized_amount} exceeds available balance {metrics.net_amount}"
            )

        transfer = FundTransfer(
            from_owner_id=from_owner_id,
            to_owner_id=to_owner_id,
            source_reference=source_reference,
            amount=normalized_amount,
            reason=reason,
            status=TransferStatus.ACTIVE,
            created_by=actor.owner_id,
        )
        session.add(transfer)
        session.flush()
        transfer_id = transfer.id

    logger.info(
        "funds shared",
        extra={
            "transfer_id": transfer_id,
            "from_owner_id": from_owner_id,
            "to_owner_id": to_owner_id,
            "amount": str(normalized_amount),
        },
    )
    _schedule_owner_cascade(
        session,
        effects,
        hooks,
        action=LedgerAction.FUND_SHARED,
        owner_ids=(from_owner_id, to_owner_id),
        transfer_id=transfer_id,
    )
    effects.audit(
        hooks,
        actor=actor,
        action="transfer.create",
        resource_type="fund_transfer",
        resource_id=transfer_id,
        payload={
            "from_owner_id": from_owner_id,
            "to_owner_id": to_owner_id,
            "amount": str(normalized_amount),
            "reason": reason,
        },
    )
    hooks.run()
    return session.get(FundTransfer, transfer_id)


def reverse_transfer(
    session: Session,
    effects: LedgerSideEffects,
    *,
    actor: Actor,
    transfer_id: int,
    reason: str | None = None,
) -> FundTransfer:
    """Mark an ACTIVE transfer as REVERSED. Root only."""

    require_root(actor, action="reverse fund transfers")

    hooks = effects.hooks()
    with atomic(session):
        transfer = session.get(FundTransfer, transfer_id)
        if transfer is None:
            raise TransferNotFoundError(f"Fund transfer '{transfer_id}' was not found")
        if transfer.status != TransferStatus.ACTIVE:
            raise NotReversibleError(f"Fund transfer '{transfer_id}' is already {transfer.status.value}")

        transfer.status = TransferStatus.REVERSED
        transfer.reversed_by = actor.owner_id
        transfer.reversed_at = datetime.now(timezone.utc)
        transfer.reversal_reason = reason
        session.flush()
        owner_ids = (transfer.from_owner_id, transfer.to_owner_id)

    logger.info("fund transfer reversed", extra={"transfer_id": transfer_id})
    _schedule_owner_cascade(
        session,
        effects,
        hooks,
        action=LedgerAction.FUND_REVERSED,
        owner_ids=owner_ids,
        transfer_id=transfer_id,
    )
    effects.audit(
        hooks,
        actor=actor,
        action="transfer.reverse",
        resource_type="fund_transfer",
        resource_id=transfer_id,
        payload={"reason": reason},
    )
    hooks.run()
    return session.get(FundTransfer, transfer_id)


def get_transfer(session: Session, *, transfer_id: int) -> FundTransfer:
    transfer = session.get(FundTransfer, transfer_id)
    if transfer is None:
        raise TransferNotFoundError(f"Fund transfer '{transfer_id}' was not found")
    return transfer


def list_transfers(
    session: Session,
    *,
    owner_id: int | None = None,
    status: TransferStatus | None = None,
) -> list[FundTransfer]:
    statement = select(FundTransfer).order_by(FundTransfer.created_at.desc(), FundTransfer.id.desc())
    if owner_id is not None:
        statement = statement.where(
            or_(FundTransfer.from_owner_id == owner_id, FundTransfer.to_owner_id == owner_id)
        )
    if status is not None:
        statement = statement.where(FundTransfer.status == status)
    return list(session.scalars(statement))


__all__ = [
    "InsufficientFundsError",
    "NoActiveTargetError",
    "NotReversibleError",
    "SelfTransferError",
    "TransferNotFoundError",
    "get_transfer",
    "list_transfers",
    "reverse_transfer",
    "transfer_funds",
]
