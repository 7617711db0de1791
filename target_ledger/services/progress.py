"""Progress submission and approval workflow."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from target_ledger.core.errors import ConflictError, NotFoundError, ValidationError
from target_ledger.db.session import atomic
from target_ledger.models import ProgressEntry, ProgressStatus, Target, TargetCategory, TargetStatus
from target_ledger.services.aggregation import to_money
from target_ledger.services.effects import LedgerSideEffects
from target_ledger.services.events import LedgerAction
from target_ledger.services.identity import Actor, require_root, require_self_or_root
from target_ledger.services.targets import TargetNotActiveError, TargetNotFoundError

logger = logging.getLogger(__name__)


class ProgressEntryNotFoundError(NotFoundError):
    """Raised when the progress entry identifier does not exist."""


class AlreadyInStateError(ConflictError):
    """Raised when a decision matches the entry's current status."""


def submit_progress(
    session: Session,
    effects: LedgerSideEffects,
    *,
    actor: Actor,
    target_id: int,
    amount: Decimal,
    category: TargetCategory | None,
    transaction_date: date | None,
    source_reference: str | None = None,
    notes: str | None = None,
) -> ProgressEntry:
    """Record a PENDING contribution toward an ACTIVE target.

    A submission whose ``source_reference`` matches an existing entry of the
    same target updates that entry in place and keeps its status.
    """

    normalized_amount = to_money(amount)
    if normalized_amount <= 0:
        raise ValidationError("amount must be greater than zero")

    hooks = effects.hooks()
    with atomic(session):
        target = session.get(Target, target_id)
        if target is None:
            raise TargetNotFoundError(f"Target '{target_id}' was not found")
        require_self_or_root(actor, target.owner_id, action="submit progress for another owner")
        if target.status != TargetStatus.ACTIVE:
            raise TargetNotActiveError(f"Target '{target_id}' is {target.status.value} and accepts no progress")

        entry = None
        if source_reference:
            entry = session.scalar(
                select(ProgressEntry).where(
                    ProgressEntry.target_id == target_id,
                    ProgressEntry.source_reference == source_reference,
                )
            )
        if entry is None:
            entry = ProgressEntry(
                target_id=target_id,
                owner_id=target.owner_id,
                source_reference=source_reference,
                status=ProgressStatus.PENDING,
            )
            session.add(entry)
        entry.amount = normalized_amount
        entry.category = category
        entry.transaction_date = transaction_date
        if notes is not None:
            entry.notes = notes
        session.flush()

        entry_id = entry.id
        counted = entry.status == ProgressStatus.APPROVED
        owner_id = target.owner_id
        period_start = target.period_start

    logger.info(
        "progress submitted",
        extra={"target_id": target_id, "entry_id": entry_id, "source_reference": source_reference},
    )
    effects.target_changed(
        hooks,
        action=LedgerAction.PROGRESS_SUBMITTED,
        target_id=target_id,
        owner_id=owner_id,
        period_start=period_start,
        entity_id=entry_id,
        recompute_target=counted,
        recompute_rollup=counted and owner_id != effects.root_owner_id,
    )
    effects.audit(
        hooks,
        actor=actor,
        action="progress.submit",
        resource_type="progress_entry",
        resource_id=entry_id,
        payload={"target_id": target_id, "amount": str(normalized_amount), "source_reference": source_reference},
    )
    hooks.run()
    return session.get(ProgressEntry, entry_id)


def decide_progress(
    session: Session,
    effects: LedgerSideEffects,
    *,
    actor: Actor,
    entry_id: int,
    decision: ProgressStatus | str,
) -> ProgressEntry:
    """Approve or reject a progress entry. Root only.

    Approved and rejected entries may be toggled; the aggregates follow the
    entry's status each time.
    """

    require_root(actor, action="decide progress entries")
    try:
        status = ProgressStatus(str(getattr(decision, "value", decision)).strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown decision {decision!r}") from exc
    if status not in (ProgressStatus.APPROVED, ProgressStatus.REJECTED):
        raise ValidationError("decision must be APPROVED or REJECTED")

    hooks = effects.hooks()
    with atomic(session):
        entry = session.get(ProgressEntry, entry_id)
        if entry is None:
            raise ProgressEntryNotFoundError(f"Progress entry '{entry_id}' was not found")
        previous = entry.status
        if previous == status:
            raise AlreadyInStateError(f"Progress entry '{entry_id}' is already {status.value}")

        entry.status = status
        entry.decided_by = actor.owner_id
        entry.decided_at = datetime.now(timezone.utc)
        session.flush()

        target_id = entry.target_id
        owner_id = entry.target.owner_id
        period_start = entry.target.period_start

    affects_totals = status == ProgressStatus.APPROVED or previous == ProgressStatus.APPROVED
    action = LedgerAction.PROGRESS_APPROVED if status == ProgressStatus.APPROVED else LedgerAction.PROGRESS_REJECTED
    logger.info(
        "progress decided",
        extra={"entry_id": entry_id, "from_status": previous.value, "to_status": status.value},
    )
    effects.target_changed(
        hooks,
        action=action,
        target_id=target_id,
        owner_id=owner_id,
        period_start=period_start,
        entity_id=entry_id,
        recompute_target=affects_totals,
        recompute_rollup=affects_totals and owner_id != effects.root_owner_id,
    )
    effects.audit(
        hooks,
        actor=actor,
        action="progress.decide",
        resource_type="progress_entry",
        resource_id=entry_id,
        payload={"from_status": previous.value, "to_status": status.value},
    )
    hooks.run()
    return session.get(ProgressEntry, entry_id)


def list_progress(session: Session, *, target_id: int) -> list[ProgressEntry]:
    if session.get(Target, target_id) is None:
        raise TargetNotFoundError(f"Target '{target_id}' was not found")
    statement = (
        select(ProgressEntry)
        .where(ProgressEntry.target_id == target_id)
        .order_by(
            ProgressEntry.transaction_date.desc(),
            ProgressEntry.created_at.desc(),
            ProgressEntry.id.desc(),
        )
    )
    return list(session.scalars(statement))


__all__ = [
    "AlreadyInStateError",
    "ProgressEntryNotFoundError",
    "decide_progress",
    "list_progress",
    "submit_progress",
]
