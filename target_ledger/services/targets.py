"""Target lifecycle: create, extend, update, delete and read targets."""
from __future__ import annotations

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from target_ledger.core.errors import ConflictError, NotFoundError, ValidationError
from target_ledger.db.session import atomic
from target_ledger.models import (
    ProgressEntry,
    ProgressStatus,
    Target,
    TargetCategory,
    TargetStatus,
)
from target_ledger.services.aggregation import CENTS, TargetMetrics, compute_target_metrics, to_money
from target_ledger.services.effects import LedgerSideEffects
from target_ledger.services.events import LedgerAction
from target_ledger.services.identity import Actor, require_root, require_self_or_root

logger = logging.getLogger(__name__)

EnumT = TypeVar("EnumT", bound=enum.Enum)

UPDATABLE_FIELDS = frozenset(
    {"target_amount", "category", "status", "period_start", "period_end", "notes", "manual_net_amount"}
)


class DuplicateActiveTargetError(ConflictError):
    """Raised when an owner already has an ACTIVE target for the period."""


class TargetNotFoundError(NotFoundError):
    """Raised when the target identifier does not exist."""


class TargetNotActiveError(ConflictError):
    """Raised when an operation requires an ACTIVE target."""


class NegativeBalanceError(ConflictError):
    """Raised when an operation would leave the owner's available balance below zero."""


@dataclass(slots=True, frozen=True)
class TargetView:
    """A target together with its derived metrics."""

    target: Target
    metrics: TargetMetrics


def _load_target(session: Session, target_id: int) -> Target:
    target = session.get(Target, target_id)
    if target is None:
        raise TargetNotFoundError(f"Target '{target_id}' was not found")
    return target


def _ensure_no_active_duplicate(
    session: Session,
    *,
    owner_id: int,
    period_start: date,
    exclude_id: int | None = None,
) -> None:
    statement = select(Target.id).where(
        Target.owner_id == owner_id,
        Target.period_start == period_start,
        Target.status == TargetStatus.ACTIVE,
    )
    if exclude_id is not None:
        statement = statement.where(Target.id != exclude_id)
    with session.no_autoflush:
        existing = session.scalar(statement.limit(1))
    if existing is not None:
        raise DuplicateActiveTargetError(
            f"Owner '{owner_id}' already has an active target for period {period_start.isoformat()}"
        )


def _flush_target(session: Session, owner_id: int, period_start: date) -> None:
    try:
        session.flush()
    except IntegrityError as exc:
        raise DuplicateActiveTargetError(
            f"Owner '{owner_id}' already has an active target for period {period_start.isoformat()}"
        ) from exc


def _validate_amount(value: object, *, field: str) -> Decimal:
    try:
        amount = to_money(value)
    except ArithmeticError as exc:
        raise ValidationError(f"{field} must be a number") from exc
    if amount < 0:
        raise ValidationError(f"{field} must not be negative")
    return amount


def _parse_enum(enum_type: type[EnumT], value: object, *, field: str) -> EnumT:
    try:
        return enum_type(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown {field} {value!r}") from exc


def _audit_value(value: object) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def _view(session: Session, effects: LedgerSideEffects, target: Target) -> TargetView:
    metrics = compute_target_metrics(session, target, root_owner_id=effects.root_owner_id)
    return TargetView(target=target, metrics=metrics)


def create_target(
    session: Session,
    effects: LedgerSideEffects,
    *,
    actor: Actor,
    owner_id: int,
    target_amount: Decimal,
    category: TargetCategory | None,
    period_start: date,
    period_end: date | None = None,
    notes: str | None = None,
) -> TargetView:
    """Create an ACTIVE target for ``owner_id`` and refresh the period roll-up."""

    require_self_or_root(actor, owner_id, action="create targets for another owner")
    amount = _validate_amount(target_amount, field="target_amount")
    if period_end is not None and period_end < period_start:
        raise ValidationError("period_end must not precede period_start")

    hooks = effects.hooks()
    with atomic(session):
        _ensure_no_active_duplicate(session, owner_id=owner_id, period_start=period_start)
        target = Target(
            owner_id=owner_id,
            target_amount=amount,
            category=category,
            status=TargetStatus.ACTIVE,
            period_start=period_start,
            period_end=period_end,
            notes=notes,
            created_by=actor.owner_id,
        )
        session.add(target)
        _flush_target(session, owner_id, period_start)
        target_id = target.id

    logger.info("target created", extra={"target_id": target_id, "owner_id": owner_id})
    effects.target_changed(
        hooks,
        action=LedgerAction.CREATED,
        target_id=target_id,
        owner_id=owner_id,
        period_start=period_start,
    )
    effects.audit(
        hooks,
        actor=actor,
        action="target.create",
        resource_type="target",
        resource_id=target_id,
        payload={"owner_id": owner_id, "target_amount": str(amount), "period_start": period_start.isoformat()},
    )
    hooks.run()
    return _view(session, effects, _load_target(session, target_id))


def extend_target(
    session: Session,
    effects: LedgerSideEffects,
    *,
    actor: Actor,
    target_id: int,
    additional_amount: Decimal,
    period_end: date | None = None,
) -> TargetView:
    """Retire an ACTIVE target as EXTENDED and replace it with a larger one.

    The replacement starts with an empty progress history, so its opening net
    amount is only what the owner has received minus what they have shared.
    An extension that would open below zero is refused.
    """

    amount = _validate_amount(additional_amount, field="additional_amount")

    hooks = effects.hooks()
    with atomic(session):
        current = _load_target(session, target_id)
        require_self_or_root(actor, current.owner_id, action="extend another owner's target")
        if current.status != TargetStatus.ACTIVE:
            raise TargetNotActiveError(f"Target '{target_id}' is {current.status.value} and cannot be extended")

        current.status = TargetStatus.EXTENDED
        session.flush()

        replacement = Target(
            owner_id=current.owner_id,
            target_amount=to_money(current.target_amount) + amount,
            category=current.category,
            status=TargetStatus.ACTIVE,
            period_start=current.period_start,
            period_end=period_end or current.period_end,
            notes=current.notes,
            created_by=actor.owner_id,
            extended_from_id=current.id,
        )
        session.add(replacement)
        _flush_target(session, current.owner_id, current.period_start)
        if current.owner_id != effects.root_owner_id:
            opening = compute_target_metrics(session, replacement, root_owner_id=effects.root_owner_id)
            if opening.net_amount < 0:
                raise NegativeBalanceError(
                    f"Extending target '{target_id}' would open the replacement at net {opening.net_amount}; "
                    "shared funds exceed funds received"
                )
        owner_id = current.owner_id
        period_start = current.period_start
        replacement_id = replacement.id

    logger.info("target extended", extra={"target_id": target_id, "replacement_id": replacement_id})
    effects.target_changed(
        hooks,
        action=LedgerAction.EXTENDED,
        target_id=replacement_id,
        owner_id=owner_id,
        period_start=period_start,
        entity_id=target_id,
    )
    effects.audit(
        hooks,
        actor=actor,
        action="target.extend",
        resource_type="target",
        resource_id=target_id,
        payload={"additional_amount": str(amount), "replacement_id": replacement_id},
    )
    hooks.run()
    return _view(session, effects, _load_target(session, replacement_id))


def update_target(
    session: Session,
    effects: LedgerSideEffects,
    *,
    actor: Actor,
    target_id: int,
    changes: Mapping[str, Any],
) -> TargetView:
    """Apply a partial update. Only the root role may update targets.

    ``manual_net_amount`` records an approved adjustment entry that moves the
    target's net amount to the requested figure.
    """

    require_root(actor, action="update targets")
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unsupported target fields: {', '.join(sorted(unknown))}")

    hooks = effects.hooks()
    with atomic(session):
        target = _load_target(session, target_id)
        old_period = target.period_start

        if "target_amount" in changes:
            if changes["target_amount"] is None:
                raise ValidationError("target_amount must not be null")
            target.target_amount = _validate_amount(changes["target_amount"], field="target_amount")
        if "category" in changes:
            target.category = (
                _parse_enum(TargetCategory, changes["category"], field="category")
                if changes["category"] is not None
                else None
            )
        if "status" in changes:
            if changes["status"] is None:
                raise ValidationError("status must not be null")
            target.status = _parse_enum(TargetStatus, changes["status"], field="status")
        if "period_start" in changes and changes["period_start"] is not None:
            target.period_start = changes["period_start"]
        if "period_end" in changes:
            target.period_end = changes["period_end"]
        if "notes" in changes:
            target.notes = changes["notes"]
        if target.period_end is not None and target.period_end < target.period_start:
            raise ValidationError("period_end must not precede period_start")

        if target.status == TargetStatus.ACTIVE:
            _ensure_no_active_duplicate(
                session,
                owner_id=target.owner_id,
                period_start=target.period_start,
                exclude_id=target.id,
            )
        _flush_target(session, target.owner_id, target.period_start)

        adjustment: Decimal | None = None
        if changes.get("manual_net_amount") is not None:
            if target.owner_id == effects.root_owner_id:
                raise ValidationError("The roll-up target's net amount is derived and cannot be overridden")
            requested = to_money(changes["manual_net_amount"])
            if requested < 0:
                raise ValidationError("manual_net_amount must not be negative")
            current =compute_target_metrics(session, target, root_owner_id=effects.root_owner_id)
            difference = requested - current.net_amount
            if abs(difference) >= CENTS:
                adjustment = difference
                session.add(
                    ProgressEntry(
                        target_id=target.id,
                        owner_id=target.owner_id,
                        amount=difference,
                        category=target.category,
                        status=ProgressStatus.APPROVED,
                        transaction_date=datetime.now(timezone.utc).date(),
                        notes="Manual net amount adjustment",
                        decided_by=actor.owner_id,
                        decided_at=datetime.now(timezone.utc),
                    )
                )
                session.flush()

        owner_id = target.owner_id
        new_period = target.period_start

    logger.info("target updated", extra={"target_id": target_id, "fields": sorted(changes)})
    effects.target_changed(
        hooks,
        action=LedgerAction.UPDATED,
        target_id=target_id,
        owner_id=owner_id,
        period_start=new_period,
    )
    if new_period != old_period and owner_id != effects.root_owner_id:
        hooks.add("recompute_rollup", lambda: effects.refresh_rollup(old_period))
    effects.audit(
        hooks,
        actor=actor,
        action="target.update",
        resource_type="target",
        resource_id=target_id,
        payload={
            "changes": {key: _audit_value(value) for key, value in changes.items()},
            "adjustment": str(adjustment) if adjustment is not None else None,
        },
    )
    hooks.run()
    return _view(session, effects, _load_target(session, target_id))


def delete_target(
    session: Session,
    effects: LedgerSideEffects,
    *,
    actor: Actor,
    target_id: int,
) -> None:
    """Physically delete a target and its progress entries. Root only."""

    require_root(actor, action="delete targets")

    hooks = effects.hooks()
    with atomic(session):
        target = _load_target(session, target_id)
        owner_id = target.owner_id
        period_start = target.period_start
        session.delete(target)

    logger.info("target deleted", extra={"target_id": target_id, "owner_id": owner_id})
    effects.target_changed(
        hooks,
        action=LedgerAction.DELETED,
        target_id=target_id,
        owner_id=owner_id,
        period_start=period_start,
        recompute_target=False,
    )
    effects.audit(
        hooks,
        actor=actor,
        action="target.delete",
        resource_type="target",
        resource_id=target_id,
        payload={"owner_id": owner_id, "period_start": period_start.isoformat()},
    )
    hooks.run()


def get_target(session: Session, effects: LedgerSideEffects, *, target_id: int) -> TargetView:
    return _view(session, effects, _load_target(session, target_id))


def get_rollup(session: Session, effects: LedgerSideEffects, *, period_start: date) -> TargetView:
    """The ACTIVE roll-up target of ``period_start`` with its aggregated metrics."""

    rollup = session.scalar(
        select(Target).where(
            Target.owner_id == effects.root_owner_id,
            Target.status == TargetStatus.ACTIVE,
            Target.period_start == period_start,
        )
    )
    if rollup is None:
        raise TargetNotFoundError(f"No roll-up target exists for period {period_start.isoformat()}")
    return _view(session, effects, rollup)


def list_targets(
    session: Session,
    effects: LedgerSideEffects,
    *,
    status: TargetStatus | None = None,
    period_start: date | None = None,
    owner_id: int | None = None,
) -> list[TargetView]:
    statement = select(Target).order_by(Target.created_at.desc(), Target.id.desc())
    if status is not None:
        statement = statement.where(Target.status == status)
    if period_start is not None:
        statement = statement.where(Target.period_start == period_start)
    if owner_id is not None:
        statement = statement.where(Target.owner_id == owner_id)
    return [_view(session, effects, target) for target in session.scalars(statement)]


__all__ = [
    "DuplicateActiveTargetError",
    "NegativeBalanceError",
    "TargetNotActiveError",
    "TargetNotFoundError",
    "TargetView",
    "create_target",
    "delete_target",
    "extend_target",
    "get_rollup",
    "get_target",
    "list_targets",
    "update_target",
]
