"""Aggregation engine: derives target metrics from ledger rows.

Nothing here increments a stored counter. Every figure is re-derived from
``progress_entries`` and ``fund_transfers`` in a single SELECT, so two calls
with no intervening mutation agree exactly and concurrent callers converge
regardless of ordering. The one cached value, the roll-up target's
``target_amount``, is written by a single UPDATE whose value is an aggregate
sub-SELECT.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import String, cast, func, literal, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from target_ledger.core.errors import NotFoundError
from target_ledger.models import (
    FundTransfer,
    ProgressEntry,
    ProgressStatus,
    Target,
    TargetStatus,
    TransferStatus,
)
from target_ledger.obs import ROLLUP_RECOMPUTE_COUNTER, TARGET_RECOMPUTE_COUNTER

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: object) -> Decimal:
    """Normalise a database or user supplied amount to a two-place ``Decimal``."""

    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(slots=True, frozen=True)
class TargetMetrics:
    """Derived figures for a target. Never stored."""

    target_amount: Decimal
    total_progress: Decimal
    shared_in: Decimal
    shared_out: Decimal
    net_amount: Decimal
    progress_percentage: Decimal
    remaining_amount: Decimal

    @classmethod
    def derive(
        cls,
        *,
        target_amount: object,
        total_progress: object,
        shared_in: object,
        shared_out: object,
    ) -> "TargetMetrics":
        amount = to_money(target_amount)
        progress = to_money(total_progress)
        incoming = to_money(shared_in)
        outgoing = to_money(shared_out)
        net = progress + incoming - outgoing
        if amount > 0:
            percentage = (net / amount * 100).quantize(CENTS, rounding=ROUND_HALF_UP)
        else:
            percentage = ZERO
        return cls(
            target_amount=amount,
            total_progress=progress,
            shared_in=incoming,
            shared_out=outgoing,
            net_amount=net,
            progress_percentage=percentage,
            remaining_amount=max(ZERO, amount - net),
        )

    def as_dict(self) -> dict[str, str]:
        return {
            "target_amount": str(self.target_amount),
            "total_progress": str(self.total_progress),
            "shared_in": str(self.shared_in),
            "shared_out": str(self.shared_out),
            "net_amount": str(self.net_amount),
            "progress_percentage": str(self.progress_percentage),
            "remaining_amount": str(self.remaining_amount),
        }


@dataclass(slots=True, frozen=True)
class RollupResult:
    """Outcome of a roll-up recompute for one period."""

    target_id: int
    period_start: date
    constituent_count: int
    metrics: TargetMetrics


def _approved_progress_total(*criteria):
    return (
        select(func.coalesce(func.sum(ProgressEntry.amount), 0))
        .where(ProgressEntry.status == ProgressStatus.APPROVED, *criteria)
        .scalar_subquery()
    )


def _active_transfer_total(*criteria):
    return (
        select(func.coalesce(func.sum(FundTransfer.amount), 0))
        .where(FundTransfer.status == TransferStatus.ACTIVE, *criteria)
        .scalar_subquery()
    )


def _constituent_criteria(period_start: date, root_owner_id: int) -> tuple:
    return (
        Target.owner_id != root_owner_id,
        Target.status == TargetStatus.ACTIVE,
        Target.period_start == period_start,
    )


def compute_rollup_metrics(session: Session, period_start: date, *, root_owner_id: int) -> tuple[TargetMetrics, int]:
    """Sum the derived quantities of every ACTIVE non-root target of ``period_start``.

    Returns the metrics together with the number of constituent targets.
    """

    criteria = _constituent_criteria(period_start, root_owner_id)
    constituent_ids = select(Target.id).where(*criteria)
    constituent_owners = select(Target.owner_id).where(*criteria)

    statement = select(
        select(func.coalesce(func.sum(Target.target_amount), 0)).where(*criteria).scalar_subquery(),
        select(func.count(Target.id)).where(*criteria).scalar_subquery(),
        _approved_progress_total(ProgressEntry.target_id.in_(constituent_ids)),
        _active_transfer_total(FundTransfer.to_owner_id.in_(constituent_owners)),
        _active_transfer_total(FundTransfer.from_owner_id.in_(constituent_owners)),
    )
    target_total, count, progress, shared_in, shared_out = session.execute(statement).one()
    metrics = TargetMetrics.derive(
        target_amount=target_total,
        total_progress=progress,
        shared_in=shared_in,
        shared_out=shared_out,
    )
    return metrics, int(count or 0)


def compute_target_metrics(session: Session, target: Target, *, root_owner_id: int) -> TargetMetrics:
    """Derive the metrics of ``target`` from its ledgers.

    The root owner's target reports the roll-up of its period instead of its own
    (normally empty) ledger.
    """

    TARGET_RECOMPUTE_COUNTER.inc()
    if target.owner_id == root_owner_id:
        metrics, _ = compute_rollup_metrics(session, target.period_start, root_owner_id=root_owner_id)
        return metrics

    statement = select(
        _approved_progress_total(ProgressEntry.target_id == target.id),
        _active_transfer_total(FundTransfer.to_owner_id == target.owner_id),
        _active_transfer_total(FundTransfer.from_owner_id == target.owner_id),
    )
    progress, shared_in, shared_out = session.execute(statement).one()
    return TargetMetrics.derive(
        target_amount=target.target_amount,
        total_progress=progress,
        shared_in=shared_in,
        shared_out=shared_out,
    )


def recompute(session: Session, target_id: int, *, root_owner_id: int) -> TargetMetrics:
    target = session.get(Target, target_id)
    if target is None:
        raise NotFoundError(f"Target '{target_id}' was not found")
    return compute_target_metrics(session, target, root_owner_id=root_owner_id)


def _active_rollup_id(session: Session, period_start: date, root_owner_id: int) -> int | None:
    return session.scalar(
        select(Target.id).where(
            Target.owner_id == root_owner_id,
            Target.status == TargetStatus.ACTIVE,
            Target.period_start == period_start,
        )
    )


def recompute_rollup(session: Session, period_start: date, *, root_owner_id: int) -> RollupResult | None:
    """Rewrite the roll-up target of ``period_start`` from the constituent targets.

    Creates the roll-up when it is missing and the constituent total is non-zero.
    Creation may roll back the session's open transaction if another writer
    created the row first, so call this at a transaction boundary. The caller
    commits.
    """

    ROLLUP_RECOMPUTE_COUNTER.inc()
    criteria = _constituent_criteria(period_start, root_owner_id)
    target_total = select(func.coalesce(func.sum(Target.target_amount), 0)).where(*criteria)
    constituent_count = select(func.count(Target.id)).where(*criteria)

    rollup_id = _active_rollup_id(session, period_start, root_owner_id)
    if rollup_id is None:
        total = to_money(session.scalar(target_total))
        if total == ZERO:
            return None
        rollup = Target(
            owner_id=root_owner_id,
            target_amount=total,
            period_start=period_start,
            status=TargetStatus.ACTIVE,
            created_by=root_owner_id,
        )
        session.add(rollup)
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            logger.info("roll-up target created concurrently", extra={"period_start": period_start.isoformat()})
        rollup_id = _active_rollup_id(session, period_start, root_owner_id)
        if rollup_id is None:
            return None

    notes = (
        literal("Auto-aggregated from ")
        + cast(constituent_count.scalar_subquery(), String)
        + literal(f" targets for period {period_start.isoformat()}")
    )
    session.execute(
        update(Target)
        .where(Target.id == rollup_id)
        .values(target_amount=target_total.scalar_subquery(), notes=notes, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    session.get(Target, rollup_id, populate_existing=True)

    metrics, count = compute_rollup_metrics(session, period_start, root_owner_id=root_owner_id)
    logger.debug(
        "roll-up recomputed",
        extra={"period_start": period_start.isoformat(), "target_id": rollup_id, "constituents": count},
    )
    return RollupResult(target_id=rollup_id, period_start=period_start, constituent_count=count, metrics=metrics)


__all__ = [
    "CENTS",
    "RollupResult",
    "TargetMetrics",
    "compute_rollup_metrics",
    "compute_target_metrics",
    "recompute",
    "recompute_rollup",
    "to_money",
]
