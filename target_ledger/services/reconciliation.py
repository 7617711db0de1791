"""Bulk recomputation of every derived figure, plus per-target drift diagnostics."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from target_ledger.core.config import Settings, get_settings
from target_ledger.db.session import atomic
from target_ledger.models import (
    FundTransfer,
    ProgressEntry,
    ProgressStatus,
    Target,
    TargetStatus,
    TransferStatus,
)
from target_ledger.obs import RECONCILIATION_RUN_COUNTER
from target_ledger.services.aggregation import (
    ZERO,
    TargetMetrics,
    compute_target_metrics,
    recompute_rollup,
    to_money,
)
from target_ledger.services.effects import LedgerSideEffects
from target_ledger.services.events import LedgerAction, LedgerEvent
from target_ledger.services.targets import TargetNotFoundError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconciliationReport:
    """Summary of a reconciliation pass."""

    targets_recomputed: int = 0
    rollups_recomputed: int = 0
    periods: list[date] = field(default_factory=list)


@dataclass(slots=True)
class TargetDiagnostics:
    """Raw ledger rows for a target next to several evaluations of its totals."""

    target: Target
    progress_entries: list[ProgressEntry]
    transfers_in: list[FundTransfer]
    transfers_out: list[FundTransfer]
    metrics: TargetMetrics
    approved_sum: Decimal
    all_status_sum: Decimal
    pending_sum: Decimal
    expected_net_amount: Decimal
    drift: bool


class ReconciliationService:
    """Recomputes every ACTIVE target and every period roll-up from ledger rows."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        effects: LedgerSideEffects | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._effects = effects or LedgerSideEffects(session, settings=self._settings)

    @property
    def root_owner_id(self) -> int:
        return self._settings.root_owner_id

    def recalculate_all(self) -> ReconciliationReport:
        """Idempotent full pass.

        Publishes a ``recalculated`` event with fresh metrics for every target
        and every roll-up. Each roll-up is committed on its own.
        """

        report = ReconciliationReport()
        session = self._session
        hooks = self._effects.hooks()

        constituents = session.scalars(
            select(Target)
            .where(Target.status == TargetStatus.ACTIVE, Target.owner_id != self.root_owner_id)
            .order_by(Target.id)
        ).all()
        for target in constituents:
            metrics = compute_target_metrics(session, target, root_owner_id=self.root_owner_id)
            report.targets_recomputed += 1
            event = LedgerEvent.build(
                action=LedgerAction.RECALCULATED,
                target_id=target.id,
                owner_id=target.owner_id,
                period_start=target.period_start,
                metrics=metrics,
            )
            hooks.add("notify", lambda event=event: self._effects.publish(event))

        report.periods = list(
            session.scalars(
                select(Target.period_start)
                .where(Target.status == TargetStatus.ACTIVE)
                .distinct()
                .order_by(Target.period_start)
            )
        )
        session.commit()

        for period_start in report.periods:
            with atomic(session):
                result = recompute_rollup(session, period_start, root_owner_id=self.root_owner_id)
            if result is None:
                continue
            report.rollups_recomputed += 1
            event = LedgerEvent.build(
                action=LedgerAction.RECALCULATED,
                target_id=result.target_id,
                owner_id=self.root_owner_id,
                period_start=period_start,
                metrics=result.metrics,
            )
            hooks.add("notify", lambda event=event: self._effects.publish(event))
        hooks.run()

        RECONCILIATION_RUN_COUNTER.inc()
        logger.info(
            "reconciliation complete",
            extra={
                "targets_recomputed": report.targets_recomputed,
                "rollups_recomputed": report.rollups_recomputed,
                "periods": [period.isoformat() for period in report.periods],
            },
        )
        return report

    def diagnose_target(self, target_id: int) -> TargetDiagnostics:
        session = self._session
        target = session.get(Target, target_id)
        if target is None:
            raise TargetNotFoundError(f"Target '{target_id}' was not found")

        entries = list(
            session.scalars(
                select(ProgressEntry).where(ProgressEntry.target_id == target_id).order_by(ProgressEntry.id)
            )
        )
        transfers_in = list(
            session.scalars(
                select(FundTransfer).where(FundTransfer.to_owner_id == target.owner_id).order_by(FundTransfer.id)
            )
        )
        transfers_out = list(
            session.scalars(
                select(FundTransfer).where(FundTransfer.from_owner_id == target.owner_id).order_by(FundTransfer.id)
            )
        )
        metrics = compute_target_metrics(session, target, root_owner_id=self.root_owner_id)

        approved_sum = sum((to_money(e.amount) for e in entries if e.status == ProgressStatus.APPROVED), ZERO)
        all_status_sum = sum((to_money(e.amount) for e in entries), ZERO)
        pending_sum = sum((to_money(e.amount) for e in entries if e.status == ProgressStatus.PENDING), ZERO)

        if target.owner_id == self.root_owner_id:
            expected_net = metrics.net_amount
            drift = to_money(target.target_amount) != metrics.target_amount
        else:
            shared_in = sum(
                (to_money(t.amount) for t in transfers_in if t.status == TransferStatus.ACTIVE), ZERO
            )
            shared_out = sum(
                (to_money(t.amount) for t in transfers_out if t.status == TransferStatus.ACTIVE), ZERO
            )
            expected_net = approved_sum + shared_in - shared_out
            drift = expected_net != metrics.net_amount

        if drift:
            logger.warning("ledger drift detected", extra={"target_id": target_id})

        return TargetDiagnostics(
            target=target,
            progress_entries=entries,
            transfers_in=transfers_in,
            transfers_out=transfers_out,
            metrics=metrics,
            approved_sum=approved_sum,
            all_status_sum=all_status_sum,
            pending_sum=pending_sum,
            expected_net_amount=expected_net,
            drift=drift,
        )


__all__ = ["ReconciliationReport", "ReconciliationService", "TargetDiagnostics"]
