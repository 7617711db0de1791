"""Post-commit side effects: recompute, change notification and audit.

Mutations commit first and then run their hooks. A failing hook never rolls
back or fails the mutation; it is logged, counted, and left for the
reconciliation job to repair.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from target_ledger.core.config import Settings, get_settings
from target_ledger.core.errors import NonFatalSideEffectError
from target_ledger.db.session import atomic
from target_ledger.models import Target
from target_ledger.obs import SIDE_EFFECT_FAILURE_COUNTER, AuditRecorder
from target_ledger.services.aggregation import compute_target_metrics, recompute_rollup
from target_ledger.services.events import ChangeNotifier, KafkaChangeNotifier, LedgerAction, LedgerEvent
from target_ledger.services.identity import Actor

logger = logging.getLogger(__name__)


class PostCommitHooks:
    """Ordered callbacks run once the ledger transaction has committed."""

    def __init__(self) -> None:
        self._hooks: list[tuple[str, Callable[[], Any]]] = []

    def add(self, name: str, callback: Callable[[], Any]) -> None:
        self._hooks.append((name, callback))

    def __len__(self) -> int:
        return len(self._hooks)

    def run(self) -> list[NonFatalSideEffectError]:
        failures: list[NonFatalSideEffectError] = []
        hooks, self._hooks = self._hooks, []
        for name, callback in hooks:
            try:
                callback()
            except Exception as exc:
                error = NonFatalSideEffectError(name, exc)
                SIDE_EFFECT_FAILURE_COUNTER.labels(hook=name).inc()
                logger.error(str(error), exc_info=exc, extra={"hook": name})
                failures.append(error)
        return failures


class LedgerSideEffects:
    """Schedules the recompute cascade, events and audit records for a mutation."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        notifier: ChangeNotifier | None = None,
        audit_recorder: AuditRecorder | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        if notifier is None and self._settings.enable_event_publishing:
            notifier = KafkaChangeNotifier(settings=self._settings)
        self._notifier = notifier
        self._audit = audit_recorder or AuditRecorder(sessionmaker(bind=session.get_bind()))

    @property
    def root_owner_id(self) -> int:
        return self._settings.root_owner_id

    def hooks(self) -> PostCommitHooks:
        return PostCommitHooks()

    def target_changed(
        self,
        hooks: PostCommitHooks,
        *,
        action: LedgerAction,
        target_id: int | None,
        owner_id: int,
        period_start: date,
        entity_id: int | None = None,
        recompute_target: bool = True,
        recompute_rollup: bool | None = None,
    ) -> None:
        """Queue the recompute cascade for one target and its period's roll-up."""

        if recompute_rollup is None:
            recompute_rollup = owner_id != self.root_owner_id

        if recompute_target and target_id is not None:
            hooks.add(
                "recompute_target",
                lambda: self._recompute_and_publish(target_id, action=action, entity_id=entity_id),
            )
        else:
            hooks.add(
                "notify",
                lambda: self.publish(
                    LedgerEvent.build(
                        action=action,
                        target_id=target_id,
                        owner_id=owner_id,
                        period_start=period_start,
                        entity_id=entity_id,
                    )
                ),
            )
        if recompute_rollup:
            hooks.add("recompute_rollup", lambda: self.refresh_rollup(period_start))

    def audit(
        self,
        hooks: PostCommitHooks,
        *,
        actor: Actor,
        action: str,
        resource_type: str,
        resource_id: object | None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        hooks.add(
            "audit",
            lambda: self._audit.record(
                actor_id=actor.owner_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                payload=payload,
            ),
        )

    def publish(self, event: LedgerEvent) -> None:
        if self._notifier is None:
            return
        self._notifier.publish(event)

    def refresh_rollup(self, period_start: date):
        with atomic(self._session):
            result = recompute_rollup(self._session, period_start, root_owner_id=self.root_owner_id)
        return result

    def _recompute_and_publish(self, target_id: int, *, action: LedgerAction, entity_id: int | None) -> None:
        with atomic(self._session):
            target = self._session.get(Target, target_id)
            if target is None:
                return
            metrics = compute_target_metrics(self._session, target, root_owner_id=self.root_owner_id)
            event = LedgerEvent.build(
                action=action,
                target_id=target.id,
                owner_id=target.owner_id,
                period_start=target.period_start,
                entity_id=entity_id,
                metrics=metrics,
            )
        self.publish(event)


__all__ = ["LedgerSideEffects", "PostCommitHooks"]
