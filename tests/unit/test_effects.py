from __future__ import annotations

import logging
from datetime import date

import pytest
from prometheus_client import REGISTRY
from sqlalchemy.orm import Session

from target_ledger.core.errors import NonFatalSideEffectError
from target_ledger.models import AuditLog
from target_ledger.services.effects import LedgerSideEffects, PostCommitHooks
from target_ledger.services.events import KafkaChangeNotifier, LedgerAction, LedgerEvent
from target_ledger.services.identity import Actor


def _failure_count(hook: str) -> float:
    return REGISTRY.get_sample_value("ledger_side_effect_failures_total", {"hook": hook}) or 0.0


def test_failing_hook_is_swallowed_and_later_hooks_still_run() -> None:
    hooks = PostCommitHooks()
    calls: list[str] = []

    def _boom() -> None:
        raise RuntimeError("broker down")

    before = _failure_count("notify")
    hooks.add("notify", _boom)
    hooks.add("audit", lambda: calls.append("audit"))

    failures = hooks.run()

    assert calls == ["audit"]
    assert len(failures) == 1
    assert isinstance(failures[0], NonFatalSideEffectError)
    assert failures[0].hook == "notify"
    assert isinstance(failures[0].cause, RuntimeError)
    assert _failure_count("notify") == before + 1
    assert len(hooks) == 0


def test_notify_only_change_publishes_without_metrics(effects: LedgerSideEffects, notifier) -> None:
    hooks = effects.hooks()
    effects.target_changed(
        hooks,
        action=LedgerAction.DELETED,
        target_id=7,
        owner_id=101,
        period_start=date(2024, 1, 1),
        recompute_target=False,
        recompute_rollup=False,
    )
    hooks.run()

    assert notifier.actions() == ["deleted"]
    assert notifier.events[0].metrics is None
    assert notifier.events[0].target_id == 7


def test_audit_hook_writes_row(db_session: Session, effects: LedgerSideEffects, owner_a: Actor) -> None:
    hooks = effects.hooks()
    effects.audit(
        hooks,
        actor=owner_a,
        action="target.create",
        resource_type="target",
        resource_id=5,
        payload={"amount": "10.00"},
    )
    assert hooks.run() == []

    row = db_session.query(AuditLog).one()
    assert row.actor_id == owner_a.owner_id
    assert row.resource_id == "5"
    assert row.payload == {"amount": "10.00"}


def test_kafka_notifier_sends_json_payload(_kafka_producer_stub) -> None:
    producers: list[object] = []

    def _factory():
        producer = _kafka_producer_stub()
        producers.append(producer)
        return producer

    notifier = KafkaChangeNotifier(producer_factory=_factory)
    event = LedgerEvent.build(action=LedgerAction.CREATED, target_id=3, owner_id=101, period_start=date(2024, 1, 1))
    notifier.publish(event)
    notifier.publish(event)

    assert len(producers) == 1
    message = producers[0].messages[0]
    assert message["topic"] == "ledger-events"
    assert '"action": "created"' in message["value"]
    assert '"period_start": "2024-01-01"' in message["value"]


def test_publish_failure_does_not_escape(db_session: Session, owner_a: Actor) -> None:
    class BrokenNotifier:
        def publish(self, event: LedgerEvent) -> None:
            raise ConnectionError("unreachable")

    effects = LedgerSideEffects(db_session, notifier=BrokenNotifier())
    hooks = effects.hooks()
    effects.target_changed(
        hooks,
        action=LedgerAction.UPDATED,
        target_id=None,
        owner_id=owner_a.owner_id,
        period_start=date(2024, 1, 1),
        recompute_rollup=False,
    )

    failures = hooks.run()

    assert [failure.hook for failure in failures] == ["notify"]
    assert isinstance(failures[0].cause, ConnectionError)


def test_failing_hook_is_logged_at_error(caplog: pytest.LogCaptureFixture) -> None:
    hooks = PostCommitHooks()

    def _boom() -> None:
        raise RuntimeError("audit store down")

    hooks.add("audit", _boom)
    with caplog.at_level(logging.ERROR, logger="target_ledger.services.effects"):
        hooks.run()

    records = [record for record in caplog.records if record.name == "target_ledger.services.effects"]
    assert [record.levelno for record in records] == [logging.ERROR]
    assert records[0].hook == "audit"
