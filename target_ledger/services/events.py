"""Kafka publication of ledger change events."""
from __future__ import annotations

import enum
import json
import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Protocol
from uuid import uuid4

from kafka import KafkaProducer
from pydantic import BaseModel

from target_ledger.core.config import Settings, get_settings
from target_ledger.services.aggregation import TargetMetrics

logger = logging.getLogger(__name__)


class LedgerAction(str, enum.Enum):
    CREATED = "created"
    EXTENDED = "extended"
    UPDATED = "updated"
    DELETED = "deleted"
    PROGRESS_SUBMITTED = "progress_submitted"
    PROGRESS_APPROVED = "progress_approved"
    PROGRESS_REJECTED = "progress_rejected"
    FUND_SHARED = "fund_shared"
    FUND_REVERSED = "fund_reversed"
    RECALCULATED = "recalculated"


class LedgerEvent(BaseModel):
    """Serializable "something changed" notice. Consumers must not assume delivery."""

    event_id: str
    action: LedgerAction
    target_id: int | None
    owner_id: int | None
    entity_id: int | None = None
    period_start: date | None = None
    metrics: dict[str, str] | None = None
    occurred_at: datetime

    @classmethod
    def build(
        cls,
        *,
        action: LedgerAction,
        target_id: int | None,
        owner_id: int | None,
        period_start: date | None = None,
        entity_id: int | None = None,
        metrics: TargetMetrics | None = None,
    ) -> "LedgerEvent":
        return cls(
            event_id=uuid4().hex,
            action=action,
            target_id=target_id,
            owner_id=owner_id,
            entity_id=entity_id,
            period_start=period_start,
            metrics=metrics.as_dict() if metrics is not None else None,
            occurred_at=datetime.now(timezone.utc),
        )


class ChangeNotifier(Protocol):
    """Receives ledger events after a successful commit."""

    def publish(self, event: LedgerEvent) -> None:
        """Deliver ``event``; may raise, callers treat failures as non-fatal."""


class KafkaChangeNotifier:
    """Publishes ledger events to Kafka."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        producer_factory: Callable[[], KafkaProducer] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._producer_factory = producer_factory or self._default_factory
        self._producer: KafkaProducer | None = None

    def _default_factory(self) -> KafkaProducer:
        return KafkaProducer(
            bootstrap_servers=self._settings.kafka_bootstrap_servers.split(","),
            value_serializer=lambda value: json.dumps(value).encode("utf-8"),
        )

    def _get_producer(self) -> KafkaProducer:
        if self._producer is None:
            self._producer = self._producer_factory()
        return self._producer

    def publish(self, event: LedgerEvent) -> None:
        payload = event.model_dump(mode="json")
        producer = self._get_producer()
        logger.debug(
            "publishing ledger event",
            extra={"target_id": event.target_id, "action": event.action.value},
        )
        producer.send(self._settings.ledger_events_topic, value=payload)
        producer.flush()


__all__ = [
    "ChangeNotifier",
    "KafkaChangeNotifier",
    "LedgerAction",
    "LedgerEvent",
]
