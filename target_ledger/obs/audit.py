"""Audit trail for ledger mutations."""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from target_ledger.models import AuditLog


@dataclass(slots=True)
class AuditLogRecord:
    """Structured audit entry for one mutation."""

    timestamp: str
    actor_id: int | None
    action: str
    resource_type: str
    resource_id: str | None
    payload: Any

    def to_json(self) -> str:
        return json.dumps(
            {
                "timestamp": self.timestamp,
                "actor_id": self.actor_id,
                "action": self.action,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "payload": self.payload,
            },
            default=str,
        )

    def to_dict(self) -> dict[str, Any]:
        return json.loads(self.to_json())


class AuditRecorder:
    """Writes an ``audit_logs`` row in its own session and echoes it to the ``audit`` logger.

    Runs after the ledger transaction commits; callers treat failures as non-fatal.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._logger = logger or logging.getLogger("audit")

    def record(
        self,
        *,
        actor_id: int | None,
        action: str,
        resource_type: str,
        resource_id: object | None,
        payload: dict[str, Any] | None = None,
    ) -> AuditLogRecord:
        record = AuditLogRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            payload=payload or {},
        )
        self._logger.info(record.to_json())

        session = self._session_factory()
        try:
            session.add(
                AuditLog(
                    actor_id=record.actor_id,
                    action=record.action,
                    resource_type=record.resource_type,
                    resource_id=record.resource_id,
                    payload=record.to_dict()["payload"],
                )
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        return record


__all__ = ["AuditLogRecord", "AuditRecorder"]
