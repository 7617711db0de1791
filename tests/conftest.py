from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterator
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_suite.db")
os.environ.setdefault("ENABLE_TRACING", "false")
os.environ.setdefault("ROOT_OWNER_ID", "1")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from target_ledger.api.deps import get_db_session, get_side_effects
from target_ledger.core.config import get_settings
from target_ledger.main import app
from target_ledger.models import Base
from target_ledger.obs import AuditRecorder
from target_ledger.services.effects import LedgerSideEffects
from target_ledger.services.events import LedgerEvent
from target_ledger.services.identity import Actor, ActorRole

DATABASE_URL = "sqlite+pysqlite:///./test_suite.db"


engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


class RecordingNotifier:
    """Collects published ledger events in memory."""

    def __init__(self) -> None:
        self.events: list[LedgerEvent] = []

    def publish(self, event: LedgerEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [event.action.value for event in self.events]


class DummyKafkaProducer:
    def __init__(self, *_: object, **__: object) -> None:
        self.messages: list[dict[str, object]] = []

    def send(self, topic: str, value: dict[str, object], headers: list[tuple[str, bytes]] | None = None) -> None:
        self.messages.append({"topic": topic, "value": json.dumps(value), "headers": headers})

    def flush(self) -> None:  # pragma: no cover - compatibility shim
        return None


@pytest.fixture(autouse=True)
def _kafka_producer_stub(monkeypatch: pytest.MonkeyPatch) -> Iterator[type[DummyKafkaProducer]]:
    monkeypatch.setattr("target_ledger.services.events.KafkaProducer", DummyKafkaProducer)
    yield DummyKafkaProducer


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session
    session.close()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def effects(db_session: Session, notifier: RecordingNotifier) -> LedgerSideEffects:
    return LedgerSideEffects(
        db_session,
        settings=get_settings(),
        notifier=notifier,
        audit_recorder=AuditRecorder(TestingSessionLocal),
    )


@pytest.fixture()
def root_actor() -> Actor:
    return Actor(owner_id=get_settings().root_owner_id, role=ActorRole.ROOT, display_name="Finance")


@pytest.fixture()
def owner_a() -> Actor:
    return Actor(owner_id=101, role=ActorRole.OWNER, display_name="Owner A")


@pytest.fixture()
def owner_b() -> Actor:
    return Actor(owner_id=102, role=ActorRole.OWNER, display_name="Owner B")


@pytest.fixture()
def client(db_session: Session, effects: LedgerSideEffects) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_side_effects] = lambda: effects

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db_session, None)
    app.dependency_overrides.pop(get_side_effects, None)


def actor_headers(owner_id: int, role: str = "OWNER") -> dict[str, str]:
    return {"X-Actor-Id": str(owner_id), "X-Actor-Role": role}


@pytest.fixture()
def root_headers() -> dict[str, str]:
    return actor_headers(get_settings().root_owner_id, "ROOT")


@pytest.fixture()
def headers_for():
    return actor_headers
