"""SQLAlchemy session management."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from target_ledger.core.config import get_settings
from target_ledger.core.errors import TransientStoreError
from target_ledger.obs import instrument_sqlalchemy_engine

settings = get_settings()
engine = create_engine(settings.database_url, pool_pre_ping=True)
if settings.enable_tracing:
    instrument_sqlalchemy_engine(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_session() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def atomic(session: Session) -> Iterator[None]:
    """Run a unit of work and commit it, translating connectivity failures."""

    try:
        yield
        session.commit()
    except (OperationalError, DisconnectionError) as exc:
        session.rollback()
        raise TransientStoreError("Ledger store is temporarily unavailable") from exc
    except Exception:
        session.rollback()
        raise


@contextmanager
def serializable_transaction(session: Session) -> Iterator[None]:
    """Like :func:`atomic` but under SERIALIZABLE isolation (``BEGIN IMMEDIATE`` on SQLite)."""

    bind = session.get_bind()
    if bind is None:
        raise RuntimeError("Session is not bound to an engine")

    dialect = bind.dialect.name
    try:
        if dialect == "sqlite":
            session.execute(text("BEGIN IMMEDIATE"))
        else:
            session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))
    except (OperationalError, DisconnectionError) as exc:
        session.rollback()
        raise TransientStoreError("Ledger store is temporarily unavailable") from exc

    with atomic(session):
        yield


__all__ = ["SessionLocal", "atomic", "engine", "get_session", "serializable_transaction"]
