"""Common dependencies for API routes."""
from __future__ import annotations

import logging
from collections.abc import Iterator

from fastapi import Depends, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from target_ledger.core.config import get_settings
from target_ledger.core.errors import (
    AuthorizationError,
    ConflictError,
    LedgerError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from target_ledger.db.session import SessionLocal
from target_ledger.services.effects import LedgerSideEffects
from target_ledger.services.identity import Actor, ActorRole, resolve_actor

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], int], ...] = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (TransientStoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_actor(
    x_actor_id: int = Header(..., description="Owner id of the caller"),
    x_actor_role: ActorRole = Header(default=ActorRole.OWNER),
    x_actor_name: str | None = Header(default=None),
) -> Actor:
    """Identity asserted by the upstream identity provider."""

    return resolve_actor(x_actor_id, x_actor_role, x_actor_name, root_owner_id=get_settings().root_owner_id)


def get_side_effects(session: Session = Depends(get_db_session)) -> LedgerSideEffects:
    return LedgerSideEffects(session, settings=get_settings())


def error_status(exc: LedgerError) -> int:
    """HTTP status code for a service error."""

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Translate a service error raised by any route into the matching HTTP response."""

    status_code = error_status(exc)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("ledger error", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


__all__ = ["error_status", "get_actor", "get_db_session", "get_side_effects", "ledger_error_handler"]
