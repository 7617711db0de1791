"""Top level API router registration."""
from fastapi import APIRouter, FastAPI

from target_ledger.api.routes import health, progress, reconciliation, targets, transfers


def register_routes(application: FastAPI) -> None:
    """Register all API routers with the FastAPI application.

    Routers with fixed path segments under ``/targets`` are included before the
    ``/targets/{target_id}`` routes.
    """
    api_router = APIRouter(prefix="/api")

    api_router.include_router(health.router, tags=["health"])
    api_router.include_router(transfers.router, tags=["fund-transfers"])
    api_router.include_router(reconciliation.router, tags=["reconciliation"])
    api_router.include_router(progress.router, tags=["progress"])
    api_router.include_router(targets.router, tags=["targets"])

    application.include_router(api_router)


__all__ = ["register_routes"]
