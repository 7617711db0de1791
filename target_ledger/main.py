"""FastAPI application entrypoint."""
from __future__ import annotations

from fastapi import FastAPI

from target_ledger.api.deps import ledger_error_handler
from target_ledger.api.routes import register_routes
from target_ledger.core.config import Settings, get_settings
from target_ledger.core.errors import LedgerError
from target_ledger.core.logging import configure_logging
from target_ledger.obs import (
    PrometheusMiddleware,
    initialise_tracing,
    instrument_fastapi_app,
    metrics_router,
)


def create_application(settings: Settings | None = None) -> FastAPI:
    """Application factory used by ASGI servers and tests."""
    configure_logging()
    settings = settings or get_settings()

    if settings.enable_tracing:
        initialise_tracing(service_name=settings.app_name, endpoint=settings.otel_exporter_endpoint)

    application = FastAPI(
        title=settings.app_name,
        version=settings.version,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
    )

    if settings.enable_metrics:
        application.add_middleware(PrometheusMiddleware)
        application.include_router(metrics_router)
    application.add_exception_handler(LedgerError, ledger_error_handler)
    register_routes(application)

    if settings.enable_tracing:
        instrument_fastapi_app(application)

    return application


app = create_application()
