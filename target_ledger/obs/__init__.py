"""Observability utilities."""

from .audit import AuditLogRecord, AuditRecorder
from .metrics import (
    RECONCILIATION_RUN_COUNTER,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    ROLLUP_RECOMPUTE_COUNTER,
    SIDE_EFFECT_FAILURE_COUNTER,
    TARGET_RECOMPUTE_COUNTER,
    PrometheusMiddleware,
    metrics_router,
)
from .tracing import (
    initialise_tracing,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    ledger_span,
)

__all__ = [
    "AuditLogRecord",
    "AuditRecorder",
    "PrometheusMiddleware",
    "RECONCILIATION_RUN_COUNTER",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "ROLLUP_RECOMPUTE_COUNTER",
    "SIDE_EFFECT_FAILURE_COUNTER",
    "TARGET_RECOMPUTE_COUNTER",
    "initialise_tracing",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "ledger_span",
    "metrics_router",
]
