from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient
from opentelemetry import trace

from target_ledger.obs import PrometheusMiddleware, initialise_tracing, ledger_span, metrics_router


def test_metrics_endpoint_exposes_counters() -> None:
    app = FastAPI()
    app.add_middleware(PrometheusMiddleware)
    app.include_router(metrics_router)

    client = TestClient(app)
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "ledger_rollup_recomputes_total" in response.text


def test_ledger_span_sets_attributes() -> None:
    initialise_tracing(service_name="unit-test-service", instrument_logging=False)

    with ledger_span("reconciliation.cycle", period="2024-01-01", skipped=None) as span:
        assert span.is_recording()
        assert span.attributes["period"] == "2024-01-01"
        assert "skipped" not in span.attributes
        assert trace.get_current_span() is span
