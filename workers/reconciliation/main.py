"""Asynchronous worker running the ledger reconciliation pass."""

from __future__ import annotations

import asyncio
import logging

from target_ledger.core.config import get_settings
from target_ledger.core.logging import configure_logging
from target_ledger.db.session import SessionLocal
from target_ledger.obs import initialise_tracing, ledger_span
from target_ledger.services.reconciliation import ReconciliationReport, ReconciliationService

LOGGER = logging.getLogger(__name__)


async def run_once(service: ReconciliationService) -> ReconciliationReport:
    """Execute a single reconciliation cycle."""

    with ledger_span("reconciliation.cycle") as span:
        report = service.recalculate_all()
        span.set_attribute("ledger.targets_recomputed", report.targets_recomputed)
        span.set_attribute("ledger.rollups_recomputed", report.rollups_recomputed)
    LOGGER.info(
        "reconciliation cycle complete",
        extra={
            "targets_recomputed": report.targets_recomputed,
            "rollups_recomputed": report.rollups_recomputed,
        },
    )
    return report


async def run() -> None:
    """Continuously reconcile at the configured cadence."""

    settings = get_settings()
    if settings.enable_tracing:
        initialise_tracing(
            service_name="ledger-reconciliation-worker",
            endpoint=settings.otel_exporter_endpoint,
            instrument_logging=False,
        )
    interval = max(60, settings.reconciliation_interval_seconds)
    LOGGER.info("starting reconciliation worker", extra={"interval_seconds": interval})
    while True:
        with SessionLocal() as session:
            service = ReconciliationService(session, settings=settings)
            await run_once(service)
        await asyncio.sleep(interval)


def main() -> None:
    configure_logging()
    try:
        asyncio.run(run())
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown
        LOGGER.info("reconciliation worker stopped")


if __name__ == "__main__":
    main()
