"""Seed script for demo targets, including legacy-format progress rows."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from target_ledger.core.config import get_settings
from target_ledger.db.session import SessionLocal, engine
from target_ledger.models import Base, ProgressEntry, ProgressStatus, Target, TargetCategory, TargetStatus
from target_ledger.services.reconciliation import ReconciliationService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_PERIOD = date(2024, 1, 1)

# owner_id, amount, category, legacy progress rows as (amount, raw status)
SEED_TARGETS = [
    (101, Decimal("1000.00"), TargetCategory.EMPLOYEE, [(Decimal("300.00"), "Approved"), (Decimal("50.00"), None)]),
    (102, Decimal("500.00"), TargetCategory.CLIENT_CONSULTANCY, [(Decimal("120.00"), " pending ")]),
    (103, Decimal("750.00"), TargetCategory.STUDENT, [(Decimal("80.00"), ""), (Decimal("40.00"), "rejected")]),
]


def seed(session: Session) -> None:
    """Seed one ACTIVE target per demo owner with its legacy progress history."""

    for owner_id, amount, category, progress_rows in SEED_TARGETS:
        target = session.scalar(
            select(Target).where(
                Target.owner_id == owner_id,
                Target.period_start == DEMO_PERIOD,
                Target.status == TargetStatus.ACTIVE,
            )
        )
        if target is not None:
            logger.info("Target for owner %s already exists", owner_id)
            continue

        target = Target(
            owner_id=owner_id,
            target_amount=amount,
            category=category,
            status=TargetStatus.ACTIVE,
            period_start=DEMO_PERIOD,
            created_by=get_settings().root_owner_id,
        )
        session.add(target)
        session.flush()
        for index, (progress_amount, raw_status) in enumerate(progress_rows, start=1):
            session.add(
                ProgressEntry(
                    target_id=target.id,
                    owner_id=owner_id,
                    source_reference=f"legacy-{owner_id}-{index}",
                    amount=progress_amount,
                    category=category,
                    status=ProgressStatus.normalize(raw_status),
                    transaction_date=DEMO_PERIOD,
                )
            )
        logger.info("Added target for owner %s with %s progress rows", owner_id, len(progress_rows))


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed(session)
        session.commit()
        settings = get_settings().model_copy(update={"enable_event_publishing": False})
        report = ReconciliationService(session, settings=settings).recalculate_all()
        logger.info("Reconciled %s targets and %s roll-ups", report.targets_recomputed, report.rollups_recomputed)


if __name__ == "__main__":
    main()
