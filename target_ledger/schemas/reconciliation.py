"""Schemas for reconciliation runs and target diagnostics."""
from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from target_ledger.schemas.progress import ProgressEntryRead
from target_ledger.schemas.target import TargetMetricsRead, TargetRead
from target_ledger.schemas.transfer import FundTransferRead


class ReconciliationReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    targets_recomputed: int
    rollups_recomputed: int
    periods: list[date]


class TargetDiagnosticsRead(BaseModel):
    """Raw ledger rows and alternative evaluations of a target's totals."""

    model_config = ConfigDict(from_attributes=True)

    target: TargetRead
    progress_entries: list[ProgressEntryRead]
    transfers_in: list[FundTransferRead]
    transfers_out: list[FundTransferRead]
    metrics: TargetMetricsRead
    approved_sum: Decimal
    all_status_sum: Decimal
    pending_sum: Decimal
    expected_net_amount: Decimal
    drift: bool


__all__ = ["ReconciliationReportRead", "TargetDiagnosticsRead"]
