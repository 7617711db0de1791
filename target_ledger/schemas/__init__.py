"""Pydantic schemas package."""

from .progress import ProgressDecision, ProgressEntryRead, ProgressSubmit
from .reconciliation import ReconciliationReportRead, TargetDiagnosticsRead
from .target import (
    TargetCreate,
    TargetExtend,
    TargetMetricsRead,
    TargetRead,
    TargetUpdate,
    TargetWithMetrics,
)
from .transfer import FundTransferCreate, FundTransferRead, FundTransferReverse

__all__ = [
    "FundTransferCreate",
    "FundTransferRead",
    "FundTransferReverse",
    "ProgressDecision",
    "ProgressEntryRead",
    "ProgressSubmit",
    "ReconciliationReportRead",
    "TargetCreate",
    "TargetDiagnosticsRead",
    "TargetExtend",
    "TargetMetricsRead",
    "TargetRead",
    "TargetUpdate",
    "TargetWithMetrics",
]
