"""Schemas for progress submissions and decisions."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from target_ledger.models.progress_entry import ProgressStatus
from target_ledger.models.target import TargetCategory


class ProgressSubmit(BaseModel):
    """Payload for submitting progress toward a target."""

    amount: Decimal = Field(..., gt=Decimal("0"))
    category: TargetCategory | None = None
    transaction_date: date | None = None
    source_reference: str | None = Field(
        default=None,
        max_length=128,
        description="External reference; resubmitting the same reference updates the entry",
    )
    notes: str | None = None


class ProgressDecision(BaseModel):
    decision: Literal["APPROVED", "REJECTED"]


class ProgressEntryRead(BaseModel):
    """Serialized progress entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    target_id: int
    owner_id: int
    source_reference: str | None
    amount: Decimal
    category: TargetCategory | None
    status: ProgressStatus
    transaction_date: date | None
    notes: str | None
    decided_by: int | None
    decided_at: datetime | None
    created_at: datetime


__all__ = ["ProgressDecision", "ProgressEntryRead", "ProgressSubmit"]
