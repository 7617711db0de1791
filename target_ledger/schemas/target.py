"""Schemas for targets and their derived metrics."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from target_ledger.models.target import TargetCategory, TargetStatus


class TargetMetricsRead(BaseModel):
    """Derived figures for a target."""

    model_config = ConfigDict(from_attributes=True)

    target_amount: Decimal
    total_progress: Decimal
    shared_in: Decimal
    shared_out: Decimal
    net_amount: Decimal
    progress_percentage: Decimal
    remaining_amount: Decimal


class TargetCreate(BaseModel):
    """Payload for creating a target. ``owner_id`` defaults to the caller."""

    owner_id: int | None = Field(default=None, description="Owner of the target; defaults to the acting owner")
    target_amount: Decimal = Field(..., ge=Decimal("0"))
    category: TargetCategory | None = None
    period_start: date
    period_end: date | None = None
    notes: str | None = None


class TargetExtend(BaseModel):
    """Payload for extending an ACTIVE target."""

    additional_amount: Decimal = Field(..., ge=Decimal("0"))
    period_end: date | None = None


class TargetUpdate(BaseModel):
    """Partial update; only fields that are sent are applied."""

    target_amount: Decimal | None = Field(default=None, ge=Decimal("0"))
    category: TargetCategory | None = None
    status: TargetStatus | None = None
    period_start: date | None = None
    period_end: date | None = None
    notes: str | None = None
    manual_net_amount: Decimal | None = Field(
        default=None,
        description="Records an approved adjustment so the net amount matches this figure",
    )

    @field_validator("target_amount", "status")
    @classmethod
    def _reject_explicit_null(cls, value: Decimal | TargetStatus | None) -> Decimal | TargetStatus:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class TargetRead(BaseModel):
    """Serialized target row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    target_amount: Decimal
    category: TargetCategory | None
    status: TargetStatus
    period_start: date
    period_end: date | None
    notes: str | None
    created_by: int | None
    extended_from_id: int | None
    created_at: datetime
    updated_at: datetime


class TargetWithMetrics(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    target: TargetRead
    metrics: TargetMetricsRead


__all__ = [
    "TargetCreate",
    "TargetExtend",
    "TargetMetricsRead",
    "TargetRead",
    "TargetUpdate",
    "TargetWithMetrics",
]
