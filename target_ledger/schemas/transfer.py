"""Schemas for fund transfers."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from target_ledger.models.fund_transfer import TransferStatus


class FundTransferCreate(BaseModel):
    """Payload for sharing funds. ``from_owner_id`` defaults to the caller."""

    from_owner_id: int | None = None
    to_owner_id: int
    amount: Decimal = Field(..., gt=Decimal("0"))
    reason: str | None = None
    source_reference: str | None = Field(default=None, max_length=128)


class FundTransferReverse(BaseModel):
    reason: str | None = None


class FundTransferRead(BaseModel):
    """Serialized fund transfer."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    from_owner_id: int
    to_owner_id: int
    source_reference: str | None
    amount: Decimal
    reason: str | None
    status: TransferStatus
    created_by: int | None
    reversed_by: int | None
    reversed_at: datetime | None
    reversal_reason: str | None
    created_at: datetime


__all__ = ["FundTransferCreate", "FundTransferRead", "FundTransferReverse"]
