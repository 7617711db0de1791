"""Fund transfer ORM model."""
from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from target_ledger.models.base import Base, IdentityMixin, Money, TimestampMixin


class TransferStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    REVERSED = "REVERSED"


class FundTransfer(IdentityMixin, TimestampMixin, Base):
    """Peer-to-peer movement of achieved value between two owners."""

    __tablename__ = "fund_transfers"
    __table_args__ = (
        CheckConstraint("from_owner_id <> to_owner_id", name="ck_fund_transfers_distinct_owners"),
        CheckConstraint("amount > 0", name="ck_fund_transfers_positive_amount"),
        Index("ix_fund_transfers_from_owner_id", "from_owner_id"),
        Index("ix_fund_transfers_to_owner_id", "to_owner_id"),
    )

    from_owner_id: Mapped[int] = mapped_column(Integer, nullable=False)
    to_owner_id: Mapped[int] = mapped_column(Integer, nullable=False)
    source_reference: Mapped[str | None] = mapped_column(String(128))
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    status: Mapped[TransferStatus] = mapped_column(
        SAEnum(TransferStatus, name="transfer_status"), nullable=False, default=TransferStatus.ACTIVE
    )
    created_by: Mapped[int | None] = mapped_column(Integer)
    reversed_by: Mapped[int | None] = mapped_column(Integer)
    reversed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reversal_reason: Mapped[str | None] = mapped_column(Text)


__all__ = ["FundTransfer", "TransferStatus"]
