"""Progress entry ORM model."""
from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from target_ledger.models.base import Base, IdentityMixin, Money, TimestampMixin
from target_ledger.models.target import TargetCategory


class ProgressStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @classmethod
    def normalize(cls, value: "ProgressStatus | str | None") -> "ProgressStatus":
        """Map raw status values onto the enum; legacy NULL or blank means approved."""

        if isinstance(value, cls):
            return value
        if value is None or not str(value).strip():
            return cls.APPROVED
        try:
            return cls(str(value).strip().upper())
        except ValueError as exc:
            raise ValueError(f"Unknown progress status {value!r}") from exc


class ProgressEntry(IdentityMixin, TimestampMixin, Base):
    """Contribution toward a target, counted only once approved."""

    __tablename__ = "progress_entries"
    __table_args__ = (
        Index("ix_progress_entries_target_id", "target_id"),
        Index("ix_progress_entries_source_reference", "source_reference"),
    )

    target_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("targets.id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False)
    source_reference: Mapped[str | None] = mapped_column(String(128))
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    category: Mapped[TargetCategory | None] = mapped_column(
        SAEnum(TargetCategory, name="target_category"), nullable=True
    )
    status: Mapped[ProgressStatus] = mapped_column(
        SAEnum(ProgressStatus, name="progress_status"), nullable=False, default=ProgressStatus.PENDING
    )
    transaction_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)
    decided_by: Mapped[int | None] = mapped_column(Integer)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    target = relationship("Target", back_populates="progress_entries")


__all__ = ["ProgressEntry", "ProgressStatus"]
