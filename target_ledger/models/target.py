"""Target ORM model."""
from __future__ import annotations

import enum
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Integer, Text, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from target_ledger.models.base import Base, IdentityMixin, Money, TimestampMixin


class TargetCategory(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    CLIENT_CONSULTANCY = "CLIENT_CONSULTANCY"
    CLIENT_AUDIT = "CLIENT_AUDIT"
    STUDENT = "STUDENT"
    OTHER = "OTHER"


class TargetStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    EXTENDED = "EXTENDED"
    CANCELLED = "CANCELLED"


class Target(IdentityMixin, TimestampMixin, Base):
    """Numeric goal assigned to an owner for a period."""

    __tablename__ = "targets"
    __table_args__ = (
        Index("ix_targets_owner_id", "owner_id"),
        Index("ix_targets_period_start_status", "period_start", "status"),
        Index(
            "uq_targets_active_owner_period",
            "owner_id",
            "period_start",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    owner_id: Mapped[int] = mapped_column(Integer, nullable=False)
    target_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    category: Mapped[TargetCategory | None] = mapped_column(
        SAEnum(TargetCategory, name="target_category"), nullable=True
    )
    status: Mapped[TargetStatus] = mapped_column(
        SAEnum(TargetStatus, name="target_status"), nullable=False, default=TargetStatus.ACTIVE
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    extended_from_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("targets.id", ondelete="SET NULL"), nullable=True
    )

    progress_entries = relationship(
        "ProgressEntry",
        back_populates="target",
        cascade="all, delete-orphan",
        order_by="ProgressEntry.id",
    )

    @property
    def is_active(self) -> bool:
        return self.status == TargetStatus.ACTIVE


__all__ = ["Target", "TargetCategory", "TargetStatus"]
