"""Audit log ORM model."""
from __future__ import annotations

from sqlalchemy import Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from target_ledger.models.base import Base, IdentityMixin, TimestampMixin


class AuditLog(IdentityMixin, TimestampMixin, Base):
    """Best-effort record of a ledger mutation."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_resource", "resource_type", "resource_id"),
    )

    actor_id: Mapped[int | None] = mapped_column(Integer)
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(128), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(128))
    payload: Mapped[dict | None] = mapped_column(JSON)


__all__ = ["AuditLog"]
