"""Ledger schema: targets, progress entries, fund transfers and audit logs."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op

revision = "20241001_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def upgrade() -> None:  # noqa: D401
    """Create the ledger tables, constraints and the one-active-target index."""

    target_category = sa.Enum(
        "EMPLOYEE", "CLIENT_CONSULTANCY", "CLIENT_AUDIT", "STUDENT", "OTHER", name="target_category"
    )
    target_status = sa.Enum("ACTIVE", "COMPLETED", "EXTENDED", "CANCELLED", name="target_status")
    progress_status = sa.Enum("PENDING", "APPROVED", "REJECTED", name="progress_status")
    transfer_status = sa.Enum("ACTIVE", "REVERSED", name="transfer_status")

    for enum_type in (target_category, target_status, progress_status, transfer_status):
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "targets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("target_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("category", target_category, nullable=True),
        sa.Column("status", target_status, nullable=False, server_default="ACTIVE"),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.Integer()),
        sa.Column("extended_from_id", sa.Integer()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["extended_from_id"], ["targets.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_targets_owner_id", "targets", ["owner_id"])
    op.create_index("ix_targets_period_start_status", "targets", ["period_start", "status"])
    op.create_index(
        "uq_targets_active_owner_period",
        "targets",
        ["owner_id", "period_start"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "progress_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("source_reference", sa.String(length=128)),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("category", target_category, nullable=True),
        sa.Column("status", progress_status, nullable=False, server_default="PENDING"),
        sa.Column("transaction_date", sa.Date()),
        sa.Column("notes", sa.Text()),
        sa.Column("decided_by", sa.Integer()),
        sa.Column("decided_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["target_id"], ["targets.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_progress_entries_target_id", "progress_entries", ["target_id"])
    op.create_index("ix_progress_entries_source_reference", "progress_entries", ["source_reference"])

    op.create_table(
        "fund_transfers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("from_owner_id", sa.Integer(), nullable=False),
        sa.Column("to_owner_id", sa.Integer(), nullable=False),
        sa.Column("source_reference", sa.String(length=128)),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("status", transfer_status, nullable=False, server_default="ACTIVE"),
        sa.Column("created_by", sa.Integer()),
        sa.Column("reversed_by", sa.Integer()),
        sa.Column("reversed_at", sa.DateTime(timezone=True)),
        sa.Column("reversal_reason", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("from_owner_id <> to_owner_id", name="ck_fund_transfers_distinct_owners"),
        sa.CheckConstraint("amount > 0", name="ck_fund_transfers_positive_amount"),
    )
    op.create_index("ix_fund_transfers_from_owner_id", "fund_transfers", ["from_owner_id"])
    op.create_index("ix_fund_transfers_to_owner_id", "fund_transfers", ["to_owner_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.Integer()),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("resource_type", sa.String(length=128), nullable=False),
        sa.Column("resource_id", sa.String(length=128)),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])


def downgrade() -> None:  # noqa: D401
    """Drop the ledger tables."""

    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_fund_transfers_to_owner_id", table_name="fund_transfers")
    op.drop_index("ix_fund_transfers_from_owner_id", table_name="fund_transfers")
    op.drop_table("fund_transfers")

    op.drop_index("ix_progress_entries_source_reference", table_name="progress_entries")
    op.drop_index("ix_progress_entries_target_id", table_name="progress_entries")
    op.drop_table("progress_entries")

    op.drop_index("uq_targets_active_owner_period", table_name="targets")
    op.drop_index("ix_targets_period_start_status", table_name="targets")
    op.drop_index("ix_targets_owner_id", table_name="targets")
    op.drop_table("targets")

    for enum_name in ["transfer_status", "progress_status", "target_status", "target_category"]:
        _drop_enum(enum_name)
