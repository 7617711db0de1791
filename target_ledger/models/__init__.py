"""ORM models package."""
from .audit_log import AuditLog
from .base import Base, IdentityMixin, Money, TimestampMixin
from .fund_transfer import FundTransfer, TransferStatus
from .progress_entry import ProgressEntry, ProgressStatus
from .target import Target, TargetCategory, TargetStatus

__all__ = [
    "AuditLog",
    "Base",
    "FundTransfer",
    "IdentityMixin",
    "Money",
    "ProgressEntry",
    "ProgressStatus",
    "Target",
    "TargetCategory",
    "TargetStatus",
    "TimestampMixin",
    "TransferStatus",
]
