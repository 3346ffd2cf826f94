"""SQLAlchemy ORM models for Phoenix."""

from phoenix.models.account import DEFAULT_ALGORITHM, DEFAULT_COLOUR, Account, Algorithm
from phoenix.models.base import Base
from phoenix.models.sync import SyncAccount, SyncLease, SyncLog, SyncLogKind

__all__ = [
    "DEFAULT_ALGORITHM",
    "DEFAULT_COLOUR",
    "Account",
    "Algorithm",
    "Base",
    "SyncAccount",
    "SyncLease",
    "SyncLog",
    "SyncLogKind",
]
