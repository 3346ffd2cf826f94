"""Remote endpoint and sync log models."""

from __future__ import annotations

from enum import IntEnum

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from phoenix.models.base import Base


class SyncLogKind(IntEnum):
    """Severity of a sync log entry."""

    ERROR = 1


class SyncAccount(Base):
    """Credentials for the single remote endpoint. The password is stored encrypted."""

    __tablename__ = "sync_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    password: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(String(2083), nullable=False)


class SyncLog(Base):
    """Diagnostic breadcrumb written when a sync step fails."""

    __tablename__ = "sync_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    log: Mapped[str] = mapped_column(Text, nullable=False)
    log_type: Mapped[int] = mapped_column(Integer, nullable=False, default=SyncLogKind.ERROR)
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    @property
    def kind(self) -> SyncLogKind:
        return SyncLogKind(self.log_type)


class SyncLease(Base):
    """Marks an endpoint as having a sync pass in flight, across processes.

    A lease whose ``expires_at`` has passed belongs to a process that died
    mid-pass and may be taken over.
    """

    __tablename__ = "sync_leases"

    endpoint: Mapped[str] = mapped_column(String(2083), primary_key=True)
    owner: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[int] = mapped_column(Integer, nullable=False)
