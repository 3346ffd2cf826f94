"""Sync log: a bounded window of recent reconciliation failures."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from phoenix.models.sync import SyncLog, SyncLogKind
from phoenix.services.datetime_service import now_epoch

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 10


async def record_sync_log(
    session: AsyncSession,
    message: str,
    kind: SyncLogKind = SyncLogKind.ERROR,
) -> SyncLog:
    """Append one entry stamped with the current time."""
    if kind is SyncLogKind.ERROR:
        logger.error("Sync: %s", message)
    entry = SyncLog(log=message, log_type=int(kind), timestamp=now_epoch())
    session.add(entry)
    await session.commit()
    await session.refresh(entry)
    return entry


async def recent_sync_logs(
    session: AsyncSession, limit: int = DEFAULT_RECENT_LIMIT
) -> list[SyncLog]:
    """Return the most recent entries, newest first.

    Older entries stay in the table but are never surfaced.
    """
    stmt = select(SyncLog).order_by(SyncLog.timestamp.desc(), SyncLog.id.desc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
