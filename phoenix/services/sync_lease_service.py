"""Cross-process guard so only one sync pass runs per endpoint.

Every ``phoenix`` command is its own process with its own coordinator, so the
in-memory lock is not enough. The lease is a row keyed by endpoint; inserting
it is the try-lock and the primary key decides the race.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from phoenix.models.sync import SyncLease
from phoenix.services.datetime_service import now_epoch

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def acquire_lease(
    session: AsyncSession, endpoint: str, owner: str, ttl_seconds: int
) -> bool:
    """Take the lease for ``endpoint`` without waiting. Returns False if it is held."""
    now = now_epoch()
    await session.execute(
        delete(SyncLease).where(SyncLease.endpoint == endpoint, SyncLease.expires_at <= now)
    )
    session.add(SyncLease(endpoint=endpoint, owner=owner, expires_at=now + ttl_seconds))
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.debug("Sync lease for %s is held by another process", endpoint)
        return False
    return True


async def release_lease(session: AsyncSession, endpoint: str, owner: str) -> None:
    """Give the lease back. A lease taken over by someone else is left alone."""
    await session.execute(
        delete(SyncLease).where(SyncLease.endpoint == endpoint, SyncLease.owner == owner)
    )
    await session.commit()
