"""Tests for the sync failure log."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from phoenix.models.sync import SyncLog, SyncLogKind
from phoenix.services.sync_log_service import record_sync_log, recent_sync_logs

if TYPE_CHECKING:
    import pytest
    from sqlalchemy.ext.asyncio import AsyncSession


class TestSyncLog:
    async def test_record_defaults_to_error(self, db_session: AsyncSession) -> None:
        entry = await record_sync_log(db_session, "Error 0 Connection could not be made.")
        assert entry.kind is SyncLogKind.ERROR
        assert entry.log_type == 1
        assert entry.timestamp > 0

    async def test_record_also_logs(
        self, db_session: AsyncSession, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.ERROR, logger="phoenix.services.sync_log_service"):
            await record_sync_log(db_session, "Error 418 Could not parse Server response")
        assert "Could not parse Server response" in caplog.text

    async def test_recent_is_newest_first_and_bounded(self, db_session: AsyncSession) -> None:
        for i in range(15):
            db_session.add(SyncLog(log=f"entry {i}", log_type=1, timestamp=1000 + i))
        await db_session.commit()

        recent = await recent_sync_logs(db_session)

        assert len(recent) == 10
        assert recent[0].log == "entry 14"
        assert recent[-1].log == "entry 5"

    async def test_same_second_entries_ordered_by_insertion(
        self, db_session: AsyncSession
    ) -> None:
        for i in range(3):
            db_session.add(SyncLog(log=f"entry {i}", log_type=1, timestamp=1000))
        await db_session.commit()
        recent = await recent_sync_logs(db_session, limit=2)
        assert [e.log for e in recent] == ["entry 2", "entry 1"]
