"""Tests for database engine and schema creation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import inspect, text

from phoenix.database import create_engine, init_schema

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from phoenix.config import Settings


class TestDatabase:
    async def test_engine_connects(self, db_engine) -> None:  # type: ignore[no-untyped-def]
        async with db_engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            assert result.scalar() == 1

    async def test_session_works(self, db_session: AsyncSession) -> None:
        result = await db_session.execute(text("SELECT 42"))
        assert result.scalar() == 42

    async def test_create_engine_enables_wal(self, test_settings: Settings) -> None:
        engine, _ = create_engine(test_settings)
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text("PRAGMA journal_mode"))
                assert result.scalar() == "wal"
        finally:
            await engine.dispose()

    async def test_init_schema_creates_tables(self, test_settings: Settings) -> None:
        engine, _ = create_engine(test_settings)
        try:
            await init_schema(engine)
            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda c: inspect(c).get_table_names())
            assert {"accounts", "sync_accounts", "sync_leases", "sync_logs"} <= set(tables)
        finally:
            await engine.dispose()

    async def test_init_schema_is_idempotent(self, test_settings: Settings) -> None:
        engine, _ = create_engine(test_settings)
        try:
            await init_schema(engine)
            await init_schema(engine)
        finally:
            await engine.dispose()
