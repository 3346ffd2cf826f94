"""Application lifecycle: storage, encryption key, logging and sync triggers."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from phoenix.config import Settings
from phoenix.database import create_engine, init_schema
from phoenix.services.crypto_service import load_or_create_key
from phoenix.services.sync_account_service import get_sync_account
from phoenix.services.sync_service import SyncCoordinator

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import httpx
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)


def ensure_data_dir(settings: Settings) -> None:
    """Create the data directory and the SQLite database directory if missing."""
    if not settings.data_dir.exists():
        logger.info("Creating data directory at %s", settings.data_dir)
        settings.data_dir.mkdir(parents=True)

    db_url = settings.resolved_database_url()
    if db_url.startswith("sqlite") and "///" in db_url:
        db_path = db_url.split("///", 1)[-1]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)


@dataclass
class PhoenixApp:
    """Running application state shared by the command layer."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    key: str
    coordinator: SyncCoordinator
    transport: httpx.AsyncBaseTransport | None = None

    async def has_remote(self) -> bool:
        async with self.session_factory() as session:
            return await get_sync_account(session) is not None

    async def request_sync(self) -> None:
        """Schedule a pass if a remote endpoint is configured."""
        if await self.has_remote():
            self.coordinator.trigger()

    async def after_mutation(self) -> None:
        """Hook called after the local store was changed by the user."""
        if self.settings.sync_after_mutation:
            await self.request_sync()


@asynccontextmanager
async def lifespan(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    configure_logs: bool = True,
) -> AsyncGenerator[PhoenixApp]:
    """Application lifespan: startup and shutdown."""
    if settings is None:
        settings = Settings()
    settings.validate_runtime()
    if configure_logs:
        configure_logging(settings.debug)
    logger.debug("Starting Phoenix (debug=%s)", settings.debug)

    try:
        ensure_data_dir(settings)
    except OSError as exc:
        logger.critical("Failed to create data directory at %s: %s.", settings.data_dir, exc)
        raise

    try:
        engine, session_factory = create_engine(settings)
        await init_schema(engine)
    except Exception as exc:
        logger.critical(
            "Failed to initialize database: %s. Check database path and permissions.", exc
        )
        raise

    key_file = settings.resolved_key_file()
    try:
        key = load_or_create_key(key_file)
    except (OSError, ValueError) as exc:
        logger.critical("Failed to load or create encryption key at %s: %s.", key_file, exc)
        await engine.dispose()
        raise

    coordinator = SyncCoordinator(session_factory, settings, key, transport)
    app = PhoenixApp(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        key=key,
        coordinator=coordinator,
        transport=transport,
    )

    if settings.sync_on_startup:
        await app.request_sync()

    try:
        yield app
    finally:
        try:
            await coordinator.wait_idle()
        except Exception as exc:
            logger.error("Error while waiting for sync to finish: %s", exc, exc_info=True)

        try:
            await engine.dispose()
        except Exception as exc:
            logger.error("Error during engine disposal: %s", exc, exc_info=True)

        logger.debug("Phoenix stopped")
