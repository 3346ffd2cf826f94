"""Tests for application startup and shutdown."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from phoenix.config import Settings
from phoenix.main import lifespan
from phoenix.schemas.account import AccountCreate, SyncAccountCreate
from phoenix.services.account_service import create_account, list_active_accounts
from phoenix.services.crypto_service import decrypt_value
from phoenix.services.sync_account_service import save_sync_account
from tests.remote_server import PASSWORD, REMOTE_URL, USERNAME

if TYPE_CHECKING:
    from pathlib import Path

    from phoenix.main import PhoenixApp
    from tests.remote_server import FakeRemote


async def _seed(app: PhoenixApp, *, with_remote: bool) -> None:
    async with app.session_factory() as session:
        if with_remote:
            await save_sync_account(
                session,
                SyncAccountCreate(url=REMOTE_URL, username=USERNAME, password=PASSWORD),
                app.key,
            )
        await create_account(session, AccountCreate(name="GitHub", secret="SECRET"), app.key)


class TestLifespan:
    async def test_creates_data_dir_database_and_key(self, test_settings: Settings) -> None:
        async with lifespan(test_settings, configure_logs=False) as app:
            assert test_settings.data_dir.is_dir()
            assert test_settings.resolved_key_file().is_file()
            async with app.session_factory() as session:
                assert await list_active_accounts(session) == []

    async def test_key_survives_restart(self, test_settings: Settings) -> None:
        async with lifespan(test_settings, configure_logs=False) as app:
            await _seed(app, with_remote=False)

        async with lifespan(test_settings, configure_logs=False) as app:
            async with app.session_factory() as session:
                [account] = await list_active_accounts(session)
            assert decrypt_value(account.secret, app.key) == "SECRET"

    async def test_invalid_configuration_fails_fast(self, tmp_path: Path) -> None:
        not_a_dir = tmp_path / "data"
        not_a_dir.write_text("x")
        settings = Settings(_env_file=None, data_dir=not_a_dir)  # type: ignore[call-arg]
        with pytest.raises(ValueError, match="Invalid configuration"):
            async with lifespan(settings, configure_logs=False):
                pass

    async def test_sync_on_startup(self, test_settings: Settings, remote: FakeRemote) -> None:
        async with lifespan(test_settings, configure_logs=False) as app:
            await _seed(app, with_remote=True)
        assert remote.records == {}

        settings = test_settings.model_copy(update={"sync_on_startup": True})
        async with lifespan(settings, transport=remote.transport(), configure_logs=False):
            pass

        assert [r["name"] for r in remote.records.values()] == ["GitHub"]

    async def test_after_mutation_triggers_sync_when_enabled(
        self, test_settings: Settings, remote: FakeRemote
    ) -> None:
        settings = test_settings.model_copy(update={"sync_after_mutation": True})
        async with lifespan(settings, transport=remote.transport(), configure_logs=False) as app:
            await _seed(app, with_remote=True)
            await app.after_mutation()
            await app.coordinator.wait_idle()
            assert len(remote.records) == 1

    async def test_after_mutation_is_quiet_when_disabled(
        self, test_settings: Settings, remote: FakeRemote
    ) -> None:
        transport = remote.transport()
        async with lifespan(test_settings, transport=transport, configure_logs=False) as app:
            await _seed(app, with_remote=True)
            await app.after_mutation()
        assert transport.requests == []
