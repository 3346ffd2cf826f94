"""Remote endpoint configuration (a single row)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from sqlalchemy import delete, select, update

from phoenix.models.account import Account
from phoenix.models.sync import SyncAccount
from phoenix.services.crypto_service import decrypt_value, encrypt_value

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from phoenix.schemas.account import SyncAccountCreate

logger = logging.getLogger(__name__)

_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


@dataclass(frozen=True)
class RemoteCredentials:
    """Decrypted endpoint credentials, held in memory for one sync pass."""

    url: str
    username: str
    password: str

    def __repr__(self) -> str:
        return f"RemoteCredentials(url={self.url!r}, username={self.username!r})"


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts unless allowed."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Enable allow_insecure_http only on trusted networks."
        )

    return normalized


async def get_sync_account(session: AsyncSession) -> SyncAccount | None:
    """Return the configured remote endpoint, if any."""
    stmt = select(SyncAccount).order_by(SyncAccount.id.asc()).limit(1)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def forget_remote_links(session: AsyncSession) -> None:
    """Detach every account from the current endpoint.

    Tombstones are dropped and link fields cleared, so the next pass against a
    different endpoint pushes the accounts instead of pruning them. The caller
    commits.
    """
    dropped = await session.execute(
        delete(Account)
        .where(Account.deleted_at.is_not(None))
        .execution_options(synchronize_session="fetch")
    )
    unlinked = await session.execute(
        update(Account)
        .where(Account.external_id.is_not(None))
        .values(external_id=None, external_last_updated=None, external_hash=None)
        .execution_options(synchronize_session="fetch")
    )
    logger.info(
        "Unlinked %d account(s) and dropped %d tombstone(s)",
        unlinked.rowcount or 0,  # type: ignore[attr-defined]
        dropped.rowcount or 0,  # type: ignore[attr-defined]
    )


async def save_sync_account(
    session: AsyncSession,
    data: SyncAccountCreate,
    key: str,
    *,
    allow_insecure_http: bool = False,
) -> SyncAccount:
    """Create or replace the remote endpoint. The password is encrypted at rest.

    Pointing at a different URL or user forgets all remote links first.
    """
    url = validate_server_url(data.url, allow_insecure_http)
    encrypted_password = encrypt_value(data.password, key)

    sync_account = await get_sync_account(session)
    if sync_account is None:
        await forget_remote_links(session)
        sync_account = SyncAccount(username=data.username, password=encrypted_password, url=url)
        session.add(sync_account)
        logger.info("Configured remote endpoint %s", url)
    else:
        if sync_account.url != url or sync_account.username != data.username:
            await forget_remote_links(session)
        sync_account.username = data.username
        sync_account.password = encrypted_password
        sync_account.url = url
        logger.info("Updated remote endpoint %s", url)
    await session.commit()
    await session.refresh(sync_account)
    return sync_account


async def delete_sync_account(session: AsyncSession) -> bool:
    """Remove the remote endpoint and forget all remote links.

    Returns True if one was configured.
    """
    sync_account = await get_sync_account(session)
    if sync_account is None:
        return False
    await forget_remote_links(session)
    await session.delete(sync_account)
    await session.commit()
    return True


def decrypt_sync_account(sync_account: SyncAccount, key: str) -> RemoteCredentials:
    """Return the endpoint credentials with the password decrypted."""
    return RemoteCredentials(
        url=sync_account.url,
        username=sync_account.username,
        password=decrypt_value(sync_account.password, key),
    )
