"""Sync service: reconcile the local account store with the remote records API.

A pass runs six steps strictly in sequence:

1. authenticate against the configured endpoint;
2. flush tombstones (remote delete, then local hard delete regardless);
3. push local accounts that have no remote link yet;
4. fetch the remote manifest;
5. reconcile each manifest entry (create local, update local, update remote);
6. prune linked local accounts whose external id left the manifest.

Ordering between the two sides is decided by server-assigned timestamps only,
last write wins at whole-record granularity.  Failing to authenticate or to
fetch the manifest aborts the pass; any other failure is written to the sync
log and the pass moves on to the next record.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from phoenix.exceptions import SyncError
from phoenix.models.account import DEFAULT_COLOUR
from phoenix.remote.client import RecordsClient
from phoenix.schemas.sync import RecordPayload
from phoenix.services.account_service import (
    find_by_external_id,
    hard_delete_account,
    insert_account,
    list_soft_deleted_accounts,
    list_unlinked_accounts,
    prune_missing_external_ids,
    replace_account_content,
    set_remote_link,
)
from phoenix.services.crypto_service import decrypt_value, encrypt_value
from phoenix.services.sync_account_service import (
    decrypt_sync_account,
    get_sync_account,
    validate_server_url,
)
from phoenix.services.sync_log_service import record_sync_log
from phoenix.services.sync_lease_service import acquire_lease, release_lease

if TYPE_CHECKING:
    from collections.abc import Iterable

    import httpx
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from phoenix.config import Settings
    from phoenix.models.account import Account
    from phoenix.models.sync import SyncAccount
    from phoenix.schemas.account import SyncAccountCreate
    from phoenix.schemas.sync import ManifestEntry
    from phoenix.services.sync_account_service import RemoteCredentials

logger = logging.getLogger(__name__)


class SyncStatus(StrEnum):
    """Relationship between a linked local account and its manifest entry."""

    UP_TO_DATE = "up_to_date"
    LOCAL_OUT_OF_DATE = "local_out_of_date"
    REMOTE_OUT_OF_DATE = "remote_out_of_date"


@dataclass
class SyncReport:
    """Outcome counters of one reconciliation pass."""

    pushed: int = 0
    pulled: int = 0
    updated_local: int = 0
    updated_remote: int = 0
    deleted_remote: int = 0
    tombstones_cleared: int = 0
    pruned: int = 0
    errors: int = 0
    aborted: bool = False
    skipped: bool = False

    @property
    def mutations(self) -> int:
        """Number of records created, changed or removed on either side."""
        return (
            self.pushed
            + self.pulled
            + self.updated_local
            + self.updated_remote
            + self.deleted_remote
            + self.tombstones_cleared
            + self.pruned
        )

    def summary(self) -> str:
        if self.skipped:
            return "skipped"
        parts = [
            f"pushed={self.pushed}",
            f"pulled={self.pulled}",
            f"updated_local={self.updated_local}",
            f"updated_remote={self.updated_remote}",
            f"deleted_remote={self.deleted_remote}",
            f"tombstones_cleared={self.tombstones_cleared}",
            f"pruned={self.pruned}",
            f"errors={self.errors}",
        ]
        if self.aborted:
            parts.append("aborted")
        return " ".join(parts)


def get_sync_status(external_last_updated: int | None, manifest_updated_at: int) -> SyncStatus:
    """Classify a linked account against the remote's update time."""
    if external_last_updated is None or external_last_updated < manifest_updated_at:
        return SyncStatus.LOCAL_OUT_OF_DATE
    if external_last_updated > manifest_updated_at:
        return SyncStatus.REMOTE_OUT_OF_DATE
    return SyncStatus.UP_TO_DATE


def build_record_payload(account: Account, key: str) -> RecordPayload:
    """Build a push/replace body, decrypting the secret only for the request."""
    return RecordPayload(
        name=account.name,
        secret=decrypt_value(account.secret, key),
        otp_digits=account.otp_digits,
        totp_step=account.totp_step,
        totp_algorithm=account.totp_algorithm,
        colour=account.colour,
    )


def _failure_message(exc: Exception) -> str:
    if isinstance(exc, SyncError):
        return exc.formatted_message()
    return f"Error 0 {exc}"


class Reconciler:
    """Runs one reconciliation pass over a single session and client."""

    def __init__(self, session: AsyncSession, client: RecordsClient, key: str) -> None:
        self.session = session
        self.client = client
        self.key = key
        self.report = SyncReport()

    async def _log_failure(self, exc: Exception) -> None:
        self.report.errors += 1
        await record_sync_log(self.session, _failure_message(exc))

    async def run(self, credentials: RemoteCredentials) -> SyncReport:
        try:
            await self.client.authenticate(credentials.username, credentials.password)
        except SyncError as exc:
            await self._log_failure(exc)
            self.report.aborted = True
            return self.report

        await self.flush_tombstones()
        await self.push_unlinked()

        try:
            manifest = await self.client.fetch_manifest()
        except SyncError as exc:
            await self._log_failure(exc)
            self.report.aborted = True
            return self.report

        keep = await self.reconcile_manifest(manifest)
        self.report.pruned = await prune_missing_external_ids(self.session, keep)
        if self.report.pruned:
            logger.info("Pruned %d account(s) no longer on the remote", self.report.pruned)
        return self.report

    async def flush_tombstones(self) -> None:
        for account in await list_soft_deleted_accounts(self.session):
            if account.external_id is not None:
                try:
                    await self.client.delete_record(account.external_id)
                    self.report.deleted_remote += 1
                except SyncError as exc:
                    await self._log_failure(exc)
            await hard_delete_account(self.session, account)
            self.report.tombstones_cleared += 1

    async def push_unlinked(self) -> None:
        for account in await list_unlinked_accounts(self.session):
            try:
                payload = build_record_payload(account, self.key)
                record = await self.client.push_new_record(payload)
            except (SyncError, ValueError) as exc:
                await self._log_failure(exc)
                continue
            await set_remote_link(self.session, account, record)
            self.report.pushed += 1
            logger.debug("Pushed account %d as remote record %d", account.id, record.id)

    async def reconcile_manifest(self, manifest: Iterable[ManifestEntry]) -> set[int]:
        """Apply per-entry actions and return the keep-set of external ids."""
        keep: set[int] = set()
        for entry in manifest:
            keep.add(entry.id)
            try:
                await self._reconcile_entry(entry)
            except (SyncError, ValueError) as exc:
                await self._log_failure(exc)
        return keep

    async def _reconcile_entry(self, entry: ManifestEntry) -> None:
        account = await find_by_external_id(self.session, entry.id)
        if account is None:
            await self._copy_from_remote(entry)
            return

        status = get_sync_status(account.external_last_updated, entry.updated_at)
        if status is SyncStatus.LOCAL_OUT_OF_DATE:
            await self._update_local(account, entry)
        elif status is SyncStatus.REMOTE_OUT_OF_DATE:
            await self._update_remote(account)

    async def _copy_from_remote(self, entry: ManifestEntry) -> None:
        record = await self.client.pull_record(entry.id)
        account = await insert_account(
            self.session,
            name=record.name,
            encrypted_secret=encrypt_value(record.secret, self.key),
            otp_digits=record.otp_digits,
            totp_step=record.totp_step,
            algorithm=record.algorithm,
            colour=record.colour or DEFAULT_COLOUR,
        )
        await set_remote_link(self.session, account, record.to_record())
        self.report.pulled += 1
        logger.debug("Imported remote record %d as account %d", record.id, account.id)

    async def _update_local(self, account: Account, entry: ManifestEntry) -> None:
        record = await self.client.pull_record(entry.id)
        await replace_account_content(
            self.session,
            account,
            name=record.name,
            encrypted_secret=encrypt_value(record.secret, self.key),
            otp_digits=record.otp_digits,
            totp_step=record.totp_step,
            algorithm=record.algorithm,
            colour=record.colour or account.colour,
        )
        await set_remote_link(self.session, account, record.to_record())
        self.report.updated_local += 1
        logger.debug("Updated account %d from remote record %d", account.id, record.id)

    async def _update_remote(self, account: Account) -> None:
        payload = build_record_payload(account, self.key)
        record = await self.client.replace_record(account.external_id, payload)
        await set_remote_link(self.session, account, record)
        self.report.updated_remote += 1
        logger.debug("Replaced remote record %d from account %d", record.id, account.id)


async def sync_all_accounts(
    session: AsyncSession,
    sync_account: SyncAccount,
    key: str,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SyncReport:
    """Run one full reconciliation pass against ``sync_account``."""
    try:
        credentials = decrypt_sync_account(sync_account, key)
    except ValueError as exc:
        await record_sync_log(session, _failure_message(exc))
        return SyncReport(errors=1, aborted=True)

    logger.info("Sync started against %s", credentials.url)
    async with RecordsClient.from_settings(credentials.url, settings, transport) as client:
        report = await Reconciler(session, client, key).run(credentials)
    logger.info("Sync finished: %s", report.summary())
    return report


async def validate_sync_account(
    data: SyncAccountCreate,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Check endpoint credentials by authenticating once. Returns the token.

    Raises ValueError for a malformed URL and SyncError when the remote
    rejects the request.
    """
    url = validate_server_url(data.url, settings.allow_insecure_http)
    async with RecordsClient.from_settings(url, settings, transport) as client:
        return await client.authenticate(data.username, data.password)


class SyncCoordinator:
    """Schedules reconciliation passes, at most one per endpoint at a time.

    A pass requested while another one for the same endpoint is running is
    skipped rather than queued. The endpoint lease extends this to
    coordinators in other processes sharing the same store.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._key = key
        self._transport = transport
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task[SyncReport]] = set()
        self._owner = uuid.uuid4().hex

    def _lock_for(self, url: str) -> asyncio.Lock:
        lock = self._locks.get(url)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[url] = lock
        return lock

    def is_running(self, url: str) -> bool:
        lock = self._locks.get(url.rstrip("/"))
        return lock is not None and lock.locked()

    async def run_once(self) -> SyncReport:
        """Run a pass now unless one is already in flight for the endpoint."""
        async with self._session_factory() as session:
            sync_account = await get_sync_account(session)
        if sync_account is None:
            logger.debug("No remote endpoint configured; nothing to sync")
            return SyncReport(skipped=True)

        endpoint = sync_account.url.rstrip("/")
        lock = self._lock_for(endpoint)
        if lock.locked():
            logger.info("Sync already in progress for %s; skipping", sync_account.url)
            return SyncReport(skipped=True)

        async with lock:
            async with self._session_factory() as session:
                acquired = await acquire_lease(
                    session, endpoint, self._owner, self._settings.sync_lease_seconds
                )
            if not acquired:
                logger.info(
                    "Sync already in progress for %s in another process; skipping",
                    sync_account.url,
                )
                return SyncReport(skipped=True)
            try:
                async with self._session_factory() as session:
                    return await sync_all_accounts(
                        session, sync_account, self._key, self._settings, self._transport
                    )
            finally:
                async with self._session_factory() as session:
                    await release_lease(session, endpoint, self._owner)

    async def _run_logged(self) -> SyncReport:
        try:
            return await self.run_once()
        except Exception:
            logger.exception("Unexpected failure during sync pass")
            try:
                async with self._session_factory() as session:
                    await record_sync_log(session, "Error 0 Unexpected failure during sync")
            except SQLAlchemyError:
                logger.exception("Could not record sync failure")
            return SyncReport(errors=1, aborted=True)

    def trigger(self) -> asyncio.Task[SyncReport]:
        """Schedule a pass in the background and return its task."""
        task = asyncio.create_task(self._run_logged())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every scheduled pass to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
