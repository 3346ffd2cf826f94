"""Local credential store: account CRUD and sync-linkage queries.

Every write commits on its own; there is no transaction spanning a sync pass.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select

from phoenix.models.account import Account, Algorithm
from phoenix.services.crypto_service import encrypt_value
from phoenix.services.datetime_service import now_epoch
from phoenix.services.sync_account_service import get_sync_account

if TYPE_CHECKING:
    from collections.abc import Collection

    from sqlalchemy.ext.asyncio import AsyncSession

    from phoenix.schemas.account import AccountCreate, AccountUpdate
    from phoenix.schemas.sync import Record

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def list_active_accounts(session: AsyncSession, name_filter: str = "") -> list[Account]:
    """List non-deleted accounts whose name contains ``name_filter``, ordered by name."""
    stmt = select(Account).where(Account.deleted_at.is_(None))
    if name_filter:
        stmt = stmt.where(Account.name.like(f"%{_escape_like(name_filter)}%", escape="\\"))
    stmt = stmt.order_by(Account.name.asc(), Account.id.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_account(session: AsyncSession, account_id: int) -> Account | None:
    """Fetch an account by local id, including tombstones."""
    return await session.get(Account, account_id)


async def list_unlinked_accounts(session: AsyncSession) -> list[Account]:
    """Accounts never pushed to the remote (no external id), excluding tombstones."""
    stmt = (
        select(Account)
        .where(Account.external_id.is_(None), Account.deleted_at.is_(None))
        .order_by(Account.name.asc(), Account.id.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_soft_deleted_accounts(session: AsyncSession) -> list[Account]:
    """Tombstones waiting for their deletion to be propagated."""
    stmt = select(Account).where(Account.deleted_at.is_not(None)).order_by(Account.id.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def find_by_external_id(session: AsyncSession, external_id: int) -> Account | None:
    """Find the non-deleted account linked to a remote record."""
    stmt = (
        select(Account)
        .where(Account.external_id == external_id, Account.deleted_at.is_(None))
        .order_by(Account.id.asc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def account_name_exists(session: AsyncSession, name: str) -> bool:
    """Return True if a non-deleted account already uses ``name``."""
    stmt = select(func.count(Account.id)).where(
        Account.name == name, Account.deleted_at.is_(None)
    )
    result = await session.execute(stmt)
    return result.scalar_one() > 0


async def create_account(session: AsyncSession, data: AccountCreate, key: str) -> Account:
    """Create a new account, encrypting the secret at rest.

    Raises ValueError if a non-deleted account with the same name exists.
    """
    if await account_name_exists(session, data.name):
        msg = f"Account already exists: {data.name}"
        raise ValueError(msg)

    return await insert_account(
        session,
        name=data.name,
        encrypted_secret=encrypt_value(data.secret, key),
        otp_digits=data.otp_digits,
        totp_step=data.totp_step,
        algorithm=data.algorithm,
        colour=data.colour,
    )


async def insert_account(
    session: AsyncSession,
    *,
    name: str,
    encrypted_secret: str,
    otp_digits: int,
    totp_step: int,
    algorithm: Algorithm | None,
    colour: str,
) -> Account:
    """Insert an account row whose secret is already encrypted."""
    account = Account(
        name=name,
        secret=encrypted_secret,
        otp_digits=otp_digits,
        totp_step=totp_step,
        totp_algorithm=algorithm,
        colour=colour,
    )
    session.add(account)
    await session.commit()
    await session.refresh(account)
    return account


async def update_account(session: AsyncSession, account_id: int, data: AccountUpdate) -> Account:
    """Apply a local edit.

    A linked account gets its ``external_last_updated`` bumped past the last
    remote timestamp it knows, so the next sync pass pushes the edit even when
    the server clock runs ahead of ours.
    """
    account = await get_account(session, account_id)
    if account is None or account.is_deleted:
        msg = f"Account not found: {account_id}"
        raise ValueError(msg)

    if data.name != account.name and await account_name_exists(session, data.name):
        msg = f"Account already exists: {data.name}"
        raise ValueError(msg)

    account.name = data.name
    account.otp_digits = data.otp_digits
    account.totp_step = data.totp_step
    account.totp_algorithm = data.algorithm
    account.colour = data.colour
    if account.is_linked:
        account.external_last_updated = max(
            now_epoch(), (account.external_last_updated or 0) + 1
        )
    await session.commit()
    return account


async def replace_account_content(
    session: AsyncSession,
    account: Account,
    *,
    name: str,
    encrypted_secret: str,
    otp_digits: int,
    totp_step: int,
    algorithm: Algorithm | None,
    colour: str,
) -> Account:
    """Overwrite an account's content with values received from the remote."""
    account.name = name
    account.secret = encrypted_secret
    account.otp_digits = otp_digits
    account.totp_step = totp_step
    account.totp_algorithm = algorithm
    account.colour = colour
    await session.commit()
    return account


async def set_remote_link(session: AsyncSession, account: Account, record: Record) -> None:
    """Record the remote identity, update time and hash on a local account."""
    account.external_id = record.id
    account.external_last_updated = record.updated_at
    account.external_hash = record.sync_hash
    await session.commit()


async def soft_delete_account(session: AsyncSession, account: Account) -> bool:
    """Mark an account as a tombstone. Returns False if it already was one."""
    if account.is_deleted:
        return False
    account.deleted_at = now_epoch()
    await session.commit()
    return True


async def hard_delete_account(session: AsyncSession, account: Account) -> None:
    """Remove the account row."""
    await session.delete(account)
    await session.commit()


async def delete_account(session: AsyncSession, account: Account) -> None:
    """Delete an account following the deletion policy.

    With a remote endpoint configured a live account becomes a tombstone so
    the deletion can be propagated; otherwise the row is removed at once.
    """
    sync_account = await get_sync_account(session)
    if sync_account is not None and not account.is_deleted:
        logger.debug("Soft-deleting account %d", account.id)
        await soft_delete_account(session, account)
        return
    logger.debug("Hard-deleting account %d", account.id)
    await hard_delete_account(session, account)


async def prune_missing_external_ids(session: AsyncSession, keep: Collection[int]) -> int:
    """Delete linked, non-deleted accounts whose external id is not in ``keep``.

    Returns the number of rows removed.
    """
    stmt = (
        delete(Account)
        .where(
            Account.external_id.is_not(None),
            Account.deleted_at.is_(None),
            Account.external_id.not_in(list(keep)),
        )
        .execution_options(synchronize_session="fetch")
    )
    result = await session.execute(stmt)
    await session.commit()
    return int(result.rowcount or 0)  # type: ignore[attr-defined]
