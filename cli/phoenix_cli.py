"""Command-line front end for the Phoenix credential store."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from typing import TYPE_CHECKING

from pydantic import ValidationError

from phoenix.config import Settings
from phoenix.exceptions import SyncError
from phoenix.main import lifespan
from phoenix.models.account import Algorithm
from phoenix.schemas.account import AccountCreate, AccountUpdate, SyncAccountCreate
from phoenix.services.account_service import (
    create_account,
    delete_account,
    get_account,
    list_active_accounts,
    update_account,
)
from phoenix.services.datetime_service import format_epoch
from phoenix.services.sync_account_service import (
    delete_sync_account,
    get_sync_account,
    save_sync_account,
)
from phoenix.services.sync_log_service import recent_sync_logs
from phoenix.services.sync_service import validate_sync_account

if TYPE_CHECKING:
    from phoenix.main import PhoenixApp

_KEEP = object()


def _algorithm(value: str) -> Algorithm | None:
    if value.lower() in {"", "default", "none"}:
        return None
    try:
        return Algorithm(value.upper())
    except ValueError as exc:
        choices = ", ".join(a.value for a in Algorithm)
        raise argparse.ArgumentTypeError(f"algorithm must be one of: {choices}") from exc


async def cmd_list(app: PhoenixApp, args: argparse.Namespace) -> None:
    async with app.session_factory() as session:
        accounts = await list_active_accounts(session, args.filter)
    if not accounts:
        print("No accounts.")
        return
    for account in accounts:
        link = f"remote #{account.external_id}" if account.is_linked else "local only"
        print(
            f"  {account.id:>4}  {account.name}  "
            f"({account.otp_digits} digits, {account.totp_step}s, "
            f"{account.effective_algorithm}, {link})"
        )


async def cmd_add(app: PhoenixApp, args: argparse.Namespace) -> None:
    secret = args.secret or getpass.getpass("Secret: ")
    data = AccountCreate(
        name=args.name,
        secret=secret,
        otp_digits=args.digits,
        totp_step=args.step,
        algorithm=args.algorithm,
        colour=args.colour,
    )
    async with app.session_factory() as session:
        account = await create_account(session, data, app.key)
    print(f"Created account called: {account.name}")
    await app.after_mutation()


async def cmd_edit(app: PhoenixApp, args: argparse.Namespace) -> None:
    async with app.session_factory() as session:
        account = await get_account(session, args.id)
        if account is None or account.is_deleted:
            raise ValueError(f"Account not found: {args.id}")
        data = AccountUpdate(
            name=args.name if args.name is not None else account.name,
            otp_digits=args.digits if args.digits is not None else account.otp_digits,
            totp_step=args.step if args.step is not None else account.totp_step,
            algorithm=account.totp_algorithm if args.algorithm is _KEEP else args.algorithm,
            colour=args.colour if args.colour is not None else account.colour,
        )
        await update_account(session, args.id, data)
    print("Updated account")
    await app.after_mutation()


async def cmd_delete(app: PhoenixApp, args: argparse.Namespace) -> None:
    async with app.session_factory() as session:
        account = await get_account(session, args.id)
        if account is None or account.is_deleted:
            raise ValueError(f"Account not found: {args.id}")
        await delete_account(session, account)
    print("Success")
    await app.after_mutation()


async def cmd_remote_set(app: PhoenixApp, args: argparse.Namespace) -> None:
    password = args.password or getpass.getpass("Password: ")
    data = SyncAccountCreate(url=args.url, username=args.username, password=password)
    if not args.no_verify:
        await validate_sync_account(data, app.settings, app.transport)
    async with app.session_factory() as session:
        sync_account = await save_sync_account(
            session, data, app.key, allow_insecure_http=app.settings.allow_insecure_http
        )
    print(f"Remote endpoint saved: {sync_account.username} @ {sync_account.url}")
    await app.request_sync()


async def cmd_remote_show(app: PhoenixApp, args: argparse.Namespace) -> None:
    async with app.session_factory() as session:
        sync_account = await get_sync_account(session)
    if sync_account is None:
        print("Sync Account does not exist")
        return
    print(f"  URL:      {sync_account.url}")
    print(f"  Username: {sync_account.username}")


async def cmd_remote_remove(app: PhoenixApp, args: argparse.Namespace) -> None:
    async with app.session_factory() as session:
        removed = await delete_sync_account(session)
    print("Remote endpoint removed." if removed else "Sync Account does not exist")


async def cmd_sync(app: PhoenixApp, args: argparse.Namespace) -> None:
    report = await app.coordinator.run_once()
    if report.skipped:
        print("Sync skipped (no remote endpoint, or a sync is already running).")
        return
    status = "aborted" if report.aborted else "complete"
    print(f"Sync {status}. {report.mutations} change(s), {report.errors} error(s).")


async def cmd_logs(app: PhoenixApp, args: argparse.Namespace) -> None:
    async with app.session_factory() as session:
        logs = await recent_sync_logs(session, app.settings.sync_log_limit)
    if not logs:
        print("No sync log entries.")
        return
    for entry in logs:
        print(f"  {format_epoch(entry.timestamp)}  {entry.kind.name:<5}  {entry.log}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="phoenix",
        description="Manage one-time-password credentials and sync them with a remote server",
    )
    parser.add_argument("--data-dir", "-d", help="Data directory (default: ./data)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="List accounts")
    list_parser.add_argument("--filter", "-f", default="", help="Only names containing this")
    list_parser.set_defaults(handler=cmd_list)

    add_parser = subparsers.add_parser("add", help="Add an account")
    add_parser.add_argument("name")
    add_parser.add_argument("secret", nargs="?", help="Secret (prompted when omitted)")
    add_parser.add_argument("--digits", type=int, default=6)
    add_parser.add_argument("--step", type=int, default=30)
    add_parser.add_argument("--algorithm", type=_algorithm, default=None)
    add_parser.add_argument("--colour", default="5c636a")
    add_parser.set_defaults(handler=cmd_add)

    edit_parser = subparsers.add_parser("edit", help="Edit an account")
    edit_parser.add_argument("id", type=int)
    edit_parser.add_argument("--name")
    edit_parser.add_argument("--digits", type=int)
    edit_parser.add_argument("--step", type=int)
    edit_parser.add_argument("--algorithm", type=_algorithm, default=_KEEP)
    edit_parser.add_argument("--colour")
    edit_parser.set_defaults(handler=cmd_edit)

    delete_parser = subparsers.add_parser("delete", help="Delete an account")
    delete_parser.add_argument("id", type=int)
    delete_parser.set_defaults(handler=cmd_delete)

    remote_parser = subparsers.add_parser("remote", help="Configure the remote endpoint")
    remote_sub = remote_parser.add_subparsers(dest="remote_command", required=True)
    set_parser = remote_sub.add_parser("set", help="Save endpoint credentials")
    set_parser.add_argument("url")
    set_parser.add_argument("username")
    set_parser.add_argument("--password", help="Password (prompted when omitted)")
    set_parser.add_argument(
        "--no-verify", action="store_true", help="Save without checking the credentials"
    )
    set_parser.set_defaults(handler=cmd_remote_set)
    show_parser = remote_sub.add_parser("show", help="Show the endpoint")
    show_parser.set_defaults(handler=cmd_remote_show)
    remove_parser = remote_sub.add_parser("remove", help="Forget the endpoint")
    remove_parser.set_defaults(handler=cmd_remote_remove)

    sync_parser = subparsers.add_parser("sync", help="Sync with the remote now")
    sync_parser.set_defaults(handler=cmd_sync)

    logs_parser = subparsers.add_parser("logs", help="Show recent sync errors")
    logs_parser.set_defaults(handler=cmd_logs)

    return parser


async def run(args: argparse.Namespace, settings: Settings) -> None:
    async with lifespan(settings) as app:
        await args.handler(app, args)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "handler", None) is None:
        parser.print_help()
        return

    overrides: dict[str, object] = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.debug:
        overrides["debug"] = True
    # A CLI invocation is short-lived: only explicit commands and mutations trigger a pass.
    overrides["sync_on_startup"] = False

    try:
        settings = Settings(**overrides)  # type: ignore[arg-type]
        asyncio.run(run(args, settings))
    except ValidationError as exc:
        print(f"Error: {exc.errors()[0]['msg']}")
        sys.exit(1)
    except (ValueError, SyncError) as exc:
        message = exc.formatted_message() if isinstance(exc, SyncError) else str(exc)
        print(f"Error: {message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
