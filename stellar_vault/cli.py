"""CLI and main logic."""

import argparse
import asyncio
import os
import sys
import time
from dataclasses import replace

from tqdm import tqdm

from stellar_vault.cache import MemoryStore, VaultCache, clear_cache, default_file_store
from stellar_vault.console import (
    format_event,
    print_app_error,
    print_events,
    print_transaction_result,
    print_user_vault,
    print_vault_info,
)
from stellar_vault.constants import CONFIRM_MAX_RETRIES
from stellar_vault.contracts import deposit, get_user_vault, get_vault_info, run_transaction, set_timelock, withdraw
from stellar_vault.errors import AppError, AppErrorType
from stellar_vault.events import EventFeed, poll_vault_events
from stellar_vault.formatters import xlm_to_stroops
from stellar_vault.models import NetworkConfig, VaultEvent
from stellar_vault.session import VaultSession
from stellar_vault.signer import KeypairSigner
from stellar_vault.soroban import fetch_native_balance, fund_account
from stellar_vault.validation import ensure_withdrawable, is_valid_amount, validate_unlock_time


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(description="Deposit, withdraw and timelock funds in the Stellar vault contract.")
    p.add_argument(
        "--rpc-url",
        default=None,
        help="Soroban RPC URL. Defaults to STELLAR_VAULT_RPC_URL, then the public testnet RPC.",
    )
    p.add_argument(
        "--horizon-url",
        default=None,
        help="Horizon URL. Defaults to STELLAR_VAULT_HORIZON_URL, then the public testnet Horizon.",
    )
    p.add_argument(
        "--contract-id",
        default=None,
        help="Vault contract id. Defaults to STELLAR_VAULT_CONTRACT_ID, then the deployed testnet vault.",
    )
    p.add_argument(
        "--no-cache",
        action="store_true",
        help="Disable the on-disk cache for this run (reads go to the network).",
    )
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("info", help="Show global vault state.")

    balance = sub.add_parser("balance", help="Show a user's vault balance and timelock.")
    balance.add_argument("address", nargs="?", help="Account address. Defaults to the signing account.")

    dep = sub.add_parser("deposit", help="Deposit XLM into the vault.")
    dep.add_argument("amount", help="Amount in XLM, e.g. 10.5")

    wd = sub.add_parser("withdraw", help="Withdraw XLM from the vault.")
    wd.add_argument("amount", help="Amount in XLM, e.g. 10.5")

    lock = sub.add_parser("lock", help="Timelock your vault balance.")
    lock.add_argument("hours", type=float, help="Lock duration in hours from now.")

    ev = sub.add_parser("events", help="Show recent vault activity.")
    ev.add_argument("--start-ledger", type=int, default=None, help="First ledger to scan (default: ~1h back).")
    ev.add_argument("--follow", action="store_true", help="Keep polling for new events until interrupted.")

    fund = sub.add_parser("fund", help="Fund a testnet account with Friendbot.")
    fund.add_argument("address", nargs="?", help="Account address. Defaults to the signing account.")

    sub.add_parser("clear-cache", help="Remove all cached data.")
    return p.parse_args(argv)


def network_from_args(args: argparse.Namespace) -> NetworkConfig:
    """Testnet defaults, overridden by environment variables, overridden by flags."""
    network = NetworkConfig()
    overrides = {
        "soroban_rpc_url": args.rpc_url or os.getenv("STELLAR_VAULT_RPC_URL"),
        "horizon_url": args.horizon_url or os.getenv("STELLAR_VAULT_HORIZON_URL"),
        "contract_id": args.contract_id or os.getenv("STELLAR_VAULT_CONTRACT_ID"),
    }
    return replace(network, **{k: v for k, v in overrides.items() if v})


def signer_from_env() -> KeypairSigner | None:
    secret = os.getenv("STELLAR_VAULT_SECRET")
    if not secret:
        return None
    return KeypairSigner.from_secret(secret)


def resolve_address(explicit: str | None, signer: KeypairSigner | None) -> str:
    if explicit:
        return explicit
    if signer is not None:
        return signer.address
    raise AppError(
        AppErrorType.WALLET_NOT_FOUND,
        "No account given. Pass an address or set STELLAR_VAULT_SECRET.",
    )


def parse_amount(value: str) -> int:
    if not is_valid_amount(value):
        raise AppError(AppErrorType.CONTRACT_ERROR, f"Invalid amount: {value!r}")
    return xlm_to_stroops(value)


async def _submit(session: VaultSession, command: str, args: argparse.Namespace, address: str) -> int:
    now = int(time.time())
    with tqdm(total=CONFIRM_MAX_RETRIES, desc="⏳ Confirming", unit="poll", file=sys.stderr, leave=False) as pbar:

        def on_poll(_attempt: int) -> None:
            pbar.update(1)

        if command == "deposit":
            operation = deposit(session, address, parse_amount(args.amount), on_poll=on_poll)
        elif command == "withdraw":
            amount = parse_amount(args.amount)
            ensure_withdrawable(await get_user_vault(session, address), now=now)
            operation = withdraw(session, address, amount, on_poll=on_poll)
        else:
            unlock_time = now + int(args.hours * 3600)
            validate_unlock_time(unlock_time, now=now)
            operation = set_timelock(session, address, unlock_time, on_poll=on_poll)
        result = await run_transaction(operation)

    print_transaction_result(result, session.network)
    return 0 if result.success else 1


async def _follow(session: VaultSession, start_ledger: int | None) -> None:
    def on_events(events: list[VaultEvent]) -> None:
        for event in events:
            tqdm.write(format_event(event))

    feed = EventFeed(session.server, session.network.contract_id, on_events=on_events)
    feed.cursor = start_ledger
    print("ℹ️  Watching vault events (Ctrl+C to stop)...", file=sys.stderr)
    feed.start()
    try:
        await asyncio.Event().wait()
    finally:
        await feed.stop()


async def run_command(args: argparse.Namespace, session: VaultSession) -> int:
    signer = session.signer
    command = args.command

    if command == "info":
        print_vault_info(await get_vault_info(session), session.network)
        return 0

    if command == "balance":
        address = resolve_address(args.address, signer)
        user_vault = await get_user_vault(session, address)
        try:
            native = await fetch_native_balance(session.network, address)
        except AppError as ex:
            print(f"⚠️  Wallet balance unavailable: {ex.message}", file=sys.stderr)
            native = None
        print_user_vault(address, user_vault, now=int(time.time()), native_balance=native)
        return 0

    if command in ("deposit", "withdraw", "lock"):
        if signer is None:
            raise AppError(AppErrorType.WALLET_NOT_FOUND, "Set STELLAR_VAULT_SECRET to sign transactions.")
        return await _submit(session, command, args, signer.address)

    if command == "events":
        if args.follow:
            await _follow(session, args.start_ledger)
            return 0
        page = await poll_vault_events(session.server, session.network.contract_id, args.start_ledger)
        print_events(list(reversed(page.events)))
        print(f"ℹ️  Next cursor: ledger {page.cursor}", file=sys.stderr)
        if page.paging_cursor:
            print(f"ℹ️  Page was full, more events follow event {page.paging_cursor}.", file=sys.stderr)
        return 0

    raise ValueError(f"Unknown command: {command}")


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.command == "clear-cache":
        clear_cache()
        return 0

    network = network_from_args(args)
    try:
        signer = signer_from_env()
    except Exception as ex:  # pylint: disable=broad-exception-caught
        print(f"Error: STELLAR_VAULT_SECRET is not a valid secret key: {ex}", file=sys.stderr)
        return 2

    if args.command == "fund":
        try:
            address = resolve_address(args.address, signer)
            fund_account(network, address)
        except AppError as ex:
            print_app_error(ex)
            return 1
        print(f"✅ Funded {address} on {network.name}.")
        return 0

    cache = VaultCache(MemoryStore() if args.no_cache else default_file_store())

    async def _run() -> int:
        async with VaultSession.connect(network, cache=cache, signer=signer) as session:
            return await run_command(args, session)

    try:
        return asyncio.run(_run())
    except AppError as ex:
        print_app_error(ex)
        return 1
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
