"""Console output formatting."""

import sys

from stellar_vault.errors import AppError
from stellar_vault.formatters import explorer_tx_url, format_date, format_xlm, time_until, truncate_address
from stellar_vault.models import NetworkConfig, TransactionResult, UserVault, VaultEvent, VaultInfo

EVENT_ICONS = {"deposit": "📥", "withdraw": "📤", "lock": "🔒"}


def print_vault_info(info: VaultInfo, network: NetworkConfig) -> None:
    print("=" * 70)
    print(f"🏦 STELLAR VAULT  •  {network.name}")
    print(f"   Contract: {network.contract_id}")
    print("=" * 70)
    print(f"   💰 Total deposited: {format_xlm(info.total_deposited)} XLM")
    print(f"   🧾 Deposits:        {info.deposit_count}")
    print(f"   👤 Admin:           {truncate_address(info.admin)}")
    print(f"   🪙 Token:           {truncate_address(info.token)}")


def print_user_vault(address: str, user_vault: UserVault, *, now: int, native_balance: int | None = None) -> None:
    print(f"\n👤 {truncate_address(address)}")
    print("   " + "─" * 50)
    if native_balance is not None:
        print(f"   💳 Wallet balance:  {format_xlm(native_balance)} XLM")
    print(f"   🏦 Vault balance:   {format_xlm(user_vault.balance)} XLM")
    if user_vault.is_locked(now):
        print(f"   🔒 Timelocked until {format_date(user_vault.timelock)} ({time_until(user_vault.timelock, now=now)})")
    else:
        print("   🔓 Unlocked")


def format_event(event: VaultEvent) -> str:
    icon = EVENT_ICONS.get(event.type, "•")
    who = truncate_address(event.user)
    if event.type == "lock":
        detail = f"until {format_date(event.unlock_time or 0)}"
    else:
        detail = f"{format_xlm(event.amount or 0)} XLM"
    return f"{icon} {format_date(event.timestamp)}  {event.type:<8} {who}  {detail}  (ledger {event.ledger})"


def print_events(events: list[VaultEvent]) -> None:
    if not events:
        print("ℹ️  No vault activity in the scanned range.", file=sys.stderr)
        return
    for event in events:
        print(format_event(event))


def print_transaction_result(result: TransactionResult, network: NetworkConfig) -> None:
    if not result.success:
        print(f"❌ Transaction failed: {result.error}", file=sys.stderr)
        return
    if result.confirmed:
        print("✅ Transaction confirmed.")
    else:
        print("⚠️  Transaction submitted, but confirmation could not be observed. Check the explorer.")
    print(f"   Hash: {result.hash}")
    print(f"   🔗 {explorer_tx_url(result.hash or '', host=network.explorer_host, network=network.name.lower())}")


def print_app_error(error: AppError) -> None:
    print(f"❌ {error.type.value}: {error.message}", file=sys.stderr)
    if error.details:
        print(f"   {error.details}", file=sys.stderr)
