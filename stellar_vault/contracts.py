"""Vault contract interaction: cached reads and cache-invalidating mutations."""

import sys
from collections.abc import Awaitable, Iterable
from dataclasses import asdict
from typing import Any

from stellar_sdk import scval, xdr

from stellar_vault.constants import (
    READ_TX_TIMEOUT_SECONDS,
    USER_VAULT_TTL_SECONDS,
    VAULT_INFO_CACHE_KEY,
    VAULT_INFO_TTL_SECONDS,
)
from stellar_vault.errors import AppError, AppErrorType
from stellar_vault.formatters import as_int
from stellar_vault.models import SubmittedTransaction, TransactionResult, UserVault, VaultInfo
from stellar_vault.parsing import parse_vault_info, scval_to_native
from stellar_vault.session import VaultSession
from stellar_vault.transactions import build_invoke_transaction, simulate, submit_contract_call
from stellar_vault.validation import validate_amount


def user_cache_key(address: str) -> str:
    """Cache key for one user's vault, keyed by the full address."""
    return f"user_{address}"


async def simulate_read(
    session: VaultSession, function_name: str, parameters: Iterable["xdr.SCVal"] = ()
) -> Any:
    """
    Simulate a read-only contract call with the admin account as the source.

    Nothing is submitted; the admin account only provides a valid envelope. Each call loads
    the account again so every simulation gets its own sequence number.
    Returns the raw simulation response.
    """
    try:
        account = await session.server.load_account(session.network.admin)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise AppError(AppErrorType.NETWORK_ERROR, "Failed to load simulation account", str(ex)) from ex
    tx = build_invoke_transaction(
        account, session.network, function_name, parameters, timeout=READ_TX_TIMEOUT_SECONDS
    )
    return await simulate(session.server, tx)


def simulation_retval(simulation: Any) -> str | None:
    """Base64 XDR return value of a successful simulation, or None."""
    if simulation.error or not simulation.results:
        return None
    return simulation.results[0].xdr


async def get_vault_info(session: VaultSession) -> VaultInfo:
    cached = session.cache.get(VAULT_INFO_CACHE_KEY)
    if cached is not None:
        try:
            return VaultInfo(**cached)
        except TypeError:
            # Entry written in another shape; treat as a miss
            session.cache.invalidate(VAULT_INFO_CACHE_KEY)

    simulation = await simulate_read(session, "get_vault_info")
    if simulation.error:
        raise AppError(AppErrorType.CONTRACT_ERROR, "Failed to read vault info", simulation.error)
    retval = simulation_retval(simulation)
    if retval is None:
        raise AppError(AppErrorType.CONTRACT_ERROR, "No result")

    try:
        info = parse_vault_info(retval)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise AppError(AppErrorType.CONTRACT_ERROR, "Unexpected vault info format", str(ex)) from ex

    session.cache.set(VAULT_INFO_CACHE_KEY, asdict(info), ttl=VAULT_INFO_TTL_SECONDS)
    return info


async def _read_user_field(session: VaultSession, function_name: str, address: str) -> int:
    """Read one integer field for `address`. A failed simulation degrades to 0."""
    simulation = await simulate_read(session, function_name, [scval.to_address(address)])
    retval = simulation_retval(simulation)
    if retval is None:
        if simulation.error:
            print(f"⚠️  {function_name} failed for {address}: {simulation.error}", file=sys.stderr)
        return 0
    try:
        return as_int(scval_to_native(retval))
    except Exception as ex:  # pylint: disable=broad-exception-caught
        print(f"⚠️  {function_name} returned an unexpected value for {address}: {ex}", file=sys.stderr)
        return 0


async def get_user_vault(session: VaultSession, address: str) -> UserVault:
    key = user_cache_key(address)
    cached = session.cache.get(key)
    if cached is not None:
        try:
            return UserVault(**cached)
        except TypeError:
            session.cache.invalidate(key)

    balance = await _read_user_field(session, "get_balance", address)
    timelock = await _read_user_field(session, "get_timelock", address)

    data = UserVault(balance=balance, timelock=timelock)
    session.cache.set(key, asdict(data), ttl=USER_VAULT_TTL_SECONDS)
    return data


async def deposit(session: VaultSession, address: str, amount: int, **pipeline_kwargs) -> SubmittedTransaction:
    """Deposit `amount` stroops from `address` into the vault."""
    validate_amount(amount)
    submitted = await submit_contract_call(
        session,
        address,
        "deposit",
        [scval.to_address(address), scval.to_int128(amount)],
        **pipeline_kwargs,
    )
    session.cache.invalidate(VAULT_INFO_CACHE_KEY)
    session.cache.invalidate(user_cache_key(address))
    return submitted


async def withdraw(session: VaultSession, address: str, amount: int, **pipeline_kwargs) -> SubmittedTransaction:
    """Withdraw `amount` stroops from the vault back to `address`."""
    validate_amount(amount)
    submitted = await submit_contract_call(
        session,
        address,
        "withdraw",
        [scval.to_address(address), scval.to_int128(amount)],
        **pipeline_kwargs,
    )
    session.cache.invalidate(VAULT_INFO_CACHE_KEY)
    session.cache.invalidate(user_cache_key(address))
    return submitted


async def set_timelock(
    session: VaultSession, address: str, unlock_time: int, **pipeline_kwargs
) -> SubmittedTransaction:
    """Lock the caller's vault balance until `unlock_time` (unix seconds)."""
    submitted = await submit_contract_call(
        session,
        address,
        "set_timelock",
        [scval.to_address(address), scval.to_uint64(unlock_time)],
        **pipeline_kwargs,
    )
    session.cache.invalidate(user_cache_key(address))
    return submitted


async def run_transaction(operation: Awaitable[SubmittedTransaction]) -> TransactionResult:
    """Await a mutation and report it as a TransactionResult instead of raising AppError."""
    try:
        submitted = await operation
    except AppError as ex:
        return TransactionResult(success=False, error=ex.message)
    return TransactionResult(success=True, hash=submitted.hash, confirmed=submitted.confirmed)
