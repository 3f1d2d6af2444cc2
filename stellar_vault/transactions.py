"""Transaction pipeline: build, simulate, sign, submit and confirm a contract call."""

import asyncio
import sys
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from stellar_sdk import Account, TransactionBuilder, TransactionEnvelope, xdr
from stellar_sdk.soroban_rpc import GetTransactionStatus, SendTransactionStatus

from stellar_vault.constants import (
    BASE_FEE_STROOPS,
    CONFIRM_MAX_RETRIES,
    CONFIRM_POLL_INTERVAL_SECONDS,
    TX_TIMEOUT_SECONDS,
)
from stellar_vault.errors import (
    AppError,
    AppErrorType,
    account_not_funded_error,
    classify_signer_error,
    classify_simulation_error,
)
from stellar_vault.models import Finality, NetworkConfig, SubmittedTransaction
from stellar_vault.session import VaultSession
from stellar_vault.signer import Signer


async def load_source_account(server: Any, address: str) -> Account:
    """Load the source account. A missing account means it cannot pay, so it is INSUFFICIENT_BALANCE."""
    try:
        return await server.load_account(address)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise account_not_funded_error(str(ex)) from ex


def build_invoke_transaction(
    account: Account,
    network: NetworkConfig,
    function_name: str,
    parameters: Iterable["xdr.SCVal"] = (),
    *,
    timeout: int = TX_TIMEOUT_SECONDS,
) -> TransactionEnvelope:
    """Envelope with a fixed fee, a client-side expiry and exactly one contract call."""
    return (
        TransactionBuilder(
            source_account=account,
            network_passphrase=network.passphrase,
            base_fee=BASE_FEE_STROOPS,
        )
        .append_invoke_contract_function_op(
            contract_id=network.contract_id,
            function_name=function_name,
            parameters=list(parameters),
        )
        .set_timeout(timeout)
        .build()
    )


async def simulate(server: Any, tx: TransactionEnvelope) -> Any:
    try:
        return await server.simulate_transaction(tx)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise AppError(AppErrorType.NETWORK_ERROR, "Simulation request failed", str(ex)) from ex


async def simulate_or_raise(server: Any, tx: TransactionEnvelope) -> Any:
    """Simulate `tx` and raise a classified AppError if the contract call would fail."""
    simulation = await simulate(server, tx)
    if simulation.error:
        raise classify_simulation_error(simulation.error)
    return simulation


async def assemble_transaction(server: Any, tx: TransactionEnvelope, simulation: Any) -> TransactionEnvelope:
    """Merge the simulated footprint and resource fee into the envelope; required before signing."""
    try:
        return await server.prepare_transaction(tx, simulation)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise AppError(AppErrorType.CONTRACT_ERROR, "Failed to assemble transaction", str(ex)) from ex


async def sign_transaction(
    signer: Signer | None, tx: TransactionEnvelope, address: str, network: NetworkConfig
) -> TransactionEnvelope:
    if signer is None:
        raise AppError(AppErrorType.WALLET_NOT_FOUND, "No wallet connected. Connect a wallet to sign transactions.")
    try:
        signed_xdr = await signer.sign(tx.to_xdr(), address, network.passphrase)
        return TransactionBuilder.from_xdr(signed_xdr, network.passphrase)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise classify_signer_error(str(ex)) from ex


async def send_or_raise(server: Any, signed: TransactionEnvelope) -> str:
    """Submit a signed envelope and return its hash."""
    try:
        response = await server.send_transaction(signed)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise AppError(AppErrorType.NETWORK_ERROR, "Transaction submission request failed", str(ex)) from ex

    if response.status == SendTransactionStatus.ERROR:
        raise AppError(AppErrorType.CONTRACT_ERROR, "Transaction submission failed", response.error_result_xdr)
    if response.status == SendTransactionStatus.TRY_AGAIN_LATER:
        raise AppError(AppErrorType.NETWORK_ERROR, "Network is busy, try again later", response.hash)
    return response.hash


async def wait_for_confirmation(
    server: Any,
    tx_hash: str,
    *,
    interval: float = CONFIRM_POLL_INTERVAL_SECONDS,
    max_retries: int = CONFIRM_MAX_RETRIES,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_poll: Callable[[int], None] | None = None,
) -> Finality:
    """
    Poll the transaction status until it leaves NOT_FOUND or the retries run out.

    FAILED raises CONTRACT_ERROR. Once a transaction was accepted, anything that prevents
    observing its outcome (retries exhausted, unparsable status response) returns UNCONFIRMED
    instead of raising.
    """
    try:
        result = await server.get_transaction(tx_hash)
        retries = 0
        while result.status == GetTransactionStatus.NOT_FOUND and retries < max_retries:
            await sleep(interval)
            result = await server.get_transaction(tx_hash)
            retries += 1
            if on_poll is not None:
                on_poll(retries)
        if result.status == GetTransactionStatus.FAILED:
            raise AppError(AppErrorType.CONTRACT_ERROR, "Transaction failed on-chain.", tx_hash)
    except AppError:
        raise
    except Exception as ex:  # pylint: disable=broad-exception-caught
        print(f"⚠️  get_transaction failed for {tx_hash}, treating as unconfirmed: {ex}", file=sys.stderr)
        return Finality.UNCONFIRMED

    if result.status == GetTransactionStatus.SUCCESS:
        return Finality.CONFIRMED
    return Finality.UNCONFIRMED


async def submit_contract_call(
    session: VaultSession,
    address: str,
    function_name: str,
    parameters: Iterable["xdr.SCVal"] = (),
    *,
    poll_interval: float = CONFIRM_POLL_INTERVAL_SECONDS,
    max_retries: int = CONFIRM_MAX_RETRIES,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_poll: Callable[[int], None] | None = None,
) -> SubmittedTransaction:
    """
    Drive one state-changing contract call signed by `address` to finality.

    Every failure is raised as an AppError classified where it happened; already
    classified errors pass through unchanged.
    """
    if session.signer is None:
        raise AppError(AppErrorType.WALLET_NOT_FOUND, "No wallet connected. Connect a wallet to sign transactions.")

    server = session.server
    account = await load_source_account(server, address)
    tx = build_invoke_transaction(account, session.network, function_name, parameters)

    simulation = await simulate_or_raise(server, tx)
    prepared = await assemble_transaction(server, tx, simulation)

    signed = await sign_transaction(session.signer, prepared, address, session.network)
    tx_hash = await send_or_raise(server, signed)

    finality = await wait_for_confirmation(
        server, tx_hash, interval=poll_interval, max_retries=max_retries, sleep=sleep, on_poll=on_poll
    )
    return SubmittedTransaction(hash=tx_hash, finality=finality)
