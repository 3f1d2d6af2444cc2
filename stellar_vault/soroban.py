"""Remote endpoints: Soroban RPC, Horizon and Friendbot."""

from decimal import Decimal

import requests
from stellar_sdk import ServerAsync, SorobanServerAsync
from stellar_sdk.client.aiohttp_client import AiohttpClient
from stellar_sdk.exceptions import NotFoundError

from stellar_vault.constants import HTTP_TIMEOUT_SECONDS, STROOPS_PER_XLM
from stellar_vault.errors import AppError, AppErrorType, account_not_funded_error
from stellar_vault.models import NetworkConfig

_rpc_server: SorobanServerAsync | None = None


def create_soroban_server(network: NetworkConfig) -> SorobanServerAsync:
    """Build a new Soroban RPC client for `network`. Sessions should own one of these."""
    return SorobanServerAsync(network.soroban_rpc_url, client=AiohttpClient(request_timeout=HTTP_TIMEOUT_SECONDS))


def get_soroban_server(network: NetworkConfig | None = None) -> SorobanServerAsync:
    """
    Return the process-wide Soroban RPC client, creating it on first use.

    The first call fixes the URL; later calls ignore `network`. Prefer `create_soroban_server`
    with an explicit `VaultSession` where the client must be substituted (tests).
    """
    global _rpc_server  # pylint: disable=global-statement
    if _rpc_server is None:
        _rpc_server = create_soroban_server(network or NetworkConfig())
    return _rpc_server


def get_horizon_server(network: NetworkConfig) -> ServerAsync:
    """Return a fresh Horizon client. Cheap and stateless, so it is not shared."""
    return ServerAsync(network.horizon_url, client=AiohttpClient(request_timeout=HTTP_TIMEOUT_SECONDS))


async def fetch_native_balance(network: NetworkConfig, address: str) -> int:
    """Native XLM balance of `address` in stroops, read from Horizon."""
    async with get_horizon_server(network) as server:
        try:
            account = await server.accounts().account_id(address).call()
        except NotFoundError as ex:
            raise account_not_funded_error(str(ex)) from ex
        except Exception as ex:  # pylint: disable=broad-exception-caught
            raise AppError(AppErrorType.NETWORK_ERROR, "Failed to load account from Horizon", str(ex)) from ex

    for balance in account.get("balances", []):
        if balance.get("asset_type") == "native":
            return int(Decimal(balance["balance"]) * STROOPS_PER_XLM)
    return 0


def fund_account(network: NetworkConfig, address: str, *, timeout_s: int = HTTP_TIMEOUT_SECONDS) -> None:
    """Ask Friendbot to create and fund a testnet account."""
    try:
        resp = requests.get(network.friendbot_url, params={"addr": address}, timeout=timeout_s)
        resp.raise_for_status()
    except requests.RequestException as ex:
        raise AppError(AppErrorType.NETWORK_ERROR, f"Friendbot could not fund {address}", str(ex)) from ex
