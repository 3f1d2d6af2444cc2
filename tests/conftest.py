import os
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from stellar_sdk import Account, Keypair, StrKey, scval, xdr
from stellar_sdk.soroban_rpc import GetTransactionStatus, SendTransactionStatus

from stellar_vault.cache import MemoryStore, VaultCache
from stellar_vault.models import NetworkConfig
from stellar_vault.session import VaultSession

TX_HASH = "ab" * 32


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def invoked_function(tx) -> str:
    op = tx.transaction.operations[0]
    return op.host_function.invoke_contract.function_name.sc_symbol.decode()


def sim_ok(retval: "xdr.SCVal | None" = None):
    results = [SimpleNamespace(xdr=retval.to_xdr(), auth=[])] if retval is not None else []
    return SimpleNamespace(error=None, results=results)


def sim_error(message: str):
    return SimpleNamespace(error=message, results=None)


def vault_info_scval(admin: str, token: str, total: int, count: int) -> "xdr.SCVal":
    entries = [
        xdr.SCMapEntry(scval.to_symbol("admin"), scval.to_address(admin)),
        xdr.SCMapEntry(scval.to_symbol("deposit_count"), scval.to_uint32(count)),
        xdr.SCMapEntry(scval.to_symbol("token"), scval.to_address(token)),
        xdr.SCMapEntry(scval.to_symbol("total_deposited"), scval.to_int128(total)),
    ]
    return xdr.SCVal(xdr.SCValType.SCV_MAP, map=xdr.SCMap(entries))


def make_event(name: str, payload: list, *, ledger: int, event_id: str, topic=None):
    return SimpleNamespace(
        topic=[(topic if topic is not None else scval.to_symbol(name)).to_xdr()],
        value=scval.to_vec(payload).to_xdr(),
        id=event_id,
        ledger=ledger,
        ledger_close_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class FakeSorobanServer:
    """Records calls and answers like SorobanServerAsync, without a network."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.missing_accounts: set[str] = set()
        self.simulations: dict[str, list] = {}
        self.send_status = SendTransactionStatus.PENDING
        self.send_error: Exception | None = None
        self.tx_statuses: list = [GetTransactionStatus.SUCCESS]
        self.latest_ledger = 5000
        self.event_pages: list = []
        self.sequence = 100

    def calls_to(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def on_simulate(self, function_name: str, *responses) -> None:
        self.simulations.setdefault(function_name, []).extend(responses)

    async def load_account(self, address: str) -> Account:
        self.calls.append(("load_account", address))
        if address in self.missing_accounts:
            raise ValueError(f"Account not found: {address}")
        self.sequence += 1
        return Account(address, self.sequence)

    async def simulate_transaction(self, tx):
        name = invoked_function(tx)
        self.calls.append(("simulate_transaction", name))
        queue = self.simulations.get(name) or [sim_ok()]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def prepare_transaction(self, tx, simulation=None):
        self.calls.append(("prepare_transaction", invoked_function(tx)))
        return tx

    async def send_transaction(self, tx):
        self.calls.append(("send_transaction", invoked_function(tx)))
        if self.send_error is not None:
            raise self.send_error
        return SimpleNamespace(status=self.send_status, hash=TX_HASH, error_result_xdr=None)

    async def get_transaction(self, tx_hash: str):
        self.calls.append(("get_transaction", tx_hash))
        status = self.tx_statuses.pop(0) if len(self.tx_statuses) > 1 else self.tx_statuses[0]
        if isinstance(status, Exception):
            raise status
        return SimpleNamespace(status=status)

    async def get_latest_ledger(self):
        self.calls.append(("get_latest_ledger",))
        return SimpleNamespace(sequence=self.latest_ledger)

    async def get_events(self, start_ledger=None, filters=None, cursor=None, limit=None):
        self.calls.append(("get_events", start_ledger, limit) if cursor is None else ("get_events", cursor, limit))
        source = self.event_pages.pop(0) if self.event_pages else []
        if cursor is not None:
            ids = [e.id for e in source]
            events = source[ids.index(cursor) + 1 :] if cursor in ids else []
        else:
            events = [e for e in source if e.ledger >= start_ledger]
        if limit:
            events = events[:limit]
        return SimpleNamespace(events=events, latest_ledger=self.latest_ledger)


class FakeSigner:
    def __init__(self, error: str | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def sign(self, envelope_xdr: str, address: str, network_passphrase: str) -> str:
        self.calls.append((address, network_passphrase))
        if self.error is not None:
            raise RuntimeError(self.error)
        return envelope_xdr


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def user() -> str:
    return Keypair.random().public_key


@pytest.fixture
def network() -> NetworkConfig:
    return NetworkConfig(
        contract_id=StrKey.encode_contract(os.urandom(32)),
        admin=Keypair.random().public_key,
        token_id=StrKey.encode_contract(os.urandom(32)),
    )


@pytest.fixture
def server() -> FakeSorobanServer:
    return FakeSorobanServer()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def session(network, server, clock, signer) -> VaultSession:
    return VaultSession(network=network, server=server, cache=VaultCache(MemoryStore(), clock=clock), signer=signer)
