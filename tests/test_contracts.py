import asyncio

import pytest
from stellar_sdk import Keypair, scval

from stellar_vault.contracts import (
    deposit,
    get_user_vault,
    get_vault_info,
    run_transaction,
    set_timelock,
    user_cache_key,
    withdraw,
)
from stellar_vault.errors import AppError, AppErrorType
from stellar_vault.models import UserVault, VaultInfo
from tests.conftest import FakeSigner, no_sleep, sim_error, sim_ok, vault_info_scval


@pytest.fixture
def vault_state(server, network):
    token = Keypair.random().public_key
    server.on_simulate("get_vault_info", sim_ok(vault_info_scval(network.admin, token, 50_000_000, 2)))
    return token


def test_get_vault_info_simulates_with_admin_account_and_caches(session, server, network, vault_state):
    info = asyncio.run(get_vault_info(session))
    assert info == VaultInfo(admin=network.admin, token=vault_state, total_deposited=50_000_000, deposit_count=2)
    assert server.calls_to("load_account") == [("load_account", network.admin)]

    again = asyncio.run(get_vault_info(session))
    assert again == info
    assert len(server.calls_to("simulate_transaction")) == 1
    assert server.calls_to("send_transaction") == []


def test_get_vault_info_refetches_after_ttl(session, server, clock, vault_state):
    asyncio.run(get_vault_info(session))
    clock.now += 20
    asyncio.run(get_vault_info(session))
    assert len(server.calls_to("simulate_transaction")) == 2


def test_get_vault_info_simulation_error_is_contract_error(session, server):
    server.on_simulate("get_vault_info", sim_error("contract not initialized"))
    with pytest.raises(AppError) as exc:
        asyncio.run(get_vault_info(session))
    assert exc.value.type is AppErrorType.CONTRACT_ERROR
    assert session.cache.get("vault_info") is None


def test_get_vault_info_without_result_is_contract_error(session, server):
    server.on_simulate("get_vault_info", sim_ok())
    with pytest.raises(AppError) as exc:
        asyncio.run(get_vault_info(session))
    assert exc.value.type is AppErrorType.CONTRACT_ERROR


def test_get_vault_info_unreachable_admin_is_network_error(session, server, network):
    server.missing_accounts.add(network.admin)
    with pytest.raises(AppError) as exc:
        asyncio.run(get_vault_info(session))
    assert exc.value.type is AppErrorType.NETWORK_ERROR


def test_get_user_vault_reads_balance_and_timelock_with_fresh_accounts(session, server, network, user):
    server.on_simulate("get_balance", sim_ok(scval.to_int128(70_000_000)))
    server.on_simulate("get_timelock", sim_ok(scval.to_uint64(1_800_000_000)))

    data = asyncio.run(get_user_vault(session, user))

    assert data == UserVault(balance=70_000_000, timelock=1_800_000_000)
    assert server.calls_to("load_account") == [("load_account", network.admin)] * 2
    assert [c[1] for c in server.calls_to("simulate_transaction")] == ["get_balance", "get_timelock"]
    assert session.cache.get(user_cache_key(user)) == {"balance": 70_000_000, "timelock": 1_800_000_000}


def test_get_user_vault_degrades_failed_field_to_zero(session, server, user, capsys):
    server.on_simulate("get_balance", sim_error("no entry"))
    server.on_simulate("get_timelock", sim_ok(scval.to_uint64(1_800_000_000)))

    data = asyncio.run(get_user_vault(session, user))

    assert data == UserVault(balance=0, timelock=1_800_000_000)
    assert "get_balance failed" in capsys.readouterr().err


def test_user_cache_keys_do_not_collide_on_shared_prefix():
    a = Keypair.random().public_key
    b = a[:8] + Keypair.random().public_key[8:]
    assert user_cache_key(a) != user_cache_key(b)


def test_user_vault_cache_expires_after_15_seconds(session, server, clock, user):
    asyncio.run(get_user_vault(session, user))
    clock.now += 14
    asyncio.run(get_user_vault(session, user))
    assert len(server.calls_to("simulate_transaction")) == 2
    clock.now += 1
    asyncio.run(get_user_vault(session, user))
    assert len(server.calls_to("simulate_transaction")) == 4


def test_deposit_invalidates_vault_info_and_user_cache(session, server, network, user, vault_state):
    server.on_simulate(
        "get_vault_info",
        sim_ok(vault_info_scval(network.admin, vault_state, 50_000_000, 2)),
        sim_ok(vault_info_scval(network.admin, vault_state, 60_000_000, 3)),
    )
    server.simulations["get_vault_info"].pop(0)  # drop the fixture's default response
    before = asyncio.run(get_vault_info(session))
    asyncio.run(get_user_vault(session, user))

    submitted = asyncio.run(deposit(session, user, 10_000_000, sleep=no_sleep))
    assert submitted.confirmed

    assert session.cache.get("vault_info") is None
    assert session.cache.get(user_cache_key(user)) is None
    after = asyncio.run(get_vault_info(session))
    assert before.total_deposited == 50_000_000
    assert after.total_deposited == 60_000_000


def test_withdraw_invalidates_caches(session, server, user, vault_state):
    asyncio.run(get_vault_info(session))
    asyncio.run(get_user_vault(session, user))
    asyncio.run(withdraw(session, user, 5_000_000, sleep=no_sleep))
    assert session.cache.get("vault_info") is None
    assert session.cache.get(user_cache_key(user)) is None


def test_set_timelock_invalidates_only_user_cache(session, server, user, vault_state):
    asyncio.run(get_vault_info(session))
    asyncio.run(get_user_vault(session, user))
    asyncio.run(set_timelock(session, user, 1_800_000_000, sleep=no_sleep))
    assert session.cache.get("vault_info") is not None
    assert session.cache.get(user_cache_key(user)) is None
    assert server.calls_to("send_transaction") == [("send_transaction", "set_timelock")]


def test_failed_mutation_keeps_caches(session, server, user, vault_state):
    asyncio.run(get_vault_info(session))
    server.on_simulate("withdraw", sim_error("funds are timelocked"))
    with pytest.raises(AppError) as exc:
        asyncio.run(withdraw(session, user, 5_000_000, sleep=no_sleep))
    assert exc.value.type is AppErrorType.FUNDS_TIMELOCKED
    assert session.cache.get("vault_info") is not None


@pytest.mark.parametrize("amount", [0, -1])
def test_non_positive_amounts_are_rejected_before_any_call(session, server, user, amount):
    with pytest.raises(AppError) as exc:
        asyncio.run(deposit(session, user, amount))
    assert exc.value.type is AppErrorType.CONTRACT_ERROR
    assert server.calls == []


def test_unfunded_deposit_fails_before_signing(session, server, signer, user):
    server.missing_accounts.add(user)
    with pytest.raises(AppError) as exc:
        asyncio.run(deposit(session, user, 100_000_000))
    assert exc.value.type is AppErrorType.INSUFFICIENT_BALANCE
    assert signer.calls == []


def test_run_transaction_reports_success_and_failure(session, server, user):
    ok = asyncio.run(run_transaction(deposit(session, user, 10_000_000, sleep=no_sleep)))
    assert ok.success
    assert ok.hash
    assert ok.confirmed

    session.signer = FakeSigner(error="User declined access")
    failed = asyncio.run(run_transaction(deposit(session, user, 10_000_000, sleep=no_sleep)))
    assert not failed.success
    assert failed.hash is None
    assert failed.error == "You rejected the transaction in your wallet."


def test_stale_vault_info_entry_is_a_cache_miss(session, server, network, vault_state):
    session.cache.set("vault_info", {"admin": network.admin, "total": 1})

    info = asyncio.run(get_vault_info(session))

    assert info.total_deposited == 50_000_000
    assert len(server.calls_to("simulate_transaction")) == 1
    assert session.cache.get("vault_info")["deposit_count"] == 2


def test_stale_user_vault_entry_is_a_cache_miss(session, server, user):
    session.cache.set(user_cache_key(user), [1, 2])
    server.on_simulate("get_balance", sim_ok(scval.to_int128(3)))

    data = asyncio.run(get_user_vault(session, user))

    assert data == UserVault(balance=3, timelock=0)
    assert [c[1] for c in server.calls_to("simulate_transaction")] == ["get_balance", "get_timelock"]
