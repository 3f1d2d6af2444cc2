"""Data models for the Stellar vault client."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from stellar_vault.constants import (
    EXPLORER_HOST,
    NATIVE_TOKEN_ID,
    TESTNET_FRIENDBOT_URL,
    TESTNET_HORIZON_URL,
    TESTNET_NAME,
    TESTNET_PASSPHRASE,
    TESTNET_SOROBAN_RPC_URL,
    VAULT_ADMIN,
    VAULT_CONTRACT_ID,
)


@dataclass(frozen=True)
class NetworkConfig:
    """Endpoints and deployed contract addresses for one Stellar network."""

    name: str = TESTNET_NAME
    horizon_url: str = TESTNET_HORIZON_URL
    soroban_rpc_url: str = TESTNET_SOROBAN_RPC_URL
    passphrase: str = TESTNET_PASSPHRASE
    friendbot_url: str = TESTNET_FRIENDBOT_URL
    contract_id: str = VAULT_CONTRACT_ID
    admin: str = VAULT_ADMIN
    token_id: str = NATIVE_TOKEN_ID
    explorer_host: str = EXPLORER_HOST


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with the time it was stored and its time-to-live (seconds)."""

    data: Any
    stored_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


@dataclass(frozen=True)
class VaultInfo:
    """Global vault state as returned by the contract's `get_vault_info`."""

    admin: str
    token: str
    total_deposited: int
    deposit_count: int


@dataclass(frozen=True)
class UserVault:
    """Per-user vault state. `timelock` is a unix timestamp, 0 means unlocked."""

    balance: int
    timelock: int

    def is_locked(self, now: int) -> bool:
        return self.timelock > 0 and self.timelock > now


class Finality(str, Enum):
    """How far a submitted transaction was verified."""

    CONFIRMED = "confirmed"
    # Accepted for submission, but confirmation could not be observed.
    UNCONFIRMED = "unconfirmed"


@dataclass(frozen=True)
class SubmittedTransaction:
    """Outcome of a pipeline run that reached the network."""

    hash: str
    finality: Finality

    @property
    def confirmed(self) -> bool:
        return self.finality is Finality.CONFIRMED


@dataclass(frozen=True)
class TransactionResult:
    """Result of one submission attempt, as reported to the user."""

    success: bool
    hash: str | None = None
    error: str | None = None
    confirmed: bool = False


@dataclass(frozen=True)
class VaultEvent:
    """A deposit, withdraw or lock event emitted by the vault contract."""

    type: str
    user: str
    timestamp: int
    tx_id: str
    ledger: int
    amount: int | None = None
    unlock_time: int | None = None


@dataclass(frozen=True)
class EventPage:
    """
    One poll worth of vault events plus where the next poll resumes.

    `paging_cursor` is the RPC paging token of the last event when the page came back full;
    the remaining events must then be fetched from it rather than from `cursor`.
    """

    events: list[VaultEvent] = field(default_factory=list)
    latest_ledger: int = 0
    cursor: int = 1
    paging_cursor: str | None = None
