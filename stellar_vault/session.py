"""Explicit per-session context passed to every vault operation."""

from dataclasses import dataclass, field
from typing import Any

from stellar_vault.cache import VaultCache
from stellar_vault.models import NetworkConfig
from stellar_vault.signer import Signer
from stellar_vault.soroban import create_soroban_server


@dataclass
class VaultSession:
    """
    Everything an operation needs: network settings, the RPC client, the cache and
    (for mutations) a signer. Construct one per user session or per test.
    """

    network: NetworkConfig
    # SorobanServerAsync, or any object with the same coroutine methods.
    server: Any
    cache: VaultCache = field(default_factory=VaultCache)
    signer: Signer | None = None

    @classmethod
    def connect(
        cls, network: NetworkConfig, *, cache: VaultCache | None = None, signer: Signer | None = None
    ) -> "VaultSession":
        return cls(
            network=network,
            server=create_soroban_server(network),
            cache=cache if cache is not None else VaultCache(),
            signer=signer,
        )

    async def close(self) -> None:
        close = getattr(self.server, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "VaultSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
