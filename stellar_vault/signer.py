"""Signer capability: turns an unsigned envelope into a signed one."""

from typing import Protocol

from stellar_sdk import Keypair, TransactionBuilder


class Signer(Protocol):
    """Anything that can sign a transaction envelope for `address` (wallet extension, keypair, HSM)."""

    async def sign(self, envelope_xdr: str, address: str, network_passphrase: str) -> str:
        """Return the signed envelope XDR. Raise with a human-readable message on failure."""
        ...


class KeypairSigner:
    """Signs locally with a secret key. Used by the CLI in place of a wallet extension."""

    def __init__(self, keypair: Keypair) -> None:
        self.keypair = keypair

    @classmethod
    def from_secret(cls, secret: str) -> "KeypairSigner":
        return cls(Keypair.from_secret(secret))

    @property
    def address(self) -> str:
        return self.keypair.public_key

    async def sign(self, envelope_xdr: str, address: str, network_passphrase: str) -> str:
        if address != self.keypair.public_key:
            raise ValueError(f"Signing denied: key for {address} is not available")
        envelope = TransactionBuilder.from_xdr(envelope_xdr, network_passphrase)
        envelope.sign(self.keypair)
        return envelope.to_xdr()
