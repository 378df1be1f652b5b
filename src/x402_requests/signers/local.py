"""In-process signer backed by an eth_account private key."""

from __future__ import annotations

from typing import Any

from eth_account import Account

from x402_requests.signers import SignerBase, TypedDataFields


class LocalSigner(SignerBase):
    """Sign typed data with a local secp256k1 key.

    No network I/O: the EIP-712 digest is computed and signed in process.
    """

    def __init__(self, private_key: str):
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid private key: {e}") from e

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: TypedDataFields,
        primary_type: str,
        message: dict[str, Any],
    ) -> str:
        return self.sign_typed_data_sync(domain, types, primary_type, message)

    def sign_typed_data_sync(
        self,
        domain: dict[str, Any],
        types: TypedDataFields,
        primary_type: str,
        message: dict[str, Any],
    ) -> str:
        # eth_account infers the primary type from the struct graph
        if primary_type not in types:
            raise ValueError(f"primary type {primary_type!r} missing from types")
        signed = self._account.sign_typed_data(
            domain_data=domain,
            message_types={name: list(fields) for name, fields in types.items()},
            message_data=message,
        )
        return "0x" + bytes(signed.signature).hex()

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address!r})"
