"""EIP-3009 transferWithAuthorization construction and signing.

An authorization lets the payee pull ``value`` of the asset from the payer
within ``[valid_after, valid_before)``. The 32-byte random nonce makes each
authorization single-use on chain.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, NamedTuple

from x402_requests.networks import get_chain_id
from x402_requests.requirement import UINT256_MAX, PaymentRequirement
from x402_requests.signers import SignerBase

PRIMARY_TYPE = "TransferWithAuthorization"

TRANSFER_WITH_AUTHORIZATION_TYPES: dict[str, list[dict[str, str]]] = {
    PRIMARY_TYPE: [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}

DEFAULT_DOMAIN_NAME = "USD Coin"
DEFAULT_DOMAIN_VERSION = "2"

NONCE_SIZE = 32


def generate_nonce() -> bytes:
    return os.urandom(NONCE_SIZE)


def _check_uint(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= UINT256_MAX:
        raise ValueError(f"{name} out of uint256 range: {value}")


@dataclass(frozen=True)
class Authorization:
    """A time-bounded transfer instruction from payer to payee."""

    from_address: str
    to: str
    value: int
    valid_after: int
    valid_before: int
    nonce: bytes

    def __post_init__(self) -> None:
        _check_uint("value", self.value)
        _check_uint("valid_after", self.valid_after)
        _check_uint("valid_before", self.valid_before)
        if self.valid_before <= self.valid_after:
            raise ValueError(
                f"valid_before ({self.valid_before}) must be greater than "
                f"valid_after ({self.valid_after})"
            )
        if not isinstance(self.nonce, bytes) or len(self.nonce) != NONCE_SIZE:
            raise ValueError(f"nonce must be {NONCE_SIZE} bytes")

    @property
    def nonce_hex(self) -> str:
        return "0x" + self.nonce.hex()

    def to_message(self) -> dict[str, Any]:
        """EIP-712 message for the TransferWithAuthorization struct."""
        return {
            "from": self.from_address,
            "to": self.to,
            "value": self.value,
            "validAfter": self.valid_after,
            "validBefore": self.valid_before,
            "nonce": self.nonce,
        }


@dataclass(frozen=True)
class AuthorizationParams:
    """Inputs for one authorization. The nonce is generated at signing time."""

    asset: str
    from_address: str
    to: str
    value: int
    valid_after: int
    valid_before: int
    chain_id: int
    domain_name: str = DEFAULT_DOMAIN_NAME
    domain_version: str = DEFAULT_DOMAIN_VERSION

    @classmethod
    def for_requirement(
        cls,
        requirement: PaymentRequirement,
        payer: str,
        now: float,
        chain_id: int | None = None,
    ) -> AuthorizationParams:
        """Params paying ``requirement`` in full, valid from ``now`` for its timeout.

        The token's EIP-712 domain name and version are taken from
        ``requirement.extra`` when the server advertises them.

        Raises:
            UnsupportedNetworkError: If no chain id is given and the network is unknown.
        """
        extra = requirement.extra or {}
        valid_after = int(now)
        return cls(
            asset=requirement.asset,
            from_address=payer,
            to=requirement.pay_to,
            value=requirement.amount,
            valid_after=valid_after,
            valid_before=valid_after + requirement.max_timeout_seconds,
            chain_id=chain_id if chain_id is not None else get_chain_id(requirement.network),
            domain_name=str(extra.get("name") or DEFAULT_DOMAIN_NAME),
            domain_version=str(extra.get("version") or DEFAULT_DOMAIN_VERSION),
        )


class SignedAuthorization(NamedTuple):
    """An authorization and its signature. Unpacks as a pair."""

    authorization: Authorization
    signature: str


def build_typed_data(
    authorization: Authorization,
    *,
    asset: str,
    chain_id: int,
    domain_name: str = DEFAULT_DOMAIN_NAME,
    domain_version: str = DEFAULT_DOMAIN_VERSION,
) -> tuple[dict[str, Any], dict[str, list[dict[str, str]]], str, dict[str, Any]]:
    """Canonical EIP-712 pieces: ``(domain, types, primary_type, message)``.

    The domain binds the signature to the token contract (``asset``), its
    chain and the token's EIP-712 name/version.
    """
    domain = {
        "name": domain_name,
        "version": domain_version,
        "chainId": chain_id,
        "verifyingContract": asset,
    }
    return domain, TRANSFER_WITH_AUTHORIZATION_TYPES, PRIMARY_TYPE, authorization.to_message()


def _prepare(params: AuthorizationParams):
    authorization = Authorization(
        from_address=params.from_address,
        to=params.to,
        value=params.value,
        valid_after=params.valid_after,
        valid_before=params.valid_before,
        nonce=generate_nonce(),
    )
    typed_data = build_typed_data(
        authorization,
        asset=params.asset,
        chain_id=params.chain_id,
        domain_name=params.domain_name,
        domain_version=params.domain_version,
    )
    return authorization, typed_data


async def sign_authorization(
    signer: SignerBase, params: AuthorizationParams
) -> SignedAuthorization:
    """Create a fresh authorization and have ``signer`` sign it.

    Signer errors propagate unchanged.
    """
    authorization, typed_data = _prepare(params)
    signature = await signer.sign_typed_data(*typed_data)
    return SignedAuthorization(authorization=authorization, signature=signature)


def sign_authorization_sync(
    signer: SignerBase, params: AuthorizationParams
) -> SignedAuthorization:
    """Synchronous counterpart of sign_authorization."""
    authorization, typed_data = _prepare(params)
    signature = signer.sign_typed_data_sync(*typed_data)
    return SignedAuthorization(authorization=authorization, signature=signature)
