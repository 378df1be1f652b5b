"""Signer adapters for x402 transfer authorizations.

A signer exposes the payer ``address`` and signs EIP-712 typed data. Two
adapters ship with the library: ``LocalSigner`` (in-process key via
eth_account) and ``RemoteSigner`` (an HTTP signing service, e.g. a KMS
front-end).

Settings are resolved from environment variables first, then from the
``signer`` section of ~/.x402/config.json.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from x402_requests.config import load_config, resolve_setting
from x402_requests.exceptions import NoSignerError

logger = logging.getLogger(__name__)

TypedDataFields = dict[str, list[dict[str, str]]]


class SignerBase(ABC):
    """Abstract base for typed-data signers."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Address of the paying account (0x-prefixed)."""

    @abstractmethod
    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: TypedDataFields,
        primary_type: str,
        message: dict[str, Any],
    ) -> str:
        """Sign EIP-712 typed data.

        Args:
            domain: EIP-712 domain (name, version, chainId, verifyingContract).
            types: Struct definitions, without the EIP712Domain entry.
            primary_type: Name of the struct in ``types`` being signed.
            message: Values for the primary type.

        Returns:
            Signature as a 0x-prefixed hex string.

        Raises:
            SigningError: If the signer refuses or fails.
        """

    def sign_typed_data_sync(
        self,
        domain: dict[str, Any],
        types: TypedDataFields,
        primary_type: str,
        message: dict[str, Any],
    ) -> str:
        """Synchronous wrapper for sign_typed_data.

        Subclasses may override with a native sync implementation.
        """
        import asyncio

        coro = self.sign_typed_data(domain, types, primary_type, message)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop and loop.is_running():
            # Inside a running loop: run in a new thread
            import concurrent.futures

            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
                future = pool.submit(asyncio.run, coro)
                return future.result(timeout=60)
        else:
            return asyncio.run(coro)


def _try_build_signer(name: str, signer_config: dict) -> SignerBase | None:
    """Try to build a specific signer by name. Returns None if not configured."""
    if name == "local":
        key = resolve_setting("X402_PRIVATE_KEY", "privateKey", signer_config)
        if key:
            from x402_requests.signers.local import LocalSigner

            return LocalSigner(private_key=key)

    elif name == "remote":
        url = resolve_setting("X402_SIGNER_URL", "url", signer_config)
        address = resolve_setting("X402_SIGNER_ADDRESS", "address", signer_config)
        if url and address:
            from x402_requests.signers.remote import RemoteSigner

            return RemoteSigner(
                base_url=url,
                address=address,
                api_token=resolve_setting("X402_SIGNER_TOKEN", "token", signer_config) or None,
            )

    return None


_DEFAULT_PRIORITY = ["local", "remote"]


def auto_detect_signer() -> SignerBase:
    """Auto-detect a signer from environment variables or the config file.

    Resolution order for each signer: env var, then ~/.x402/config.json.
    Placeholder env values (e.g. "${X402_PRIVATE_KEY}") are skipped. A
    ``signer.type`` of "remote" in the config file moves the remote signer
    ahead of the local key.

    Raises:
        NoSignerError: If no signer settings are found.
    """
    config = load_config()
    signer_config = config.get("signer", {})
    if not isinstance(signer_config, dict):
        signer_config = {}

    priority = list(_DEFAULT_PRIORITY)
    preferred = str(signer_config.get("type", "")).lower()
    if preferred in priority:
        priority.remove(preferred)
        priority.insert(0, preferred)

    for name in priority:
        signer = _try_build_signer(name, signer_config)
        if signer is not None:
            logger.info(f"x402: using {name} signer for {signer.address}")
            return signer

    raise NoSignerError()


# Re-export signer classes for convenience
from x402_requests.signers.local import LocalSigner as LocalSigner  # noqa: E402
from x402_requests.signers.remote import RemoteSigner as RemoteSigner  # noqa: E402

__all__ = [
    "SignerBase",
    "auto_detect_signer",
    "LocalSigner",
    "RemoteSigner",
]
