"""Remote signing service adapter (KMS / custody front-ends)."""

from __future__ import annotations

import re
from typing import Any

import httpx

from x402_requests.exceptions import SigningError
from x402_requests.signers import SignerBase, TypedDataFields

_HEX_SIGNATURE_RE = re.compile(r"^0x[0-9a-fA-F]{130,}$")


def _jsonable(value: Any) -> Any:
    """Make typed-data values JSON-safe: bytes become 0x hex."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class RemoteSigner(SignerBase):
    """Sign typed data through an HTTP signing service.

    The service receives ``POST /v1/sign-typed-data`` with
    ``{"address", "domain", "types", "primaryType", "message"}`` and answers
    ``{"signature": "0x..."}``. Integers are sent as JSON numbers and bytes
    as 0x hex.
    """

    SIGN_PATH = "/v1/sign-typed-data"

    def __init__(
        self,
        base_url: str,
        address: str,
        api_token: str | None = None,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._address = address
        self._api_token = api_token
        self._timeout = timeout

    @property
    def address(self) -> str:
        return self._address

    def _build_client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout,
        )

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: TypedDataFields,
        primary_type: str,
        message: dict[str, Any],
    ) -> str:
        payload = {
            "address": self._address,
            "domain": _jsonable(domain),
            "types": types,
            "primaryType": primary_type,
            "message": _jsonable(message),
        }

        async with self._build_client() as client:
            try:
                resp = await client.post(self.SIGN_PATH, json=payload)
            except httpx.HTTPError as e:
                raise SigningError(f"signing service connection error: {e}") from e

            if resp.status_code != 200:
                raise SigningError(
                    f"signing service returned {resp.status_code}: {resp.text}"
                )

            try:
                signature = resp.json().get("signature", "")
            except (ValueError, AttributeError):
                raise SigningError("signing service returned a non-JSON body") from None

            if not isinstance(signature, str) or not _HEX_SIGNATURE_RE.match(signature):
                raise SigningError("signing service returned no valid signature")

            return signature
