"""X-PAYMENT header encoding.

The header value is base64 of a JSON envelope::

    {"x402Version": 1, "scheme": ..., "network": ...,
     "payload": {"signature": "0x...",
                 "authorization": {"from", "to", "value", "validAfter",
                                   "validBefore", "nonce"}}}

Integer fields travel as decimal strings so receivers in languages without
native big integers lose no precision. The nonce is 0x hex.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from typing import Any, NamedTuple

from x402_requests.authorization import NONCE_SIZE, Authorization
from x402_requests.exceptions import PaymentHeaderError
from x402_requests.requirement import PaymentRequirement

PAYMENT_HEADER = "X-PAYMENT"
X402_VERSION = 1

_DECIMAL_RE = re.compile(r"[0-9]+")
_SIGNATURE_RE = re.compile(r"0x[0-9a-fA-F]+")
_NONCE_RE = re.compile(rf"0x[0-9a-fA-F]{{{2 * NONCE_SIZE}}}")


class DecodedPayment(NamedTuple):
    authorization: Authorization
    signature: str
    scheme: str | None = None
    network: str | None = None


def encode_payment_header(
    authorization: Authorization,
    signature: str,
    requirement: PaymentRequirement | None = None,
) -> str:
    """Serialize an authorization and its signature into an X-PAYMENT value."""
    envelope: dict[str, Any] = {"x402Version": X402_VERSION}
    if requirement is not None:
        envelope["scheme"] = requirement.scheme
        envelope["network"] = requirement.network
    envelope["payload"] = {
        "signature": signature,
        "authorization": {
            "from": authorization.from_address,
            "to": authorization.to,
            "value": str(authorization.value),
            "validAfter": str(authorization.valid_after),
            "validBefore": str(authorization.valid_before),
            "nonce": authorization.nonce_hex,
        },
    }
    raw = json.dumps(envelope, separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def _field(mapping: dict, key: str, where: str) -> Any:
    if key not in mapping:
        raise PaymentHeaderError(f"missing {where}.{key}")
    return mapping[key]


def _decimal(mapping: dict, key: str) -> int:
    value = _field(mapping, key, "authorization")
    if not isinstance(value, str) or not _DECIMAL_RE.fullmatch(value):
        raise PaymentHeaderError(f"authorization.{key} is not a decimal string")
    return int(value)


def _text(mapping: dict, key: str, where: str) -> str:
    value = _field(mapping, key, where)
    if not isinstance(value, str) or not value:
        raise PaymentHeaderError(f"{where}.{key} must be a non-empty string")
    return value


def _optional_text(mapping: dict, key: str) -> str | None:
    value = mapping.get(key)
    if value is not None and not isinstance(value, str):
        raise PaymentHeaderError(f"{key} must be a string")
    return value


def decode_payment_header(value: str) -> DecodedPayment:
    """Parse an X-PAYMENT value back into its authorization and signature.

    Raises:
        PaymentHeaderError: On any malformed input. Never returns partial data.
    """
    if not isinstance(value, str) or not value.strip():
        raise PaymentHeaderError("empty header")

    try:
        raw = base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise PaymentHeaderError("invalid base64") from None

    try:
        envelope = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise PaymentHeaderError("invalid JSON") from None

    if not isinstance(envelope, dict):
        raise PaymentHeaderError("envelope is not an object")

    payload = _field(envelope, "payload", "envelope")
    if not isinstance(payload, dict):
        raise PaymentHeaderError("payload is not an object")

    signature = _text(payload, "signature", "payload")
    if not _SIGNATURE_RE.fullmatch(signature):
        raise PaymentHeaderError("signature is not 0x hex")

    auth = _field(payload, "authorization", "payload")
    if not isinstance(auth, dict):
        raise PaymentHeaderError("authorization is not an object")

    nonce_hex = _text(auth, "nonce", "authorization")
    if not _NONCE_RE.fullmatch(nonce_hex):
        raise PaymentHeaderError(f"nonce must be {NONCE_SIZE} bytes of 0x hex")

    try:
        authorization = Authorization(
            from_address=_text(auth, "from", "authorization"),
            to=_text(auth, "to", "authorization"),
            value=_decimal(auth, "value"),
            valid_after=_decimal(auth, "validAfter"),
            valid_before=_decimal(auth, "validBefore"),
            nonce=bytes.fromhex(nonce_hex[2:]),
        )
    except ValueError as e:
        raise PaymentHeaderError(str(e)) from None

    return DecodedPayment(
        authorization=authorization,
        signature=signature,
        scheme=_optional_text(envelope, "scheme"),
        network=_optional_text(envelope, "network"),
    )
