"""Parse x402 payment requirements from HTTP 402 responses."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from x402_requests.exceptions import RequirementParseError
from x402_requests.networks import default_asset

PAYMENT_REQUIRED_HEADER = "X-PAYMENT-REQUIRED"
# Older servers send a JSON array under this name
LEGACY_REQUIREMENTS_HEADER = "X-Payment-Requirements"

DEFAULT_SCHEME = "exact"
DEFAULT_NETWORK = "base"
DEFAULT_MAX_TIMEOUT_SECONDS = 120
# Keeps now + timeout far inside uint256 for any epoch timestamp
MAX_TIMEOUT_SECONDS = 2**64 - 1

UINT256_MAX = 2**256 - 1


@dataclass(frozen=True)
class PaymentRequirement:
    """What a resource server asks to be paid, as advertised on a 402."""

    scheme: str
    network: str
    max_amount_required: str
    resource: str
    description: str
    pay_to: str
    asset: str
    max_timeout_seconds: int
    mime_type: str | None = None
    extra: Mapping[str, Any] | None = field(default=None, compare=False)

    @property
    def amount(self) -> int:
        return int(self.max_amount_required)

    def to_dict(self) -> dict[str, Any]:
        """Wire form (camelCase keys)."""
        data: dict[str, Any] = {
            "scheme": self.scheme,
            "network": self.network,
            "maxAmountRequired": self.max_amount_required,
            "resource": self.resource,
            "description": self.description,
            "payTo": self.pay_to,
            "maxTimeoutSeconds": self.max_timeout_seconds,
            "asset": self.asset,
        }
        if self.mime_type is not None:
            data["mimeType"] = self.mime_type
        if self.extra is not None:
            data["extra"] = dict(self.extra)
        return data


def _parse_timeout(raw: Any) -> int:
    if raw is None:
        return DEFAULT_MAX_TIMEOUT_SECONDS
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise RequirementParseError(f"invalid maxTimeoutSeconds: {raw!r}")
    try:
        timeout = int(raw)
    except (TypeError, ValueError, OverflowError):
        raise RequirementParseError(f"invalid maxTimeoutSeconds: {raw!r}") from None
    if timeout <= 0:
        raise RequirementParseError(f"maxTimeoutSeconds must be positive: {timeout}")
    if timeout > MAX_TIMEOUT_SECONDS:
        raise RequirementParseError(f"maxTimeoutSeconds too large: {timeout}")
    return timeout


def parse_requirement(data: Any) -> PaymentRequirement:
    """Build a PaymentRequirement from a decoded wire object.

    Missing optional fields get the protocol defaults: scheme ``exact``,
    network ``base``, a 120 second timeout and the network's USDC asset.

    Raises:
        RequirementParseError: If the object cannot describe a payable amount.
    """
    if not isinstance(data, Mapping):
        raise RequirementParseError("requirement is not a JSON object")

    pay_to = data.get("payTo")
    if not isinstance(pay_to, str) or not pay_to:
        raise RequirementParseError("missing payTo")

    raw_amount = data.get("maxAmountRequired")
    if isinstance(raw_amount, bool) or raw_amount is None:
        raise RequirementParseError("missing maxAmountRequired")
    if isinstance(raw_amount, int):
        value = raw_amount
    else:
        amount = str(raw_amount).strip()
        if not (amount.isascii() and amount.isdigit()):
            raise RequirementParseError(
                f"maxAmountRequired is not a decimal integer: {raw_amount!r}"
            )
        try:
            value = int(amount)
        except ValueError:
            # int() refuses overly long digit strings
            raise RequirementParseError("maxAmountRequired is too long") from None
    if not 0 <= value <= UINT256_MAX:
        raise RequirementParseError("maxAmountRequired out of uint256 range")

    network = data.get("network") or DEFAULT_NETWORK
    if not isinstance(network, str):
        raise RequirementParseError("network must be a string")

    asset = data.get("asset") or default_asset(network)
    if not isinstance(asset, str) or not asset:
        raise RequirementParseError(f"no asset given and no default for network {network!r}")

    timeout = _parse_timeout(data.get("maxTimeoutSeconds"))

    extra = data.get("extra")
    return PaymentRequirement(
        scheme=str(data.get("scheme") or DEFAULT_SCHEME),
        network=network,
        max_amount_required=str(value),
        resource=str(data.get("resource") or ""),
        description=str(data.get("description") or ""),
        pay_to=pay_to,
        asset=asset,
        max_timeout_seconds=timeout,
        mime_type=data.get("mimeType"),
        extra=dict(extra) if isinstance(extra, Mapping) else None,
    )


def parse_requirements(data: Any) -> list[PaymentRequirement]:
    """Parse one requirement object, an array of them, or an ``accepts`` envelope.

    Unparseable entries in a list are skipped.

    Raises:
        RequirementParseError: If nothing usable was found.
    """
    if isinstance(data, Mapping) and isinstance(data.get("accepts"), list):
        data = data["accepts"]

    if isinstance(data, list):
        parsed = []
        for item in data:
            try:
                parsed.append(parse_requirement(item))
            except RequirementParseError:
                continue
        if not parsed:
            raise RequirementParseError("no usable requirement in list")
        return parsed

    return [parse_requirement(data)]


def select_requirement(
    requirements: Iterable[PaymentRequirement],
    allowed_schemes: Iterable[str] | None = None,
) -> PaymentRequirement | None:
    """Pick the first requirement whose scheme is allowed (any, if unrestricted)."""
    schemes = {s.lower() for s in allowed_schemes} if allowed_schemes else None
    for requirement in requirements:
        if schemes is None or requirement.scheme.lower() in schemes:
            return requirement
    return None


def _looks_like_requirement(body: Any) -> bool:
    if isinstance(body, Mapping):
        return bool(
            body.get("maxAmountRequired") or body.get("payTo") or isinstance(body.get("accepts"), list)
        )
    return isinstance(body, list)


def find_payment_requirements(
    headers: Mapping[str, str], body: bytes | str | None = None
) -> list[PaymentRequirement]:
    """Extract payment requirements from a 402 response.

    Checks the X-PAYMENT-REQUIRED header, then the legacy
    X-Payment-Requirements header, then the JSON body.

    Raises:
        RequirementParseError: If no usable requirement is present.
    """
    lower_headers = {k.lower(): v for k, v in headers.items()}

    for name in (PAYMENT_REQUIRED_HEADER, LEGACY_REQUIREMENTS_HEADER):
        raw = lower_headers.get(name.lower())
        if not raw:
            continue
        try:
            return parse_requirements(json.loads(raw))
        except (ValueError, RequirementParseError):
            # bad JSON or oversized numbers: fall through to the next source
            continue

    if not body:
        raise RequirementParseError("no requirement header and empty body")

    try:
        decoded = json.loads(body)
    except ValueError:
        # JSONDecodeError, UnicodeDecodeError and oversized integer literals
        raise RequirementParseError("body is not JSON") from None

    if not _looks_like_requirement(decoded):
        raise RequirementParseError("body carries no maxAmountRequired or payTo")
    return parse_requirements(decoded)
