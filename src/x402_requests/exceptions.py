"""x402 exceptions."""


class X402Error(Exception):
    """Base exception for x402-requests."""


class PolicyViolationError(X402Error):
    """Payment is not admissible under the configured budget policy."""


class BudgetExceededError(PolicyViolationError):
    """Payment would exceed configured budget limits."""

    def __init__(self, limit_type: str, limit: int, current: int, amount: int):
        self.limit_type = limit_type
        self.limit = limit
        self.current = current
        self.amount = amount
        super().__init__(
            f"Budget exceeded: {limit_type} limit is {limit}, "
            f"already committed {current}, payment requires {amount}"
        )


class DomainNotAllowedError(PolicyViolationError):
    """Domain is not in the allowed domains list."""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"Domain not in allowed list: {domain}")


class AssetNotAllowedError(PolicyViolationError):
    """Asset is not in the allowed assets list."""

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Asset not in allowed list: {asset}")


class RequirementParseError(X402Error):
    """A 402 response carried no usable payment requirement."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to parse payment requirement: {reason}")


class PaymentHeaderError(X402Error):
    """Failed to decode an X-PAYMENT header value."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Malformed payment header: {reason}")


class SigningError(X402Error):
    """The signer refused or failed to sign an authorization."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Signing failed: {reason}")


class UnsupportedNetworkError(X402Error):
    """No chain id is known for the advertised network."""

    def __init__(self, network: str):
        self.network = network
        super().__init__(f"Unsupported network: {network}")


class NoSignerError(X402Error):
    """No signer configured or auto-detected."""

    def __init__(self) -> None:
        super().__init__(
            "No signer configured. Set X402_PRIVATE_KEY, or "
            "X402_SIGNER_URL + X402_SIGNER_ADDRESS for a remote signer"
        )
