"""x402-requests: auto-paying x402 HTTP client for Python.

APIs behind x402 paywalls just work. Drop-in replacement for httpx that
handles HTTP 402 responses by signing an EIP-3009 transfer authorization
and retrying once with an X-PAYMENT header, within a spending budget.

Usage:
    from x402_requests import BudgetLedger, BudgetPolicy, LocalSigner, X402Client

    client = X402Client(
        signer=LocalSigner(private_key),
        budget=BudgetLedger(BudgetPolicy(max_per_request=50_000)),
    )
    response = client.get("https://api.example.com/paid-resource")
"""

from x402_requests.authorization import (
    Authorization,
    AuthorizationParams,
    SignedAuthorization,
    build_typed_data,
    sign_authorization,
    sign_authorization_sync,
)
from x402_requests.budget import (
    BudgetLedger,
    BudgetPolicy,
    BudgetState,
    PaymentRecord,
    Reservation,
)
from x402_requests.client import AsyncX402Client, X402Client
from x402_requests.codec import (
    PAYMENT_HEADER,
    DecodedPayment,
    decode_payment_header,
    encode_payment_header,
)
from x402_requests.exceptions import (
    AssetNotAllowedError,
    BudgetExceededError,
    DomainNotAllowedError,
    NoSignerError,
    PaymentHeaderError,
    PolicyViolationError,
    RequirementParseError,
    SigningError,
    UnsupportedNetworkError,
    X402Error,
)
from x402_requests.requirement import (
    PaymentRequirement,
    find_payment_requirements,
    parse_requirement,
)
from x402_requests.signers import (
    LocalSigner,
    RemoteSigner,
    SignerBase,
    auto_detect_signer,
)

__version__ = "0.1.0"

__all__ = [
    # Clients
    "X402Client",
    "AsyncX402Client",
    # Budget
    "BudgetLedger",
    "BudgetPolicy",
    "BudgetState",
    "PaymentRecord",
    "Reservation",
    # Requirements
    "PaymentRequirement",
    "find_payment_requirements",
    "parse_requirement",
    # Authorization
    "Authorization",
    "AuthorizationParams",
    "SignedAuthorization",
    "build_typed_data",
    "sign_authorization",
    "sign_authorization_sync",
    # Header codec
    "PAYMENT_HEADER",
    "DecodedPayment",
    "encode_payment_header",
    "decode_payment_header",
    # Signers
    "SignerBase",
    "LocalSigner",
    "RemoteSigner",
    "auto_detect_signer",
    # Exceptions
    "X402Error",
    "PolicyViolationError",
    "BudgetExceededError",
    "DomainNotAllowedError",
    "AssetNotAllowedError",
    "RequirementParseError",
    "PaymentHeaderError",
    "SigningError",
    "UnsupportedNetworkError",
    "NoSignerError",
]
