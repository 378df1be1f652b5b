"""x402 HTTP client: auto-pays 402 responses with signed transfer authorizations.

Drop-in replacement for httpx. Any API behind an x402 paywall just works,
within the spending limits of the client's budget ledger.

Per call the client makes at most one payment: the first response is
inspected, and if it is a payable 402 the request is retried exactly once
with an X-PAYMENT header. A 402 on the retry is returned as-is.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

import httpx

from x402_requests.authorization import (
    AuthorizationParams,
    SignedAuthorization,
    sign_authorization,
    sign_authorization_sync,
)
from x402_requests.budget import BudgetLedger, PaymentRecord, Reservation
from x402_requests.codec import PAYMENT_HEADER, encode_payment_header
from x402_requests.exceptions import (
    PolicyViolationError,
    RequirementParseError,
    SigningError,
)
from x402_requests.requirement import (
    PaymentRequirement,
    find_payment_requirements,
    select_requirement,
)
from x402_requests.signers import SignerBase, auto_detect_signer

logger = logging.getLogger(__name__)

PaymentCallback = Callable[[PaymentRecord], None]
RejectionCallback = Callable[[PaymentRequirement, str], None]


class _X402Base:
    """Payment flow shared by the sync and async clients."""

    def __init__(
        self,
        signer: SignerBase | None,
        budget: BudgetLedger | None,
        chain_id: int | None,
        allowed_schemes: Iterable[str] | None,
        on_payment: PaymentCallback | None,
        on_payment_rejected: RejectionCallback | None,
        httpx_kwargs: dict[str, Any],
    ):
        self._signer = signer
        self._budget = BudgetLedger() if budget is ... else budget
        self._chain_id = chain_id
        self._allowed_schemes = list(allowed_schemes) if allowed_schemes else None
        self._on_payment = on_payment
        self._on_payment_rejected = on_payment_rejected
        self._httpx_kwargs = httpx_kwargs

    @property
    def budget(self) -> BudgetLedger | None:
        """The ledger payments are checked and recorded against (None = unlimited)."""
        return self._budget

    def _get_signer(self) -> SignerBase:
        if self._signer is None:
            self._signer = auto_detect_signer()
        return self._signer

    def _now(self) -> float:
        return self._budget.now() if self._budget is not None else time.time()

    def _requirement_for(self, response: httpx.Response) -> PaymentRequirement | None:
        """Payable requirement advertised by a 402, or None to pass it through."""
        try:
            requirements = find_payment_requirements(response.headers, response.content)
        except RequirementParseError as e:
            logger.debug(f"x402: passing 402 through from {response.request.url}: {e.reason}")
            return None

        requirement = select_requirement(requirements, self._allowed_schemes)
        if requirement is None:
            logger.debug(
                f"x402: passing 402 through from {response.request.url}: "
                f"no requirement with an allowed scheme"
            )
        return requirement

    def _reserve(self, requirement: PaymentRequirement, domain: str) -> Reservation | None:
        """Atomically check and hold the amount. Raises when the policy says no."""
        if self._budget is None:
            return None
        try:
            return self._budget.reserve(requirement.amount, requirement.asset, domain)
        except PolicyViolationError as e:
            logger.info(f"x402: payment to {domain} rejected: {e}")
            if self._on_payment_rejected:
                self._on_payment_rejected(requirement, str(e))
            raise

    def _release(self, reservation: Reservation | None) -> None:
        if reservation is not None and self._budget is not None:
            self._budget.release(reservation)

    def _params(self, requirement: PaymentRequirement, signer: SignerBase) -> AuthorizationParams:
        return AuthorizationParams.for_requirement(
            requirement, signer.address, self._now(), self._chain_id
        )

    @staticmethod
    def _with_proof(headers: httpx.Headers, proof: str) -> httpx.Headers:
        retry_headers = headers.copy()
        retry_headers[PAYMENT_HEADER] = proof
        return retry_headers

    def _settle(
        self,
        reservation: Reservation | None,
        requirement: PaymentRequirement,
        response: httpx.Response,
        signed: SignedAuthorization,
        status_code: int | None,
        notify: bool = True,
    ) -> PaymentRecord:
        """Commit the payment once the paid retry has been dispatched.

        The record is written whatever the retry's outcome: once the proof
        has left the process the authorization may be settled by the payee.
        """
        url = response.request.url
        record = PaymentRecord(
            url=str(url),
            domain=url.host,
            amount=requirement.amount,
            asset=requirement.asset,
            timestamp=self._now(),
            pay_to=requirement.pay_to,
            network=requirement.network,
            nonce=signed.authorization.nonce_hex,
            status_code=status_code,
        )
        if self._budget is not None and reservation is not None:
            self._budget.commit(reservation, record)

        if status_code is None:
            logger.warning(
                f"x402: paid retry to {url} did not complete; "
                f"{record.amount} counted as spent"
            )
        elif not 200 <= status_code < 300:
            logger.warning(
                f"x402: paid retry to {url} returned {status_code}; "
                f"{record.amount} counted as spent"
            )
        else:
            logger.info(f"x402: paid {record.amount} of {record.asset} to {record.pay_to} for {url}")

        if notify and self._on_payment:
            self._on_payment(record)
        return record


class X402Client(_X402Base):
    """Synchronous HTTP client with automatic x402 payment handling.

    Usage:
        client = X402Client(signer=LocalSigner(private_key))
        response = client.get("https://api.example.com/paid-resource")
        # If 402 is returned, the client signs a payment and retries automatically.
    """

    def __init__(
        self,
        signer: SignerBase | None = None,
        budget: BudgetLedger | None = ...,  # type: ignore[assignment]
        chain_id: int | None = None,
        allowed_schemes: Iterable[str] | None = None,
        on_payment: PaymentCallback | None = None,
        on_payment_rejected: RejectionCallback | None = None,
        **httpx_kwargs: Any,
    ):
        """
        Args:
            signer: Signer paying for resources. If None, auto-detects on first payment.
            budget: Budget ledger. Pass None to disable budget limits.
                    Defaults to BudgetLedger() with the default policy.
            chain_id: Chain id for the EIP-712 domain. Derived from the
                      requirement's network when omitted.
            allowed_schemes: If set, only pay requirements with these schemes.
            on_payment: Called with the PaymentRecord after each paid retry.
            on_payment_rejected: Called with (requirement, reason) before a
                                 policy rejection is raised.
            **httpx_kwargs: Additional kwargs passed to httpx.Client.
        """
        super().__init__(
            signer,
            budget,
            chain_id,
            allowed_schemes,
            on_payment,
            on_payment_rejected,
            httpx_kwargs,
        )

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Make an HTTP request, auto-paying x402 requirements."""
        headers = httpx.Headers(kwargs.pop("headers", None))

        with httpx.Client(**self._httpx_kwargs) as client:
            response = client.request(method, url, headers=headers, **kwargs)

            if response.status_code != 402:
                return response

            requirement = self._requirement_for(response)
            if requirement is None:
                return response

            reservation = self._reserve(requirement, response.request.url.host)

            try:
                signer = self._get_signer()
                signed = sign_authorization_sync(signer, self._params(requirement, signer))
            except BaseException:
                self._release(reservation)
                raise

            proof = encode_payment_header(signed.authorization, signed.signature, requirement)

            try:
                retry_response = client.request(
                    method, url, headers=self._with_proof(headers, proof), **kwargs
                )
            except BaseException:
                self._settle(reservation, requirement, response, signed, None, notify=False)
                raise

            self._settle(reservation, requirement, response, signed, retry_response.status_code)
            return retry_response

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", url, **kwargs)

    def head(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("HEAD", url, **kwargs)

    def options(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("OPTIONS", url, **kwargs)


class AsyncX402Client(_X402Base):
    """Async HTTP client with automatic x402 payment handling.

    Usage:
        async with AsyncX402Client(signer=signer) as client:
            response = await client.get("https://api.example.com/paid-resource")
    """

    def __init__(
        self,
        signer: SignerBase | None = None,
        budget: BudgetLedger | None = ...,  # type: ignore[assignment]
        chain_id: int | None = None,
        allowed_schemes: Iterable[str] | None = None,
        on_payment: PaymentCallback | None = None,
        on_payment_rejected: RejectionCallback | None = None,
        signing_timeout: float | None = None,
        **httpx_kwargs: Any,
    ):
        super().__init__(
            signer,
            budget,
            chain_id,
            allowed_schemes,
            on_payment,
            on_payment_rejected,
            httpx_kwargs,
        )
        self._signing_timeout = signing_timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> AsyncX402Client:
        self._client = httpx.AsyncClient(**self._httpx_kwargs)
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(**self._httpx_kwargs)
        return self._client

    async def _sign(self, requirement: PaymentRequirement) -> SignedAuthorization:
        signer = self._get_signer()
        signing = sign_authorization(signer, self._params(requirement, signer))
        if self._signing_timeout is None:
            return await signing
        try:
            return await asyncio.wait_for(signing, timeout=self._signing_timeout)
        except asyncio.TimeoutError:
            raise SigningError(f"signer did not answer within {self._signing_timeout}s") from None

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Make an async HTTP request, auto-paying x402 requirements."""
        headers = httpx.Headers(kwargs.pop("headers", None))
        client = self._ensure_client()

        response = await client.request(method, url, headers=headers, **kwargs)

        if response.status_code != 402:
            return response

        requirement = self._requirement_for(response)
        if requirement is None:
            return response

        reservation = self._reserve(requirement, response.request.url.host)

        try:
            signed = await self._sign(requirement)
        except BaseException:
            self._release(reservation)
            raise

        proof = encode_payment_header(signed.authorization, signed.signature, requirement)

        try:
            retry_response = await client.request(
                method, url, headers=self._with_proof(headers, proof), **kwargs
            )
        except BaseException:
            # Cancelled or failed mid-flight: the payment may have been sent
            self._settle(reservation, requirement, response, signed, None, notify=False)
            raise

        self._settle(reservation, requirement, response, signed, retry_response.status_code)
        return retry_response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    async def options(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("OPTIONS", url, **kwargs)

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
