"""Tests for the in-process eth_account signer."""

from __future__ import annotations

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from x402_requests.authorization import TRANSFER_WITH_AUTHORIZATION_TYPES
from x402_requests.signers.local import LocalSigner

# Well-known throwaway key (hardhat account #0); never holds real funds
TEST_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

DOMAIN = {
    "name": "USD Coin",
    "version": "2",
    "chainId": 84532,
    "verifyingContract": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
}
MESSAGE = {
    "from": TEST_ADDRESS,
    "to": "0x209693Bc6afc0C5328bA36FaF03C514EF312287C",
    "value": 10000,
    "validAfter": 0,
    "validBefore": 2**40,
    "nonce": b"\x42" * 32,
}


class TestLocalSigner:
    def test_address_from_key(self):
        assert LocalSigner(TEST_KEY).address == TEST_ADDRESS

    def test_key_without_prefix(self):
        assert LocalSigner(TEST_KEY[2:]).address == TEST_ADDRESS

    def test_invalid_key(self):
        with pytest.raises(ValueError, match="Invalid private key"):
            LocalSigner("0x1234")

    def test_signature_recovers(self):
        signer = LocalSigner(TEST_KEY)
        signature = signer.sign_typed_data_sync(
            DOMAIN, TRANSFER_WITH_AUTHORIZATION_TYPES, "TransferWithAuthorization", MESSAGE
        )

        signable = encode_typed_data(
            domain_data=DOMAIN,
            message_types=TRANSFER_WITH_AUTHORIZATION_TYPES,
            message_data=MESSAGE,
        )
        assert Account.recover_message(signable, signature=signature) == TEST_ADDRESS

    def test_signature_is_deterministic(self):
        signer = LocalSigner(TEST_KEY)
        args = (DOMAIN, TRANSFER_WITH_AUTHORIZATION_TYPES, "TransferWithAuthorization", MESSAGE)
        assert signer.sign_typed_data_sync(*args) == signer.sign_typed_data_sync(*args)

    @pytest.mark.asyncio
    async def test_async_matches_sync(self):
        signer = LocalSigner(TEST_KEY)
        args = (DOMAIN, TRANSFER_WITH_AUTHORIZATION_TYPES, "TransferWithAuthorization", MESSAGE)
        assert await signer.sign_typed_data(*args) == signer.sign_typed_data_sync(*args)

    def test_unknown_primary_type(self):
        signer = LocalSigner(TEST_KEY)
        with pytest.raises(ValueError, match="primary type"):
            signer.sign_typed_data_sync(
                DOMAIN, TRANSFER_WITH_AUTHORIZATION_TYPES, "Permit", MESSAGE
            )

    def test_repr_hides_key(self):
        text = repr(LocalSigner(TEST_KEY))
        assert TEST_ADDRESS in text
        assert TEST_KEY[2:] not in text
