"""Network identifiers, chain ids and default USDC deployments."""

from __future__ import annotations

from x402_requests.exceptions import UnsupportedNetworkError

NETWORK_CHAIN_IDS: dict[str, int] = {
    "ethereum": 1,
    "ethereum-mainnet": 1,
    "optimism": 10,
    "polygon": 137,
    "base": 8453,
    "base-mainnet": 8453,
    "arbitrum": 42161,
    "base-sepolia": 84532,
    "sepolia": 11155111,
}

USDC_ADDRESSES: dict[int, str] = {
    1: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    10: "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
    137: "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
    42161: "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
    8453: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    11155111: "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
    84532: "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
}


def get_chain_id(network: str) -> int:
    """Resolve a legacy network name or CAIP-2 id (``eip155:8453``) to a chain id.

    Raises:
        UnsupportedNetworkError: If the network is not recognized.
    """
    normalized = (network or "").strip().lower()
    if normalized.startswith("eip155:"):
        try:
            return int(normalized.split(":", 1)[1])
        except ValueError:
            raise UnsupportedNetworkError(network) from None

    chain_id = NETWORK_CHAIN_IDS.get(normalized)
    if chain_id is None:
        raise UnsupportedNetworkError(network)
    return chain_id


def default_asset(network: str) -> str | None:
    """USDC address for the network, or None if unknown."""
    try:
        return USDC_ADDRESSES.get(get_chain_id(network))
    except UnsupportedNetworkError:
        return None
