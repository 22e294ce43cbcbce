"""Static chain and token reference data for the supported EVM networks.

Read-only lookups used by the engine to resolve a chain id to network
metadata and a token address to its symbol/decimals.
"""

from dataclasses import dataclass
from typing import Optional

# Sentinel addresses providers use for a chain's native asset
NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"
NATIVE_TOKEN_ADDRESS_ALT = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"


@dataclass(frozen=True)
class ChainInfo:
    """Configuration for a blockchain."""

    chain_id: int
    name: str
    native_symbol: str
    explorer_url: str
    native_decimals: int = 18
    is_testnet: bool = False


@dataclass(frozen=True)
class TokenInfo:
    """ERC-20 (or native) token metadata."""

    chain_id: int
    address: str
    symbol: str
    decimals: int
    name: str = ""


CHAINS: dict[int, ChainInfo] = {
    1: ChainInfo(1, "Ethereum", "ETH", "https://etherscan.io"),
    10: ChainInfo(10, "Optimism", "ETH", "https://optimistic.etherscan.io"),
    56: ChainInfo(56, "BNB Smart Chain", "BNB", "https://bscscan.com"),
    137: ChainInfo(137, "Polygon", "POL", "https://polygonscan.com"),
    8453: ChainInfo(8453, "Base", "ETH", "https://basescan.org"),
    42161: ChainInfo(42161, "Arbitrum One", "ETH", "https://arbiscan.io"),
    43114: ChainInfo(43114, "Avalanche C-Chain", "AVAX", "https://snowtrace.io"),
    84532: ChainInfo(84532, "Base Sepolia", "ETH", "https://sepolia.basescan.org", is_testnet=True),
    11155111: ChainInfo(11155111, "Sepolia", "ETH", "https://sepolia.etherscan.io", is_testnet=True),
}

# USDC / USDT per chain (mainnet + test networks used by the testnet endpoints)
_TOKENS: list[TokenInfo] = [
    TokenInfo(1, "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "USDC", 6, "USD Coin"),
    TokenInfo(1, "0xdAC17F958D2ee523a2206206994597C13D831ec7", "USDT", 6, "Tether USD"),
    TokenInfo(1, "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "WETH", 18, "Wrapped Ether"),
    TokenInfo(10, "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85", "USDC", 6, "USD Coin"),
    TokenInfo(56, "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d", "USDC", 18, "USD Coin"),
    TokenInfo(56, "0x55d398326f99059fF775485246999027B3197955", "USDT", 18, "Tether USD"),
    TokenInfo(137, "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359", "USDC", 6, "USD Coin"),
    TokenInfo(8453, "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USDC", 6, "USD Coin"),
    TokenInfo(8453, "0x4200000000000000000000000000000000000006", "WETH", 18, "Wrapped Ether"),
    TokenInfo(42161, "0xaf88d065e77c8cC2239327C5EDb3A432268e5831", "USDC", 6, "USD Coin"),
    TokenInfo(43114, "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E", "USDC", 6, "USD Coin"),
    TokenInfo(84532, "0x036CbD53842c5426634e7929541eC2318f3dCF7e", "USDC", 6, "USD Coin"),
    TokenInfo(11155111, "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238", "USDC", 6, "USD Coin"),
]

TOKENS: dict[tuple[int, str], TokenInfo] = {
    (t.chain_id, t.address.lower()): t for t in _TOKENS
}


def is_native_token(address: Optional[str]) -> bool:
    """Check whether an address is one of the native-asset sentinels."""
    if not address:
        return False
    addr = address.lower()
    return addr in (NATIVE_TOKEN_ADDRESS.lower(), NATIVE_TOKEN_ADDRESS_ALT.lower())


def get_chain(chain_id: int) -> Optional[ChainInfo]:
    """Resolve a numeric chain id to network metadata."""
    return CHAINS.get(chain_id)


def get_token(chain_id: int, address: str) -> Optional[TokenInfo]:
    """Resolve a token address on a chain to its metadata.

    Native sentinels resolve to the chain's native asset.
    """
    if is_native_token(address):
        chain = CHAINS.get(chain_id)
        if chain is None:
            return None
        return TokenInfo(
            chain_id=chain_id,
            address=address,
            symbol=chain.native_symbol,
            decimals=chain.native_decimals,
            name=chain.native_symbol,
        )
    return TOKENS.get((chain_id, address.lower()))
