"""
Supported EVM networks and their upstream data sources.

Networks with an ``explorer_api_url`` are served by the indexed-API
adapter; the rest fall back to scanning recent blocks over JSON-RPC.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class RateLimit:
    """Sliding window admission limit for one network family."""
    max_requests: int
    window_seconds: float


@dataclass(frozen=True)
class NetworkInfo:
    """Static description of one EVM network."""
    chain_id: str
    name: str
    symbol: str
    decimals: int
    rpc_url: str
    explorer_url: str
    family: str = "default"
    explorer_api_url: Optional[str] = None
    is_testnet: bool = False

    @property
    def has_indexed_api(self) -> bool:
        return bool(self.explorer_api_url)

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"


RATE_LIMITS: Dict[str, RateLimit] = {
    "ethereum": RateLimit(max_requests=5, window_seconds=1.0),
    "polygon": RateLimit(max_requests=10, window_seconds=1.0),
    "bsc": RateLimit(max_requests=5, window_seconds=1.0),
    "default": RateLimit(max_requests=3, window_seconds=1.0),
}


NETWORKS: Dict[str, NetworkInfo] = {
    network.chain_id: network for network in [
        # Ethereum
        NetworkInfo("0x1", "Ethereum Mainnet", "ETH", 18,
                    "https://ethereum.publicnode.com", "https://etherscan.io",
                    family="ethereum", explorer_api_url="https://api.etherscan.io/api"),
        NetworkInfo("0x5", "Goerli Testnet", "ETH", 18,
                    "https://ethereum-goerli.publicnode.com", "https://goerli.etherscan.io",
                    family="ethereum", explorer_api_url="https://api-goerli.etherscan.io/api",
                    is_testnet=True),
        NetworkInfo("0xaa36a7", "Sepolia Testnet", "ETH", 18,
                    "https://ethereum-sepolia.publicnode.com", "https://sepolia.etherscan.io",
                    family="ethereum", explorer_api_url="https://api-sepolia.etherscan.io/api",
                    is_testnet=True),
        # Polygon
        NetworkInfo("0x89", "Polygon Mainnet", "MATIC", 18,
                    "https://polygon-rpc.com", "https://polygonscan.com",
                    family="polygon", explorer_api_url="https://api.polygonscan.com/api"),
        NetworkInfo("0x13881", "Polygon Mumbai", "MATIC", 18,
                    "https://rpc-mumbai.polygon.technology", "https://mumbai.polygonscan.com",
                    family="polygon", explorer_api_url="https://api-testnet.polygonscan.com/api",
                    is_testnet=True),
        # BNB Smart Chain
        NetworkInfo("0x38", "BSC Mainnet", "BNB", 18,
                    "https://bsc-dataseed1.binance.org", "https://bscscan.com",
                    family="bsc", explorer_api_url="https://api.bscscan.com/api"),
        NetworkInfo("0x61", "BSC Testnet", "BNB", 18,
                    "https://data-seed-prebsc-1-s1.binance.org:8545", "https://testnet.bscscan.com",
                    family="bsc", explorer_api_url="https://api-testnet.bscscan.com/api",
                    is_testnet=True),
        # L2s without an indexed API: RPC scan only
        NetworkInfo("0xa4b1", "Arbitrum One", "ETH", 18,
                    "https://arb1.arbitrum.io/rpc", "https://arbiscan.io"),
        NetworkInfo("0x66eee", "Arbitrum Sepolia", "ETH", 18,
                    "https://sepolia-rollup.arbitrum.io/rpc", "https://sepolia.arbiscan.io",
                    is_testnet=True),
        NetworkInfo("0xa", "Optimism Mainnet", "ETH", 18,
                    "https://mainnet.optimism.io", "https://optimistic.etherscan.io"),
        NetworkInfo("0xaa37dc", "Optimism Sepolia", "ETH", 18,
                    "https://sepolia.optimism.io", "https://sepolia-optimism.etherscan.io",
                    is_testnet=True),
    ]
}


def normalize_chain_id(chain_id) -> str:
    """
    Canonical lower-case hex form of a chain id.

    Accepts ``"0x89"``, ``"0X89"``, ``"137"`` or ``137``.
    """
    if isinstance(chain_id, int) and not isinstance(chain_id, bool):
        return hex(chain_id)

    text = str(chain_id).strip().lower()
    try:
        if text.startswith("0x"):
            return hex(int(text, 16))
        return hex(int(text))
    except ValueError:
        return text


class NetworkRegistry:
    """Lookup table for networks, rate-limit families and explorer links."""

    def __init__(self, networks: Optional[Dict[str, NetworkInfo]] = None,
                 rate_limits: Optional[Dict[str, RateLimit]] = None):
        source = NETWORKS if networks is None else networks
        self._networks = {normalize_chain_id(cid): net for cid, net in source.items()}
        self.rate_limits = dict(RATE_LIMITS if rate_limits is None else rate_limits)
        self.rate_limits.setdefault("default", RATE_LIMITS["default"])

    def get(self, chain_id) -> Optional[NetworkInfo]:
        return self._networks.get(normalize_chain_id(chain_id))

    def is_supported(self, chain_id) -> bool:
        return self.get(chain_id) is not None

    def family_of(self, chain_id) -> str:
        """Rate-limit family of a chain; unknown chains get ``default``."""
        network = self.get(chain_id)
        return network.family if network else "default"

    def rate_limit_for(self, chain_id) -> RateLimit:
        family = self.family_of(chain_id)
        return self.rate_limits.get(family) or self.rate_limits["default"]

    def explorer_tx_url(self, chain_id, tx_hash: str) -> str:
        network = self.get(chain_id)
        if network is None or not network.explorer_url:
            return "#"
        return network.tx_url(tx_hash)

    def by_name(self, name: str) -> Optional[NetworkInfo]:
        for network in self._networks.values():
            if network.name.lower() == (name or "").lower():
                return network
        return None

    def all(self) -> List[NetworkInfo]:
        return list(self._networks.values())

    def mainnets(self) -> List[NetworkInfo]:
        return [network for network in self._networks.values() if not network.is_testnet]
