"""
Source adapter interface and per-network adapter selection.

Each supported network gets exactly one adapter, chosen once at
construction time: the indexed-API adapter when an explorer API is
configured for the network, otherwise the RPC-scan adapter.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

import httpx
import structlog

from wallet_history.models.config import HistoryConfig
from wallet_history.models.networks import NetworkInfo, NetworkRegistry
from wallet_history.models.transaction import HistoryOptions, RecordFormat
from wallet_history.core.rate_limiter import SlidingWindowRateLimiter

logger = structlog.get_logger(__name__)


class SourceAdapter(ABC):
    """Strategy for obtaining raw activity of one address on one network."""

    kind: str = "abstract"
    record_format: RecordFormat
    supports_token_transfers: bool = False

    def __init__(self, network: NetworkInfo):
        self.network = network

    @abstractmethod
    async def fetch_native(self, address: str, options: HistoryOptions) -> List[Dict[str, Any]]:
        """Native-asset transfers in source-native shape."""
        ...

    async def fetch_token_transfers(self, address: str, options: HistoryOptions) -> List[Dict[str, Any]]:
        """Token transfers in source-native shape; empty when unsupported."""
        return []


def build_adapters(registry: NetworkRegistry,
                   config: HistoryConfig,
                   client: httpx.AsyncClient,
                   rate_limiter: SlidingWindowRateLimiter) -> Dict[str, SourceAdapter]:
    """Create one adapter per supported network, keyed by chain id."""
    from wallet_history.core.explorer_client import ExplorerAPIClient
    from wallet_history.core.rpc_client import RPCScanClient

    adapters: Dict[str, SourceAdapter] = {}

    for network in registry.all():
        if network.has_indexed_api:
            adapters[network.chain_id] = ExplorerAPIClient(
                network=network,
                client=client,
                rate_limiter=rate_limiter,
                api_key=config.get_api_key(network.family),
                timeout=config.request_timeout,
                max_retries=config.request_max_retries,
                retry_delay=config.request_retry_delay,
                default_start_block=config.default_start_block,
                default_end_block=config.default_end_block,
            )
        elif network.rpc_url or network.chain_id in config.rpc_url_overrides:
            adapters[network.chain_id] = RPCScanClient(
                network=network,
                client=client,
                rate_limiter=rate_limiter,
                rpc_url=config.rpc_url_overrides.get(network.chain_id, network.rpc_url),
                block_window=config.rpc_scan_block_window,
                timeout=config.request_timeout,
                max_retries=config.request_max_retries,
                retry_delay=config.request_retry_delay,
            )

    logger.info("Source adapters initialized",
                explorer=[cid for cid, a in adapters.items() if a.kind == "explorer"],
                rpc=[cid for cid, a in adapters.items() if a.kind == "rpc"])
    return adapters
