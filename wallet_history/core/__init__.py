"""Core transaction history components."""

from wallet_history.core.aggregator import TransactionAggregator
from wallet_history.core.cache import CacheKey, TransactionCache
from wallet_history.core.data_provider import SourceAdapter, build_adapters
from wallet_history.core.explorer_client import ExplorerAPIClient
from wallet_history.core.history_service import TransactionHistoryService
from wallet_history.core.rate_limiter import SlidingWindowRateLimiter
from wallet_history.core.rpc_client import RPCScanClient

__all__ = [
    "TransactionAggregator",
    "CacheKey",
    "TransactionCache",
    "SourceAdapter",
    "build_adapters",
    "ExplorerAPIClient",
    "TransactionHistoryService",
    "SlidingWindowRateLimiter",
    "RPCScanClient",
]
