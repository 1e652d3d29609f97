"""
Wallet Transaction History

Aggregates a wallet's activity on EVM networks from explorer APIs and raw
JSON-RPC into one canonical, paginated, cached history, with a durable
store as the fallback of last resort.
"""

__version__ = "1.0.0"
__description__ = "Blockchain transaction history aggregation engine"

from wallet_history.core.history_service import TransactionHistoryService
from wallet_history.core.aggregator import TransactionAggregator
from wallet_history.database.manager import TransactionStore
from wallet_history.models.config import HistoryConfig

__all__ = [
    "TransactionHistoryService",
    "TransactionAggregator",
    "TransactionStore",
    "HistoryConfig",
]
