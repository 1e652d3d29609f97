"""Data models and configuration."""

from wallet_history.models.config import HistoryConfig
from wallet_history.models.networks import NetworkInfo, NetworkRegistry, RateLimit
from wallet_history.models.transaction import (
    CanonicalTransaction,
    Direction,
    FilterCriteria,
    HistoryOptions,
    PaginatedResult,
    RawSourceRecord,
    RecordFormat,
    SortOrder,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "HistoryConfig",
    "NetworkInfo",
    "NetworkRegistry",
    "RateLimit",
    "CanonicalTransaction",
    "Direction",
    "FilterCriteria",
    "HistoryOptions",
    "PaginatedResult",
    "RawSourceRecord",
    "RecordFormat",
    "SortOrder",
    "TransactionStatus",
    "TransactionType",
]
