"""Durable transaction store."""

from wallet_history.database.manager import TransactionStore, create_store_engine
from wallet_history.database.models import Base, TransactionRecord
from wallet_history.database.schemas import StoredTransaction

__all__ = [
    "TransactionStore",
    "create_store_engine",
    "Base",
    "TransactionRecord",
    "StoredTransaction",
]
