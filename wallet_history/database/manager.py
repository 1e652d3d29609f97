"""Durable transaction store backed by SQLAlchemy."""

import asyncio
from typing import Dict, List, Sequence, Tuple

from pydantic import ValidationError
from sqlalchemy import create_engine, or_, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
import structlog

from wallet_history.database.models import Base, TransactionRecord
from wallet_history.database.schemas import StoredTransaction
from wallet_history.models.config import HistoryConfig
from wallet_history.models.transaction import CanonicalTransaction, TransactionStatus

logger = structlog.get_logger(__name__)


def create_store_engine(config: HistoryConfig) -> Engine:
    """Create an engine; SQLite gets a thread-shareable connection."""
    url = config.database_url

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": config.db_echo}
        if url == "sqlite://" or ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_pre_ping=True,
        echo=config.db_echo,
    )


class TransactionStore:
    """
    System of record for previously seen transactions.

    Writes are idempotent upserts keyed by ``(hash, network)``. Blocking
    SQLAlchemy work runs in a worker thread so callers can await it.
    """

    def __init__(self, config: HistoryConfig, engine: Engine = None):
        self.config = config
        self.batch_size = config.store_batch_size
        self.logger = logger.bind(component="transaction_store")

        self.engine = engine or create_store_engine(config)
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine
        )

        self.logger.info("Transaction store initialized", dialect=self.engine.dialect.name)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)
        self.logger.info("Database tables created")

    def get_session(self) -> Session:
        return self.SessionLocal()

    def test_connection(self) -> bool:
        """Test database connection."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            self.logger.error("Database connection failed", error=str(e))
            return False

    # Writes
    async def upsert_transactions(self, transactions: Sequence[CanonicalTransaction]) -> int:
        """
        Insert or replace a batch of transactions; returns the stored count.

        Batches above ``store_batch_size`` are rejected; callers chunk.
        Records failing validation are logged and skipped. Records sharing
        a ``(hash, network)`` key collapse to the last one in the batch.
        """
        if not transactions:
            return 0
        if len(transactions) > self.batch_size:
            raise ValueError(f"Maximum {self.batch_size} transactions per upsert, got {len(transactions)}")

        records: Dict[Tuple[str, str], StoredTransaction] = {}
        for tx in transactions:
            try:
                record = StoredTransaction.from_canonical(tx)
            except ValidationError as e:
                self.logger.warning("Skipping invalid transaction",
                                    hash=tx.hash,
                                    network=tx.network,
                                    errors=e.error_count())
                continue
            records[(record.hash, record.network)] = record

        if not records:
            return 0
        return await asyncio.to_thread(self._upsert_sync, list(records.values()))

    def _upsert_sync(self, records: List[StoredTransaction]) -> int:
        with self.get_session() as session:
            for record in records:
                session.merge(TransactionRecord(**record.to_row()))
            session.commit()

        self.logger.debug("Transactions upserted", count=len(records))
        return len(records)

    # Reads
    async def get_transactions_by_address(self, address: str) -> List[CanonicalTransaction]:
        """All stored transactions touching ``address`` on any network, newest first."""
        return await asyncio.to_thread(self._get_by_address_sync, address, None)

    async def get_pending_transactions(self, address: str) -> List[CanonicalTransaction]:
        return await asyncio.to_thread(self._get_by_address_sync, address, TransactionStatus.PENDING)

    def _get_by_address_sync(self, address: str, status: TransactionStatus = None) -> List[CanonicalTransaction]:
        target = address.lower()
        with self.get_session() as session:
            query = session.query(TransactionRecord).filter(
                or_(TransactionRecord.from_address == target, TransactionRecord.to_address == target)
            )
            if status is not None:
                query = query.filter(TransactionRecord.status == status.value)
            rows = query.order_by(TransactionRecord.timestamp.desc()).all()
            return [self._to_canonical(row) for row in rows]

    @staticmethod
    def _to_canonical(row: TransactionRecord) -> CanonicalTransaction:
        return StoredTransaction(
            hash=row.tx_hash,
            from_address=row.from_address,
            to_address=row.to_address or "",
            amount=row.amount,
            fee=row.fee,
            gas_price=row.gas_price,
            gas_used=row.gas_used,
            status=row.status,
            network=row.network,
            chain_id=row.chain_id,
            block_number=row.block_number,
            timestamp=row.timestamp,
            tx_type=row.tx_type,
            token_symbol=row.token_symbol,
            token_name=row.token_name,
            token_decimals=row.token_decimals,
            metadata=row.tx_metadata or {},
        ).to_canonical()

    def close(self) -> None:
        self.engine.dispose()
        self.logger.info("Transaction store closed")
