"""SQLAlchemy database models for persisted wallet transactions."""

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, JSON, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class TransactionRecord(Base):
    """Canonical transaction as stored; ``(tx_hash, network)`` is the upsert key."""
    __tablename__ = 'wallet_transactions'

    tx_hash = Column(String(66), primary_key=True)
    network = Column(String(64), primary_key=True)
    chain_id = Column(String(16))
    from_address = Column(String(42), nullable=False)
    to_address = Column(String(42), nullable=False, default='')
    amount = Column(String(100), nullable=False, default='0')
    fee = Column(String(100))
    gas_price = Column(String(80))
    gas_used = Column(String(80))
    status = Column(String(16), nullable=False, default='pending')
    block_number = Column(BigInteger)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    tx_type = Column(String(32))
    token_symbol = Column(String(64))
    token_name = Column(String(255))
    token_decimals = Column(Integer)
    tx_metadata = Column('metadata', JSON().with_variant(JSONB(), 'postgresql'))
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    # Indexes
    __table_args__ = (
        Index('idx_wallet_transactions_from', 'from_address'),
        Index('idx_wallet_transactions_to', 'to_address'),
        Index('idx_wallet_transactions_timestamp', 'timestamp'),
        Index('idx_wallet_transactions_status', 'status'),
    )
