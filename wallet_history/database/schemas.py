"""Validation schema for records entering the durable store."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from wallet_history.models.transaction import (
    CanonicalTransaction,
    Direction,
    TransactionStatus,
    TransactionType,
)
from wallet_history.utils.evm import validate_evm_address, validate_tx_hash
from wallet_history.utils.time import to_utc_timestamp


class StoredTransaction(BaseModel):
    """One row of a bulk upsert."""

    hash: str = Field(..., description="Transaction hash")
    from_address: str = Field(..., description="Sender address")
    to_address: str = Field(default="", description="Recipient or created contract, empty if unknown")
    amount: str = Field(default="0", description="Human-unit decimal amount")
    fee: Optional[str] = Field(default=None, description="Human-unit decimal fee")
    gas_price: Optional[str] = None
    gas_used: Optional[str] = None
    status: TransactionStatus = Field(default=TransactionStatus.CONFIRMED)
    network: str = Field(default="mainnet", min_length=1)
    chain_id: Optional[str] = None
    block_number: Optional[int] = Field(default=None, ge=0)
    timestamp: datetime
    tx_type: Optional[TransactionType] = None
    token_symbol: Optional[str] = None
    token_name: Optional[str] = None
    token_decimals: Optional[int] = Field(default=None, ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('hash')
    @classmethod
    def validate_hash(cls, v: str) -> str:
        if not validate_tx_hash(v):
            raise ValueError("Invalid transaction hash format")
        return v.lower()

    @field_validator('from_address')
    @classmethod
    def validate_from(cls, v: str) -> str:
        if not validate_evm_address(v):
            raise ValueError("Invalid address format")
        return v.lower()

    @field_validator('to_address')
    @classmethod
    def validate_to(cls, v: str) -> str:
        if v and not validate_evm_address(v):
            raise ValueError("Invalid address format")
        return v.lower()

    @classmethod
    def from_canonical(cls, tx: CanonicalTransaction) -> "StoredTransaction":
        return cls(
            hash=tx.hash,
            from_address=tx.from_address,
            to_address=tx.to_address,
            amount=tx.amount,
            fee=tx.fee,
            gas_price=tx.gas_price,
            gas_used=tx.gas_used,
            status=tx.status,
            network=tx.network,
            chain_id=tx.chain_id,
            block_number=tx.block_number,
            timestamp=tx.timestamp,
            tx_type=tx.type,
            token_symbol=tx.token_symbol,
            token_name=tx.token_name,
            token_decimals=tx.token_decimals,
            metadata=dict(tx.metadata),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.hash,
            "network": self.network,
            "chain_id": self.chain_id,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "amount": self.amount,
            "fee": self.fee,
            "gas_price": self.gas_price,
            "gas_used": self.gas_used,
            "status": self.status.value,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "tx_type": self.tx_type.value if self.tx_type else None,
            "token_symbol": self.token_symbol,
            "token_name": self.token_name,
            "token_decimals": self.token_decimals,
            "tx_metadata": self.metadata or None,
        }

    def to_canonical(self) -> CanonicalTransaction:
        """Rebuild a canonical transaction; viewer-relative fields are provisional."""
        return CanonicalTransaction(
            hash=self.hash,
            from_address=self.from_address,
            to_address=self.to_address,
            amount=self.amount,
            fee=self.fee,
            gas_price=self.gas_price,
            gas_used=self.gas_used,
            status=self.status,
            network=self.network,
            chain_id=self.chain_id,
            block_number=self.block_number,
            timestamp=to_utc_timestamp(self.timestamp),
            type=self.tx_type or TransactionType.RECEIVED,
            direction=Direction.INCOMING,
            token_symbol=self.token_symbol,
            token_name=self.token_name,
            token_decimals=self.token_decimals,
            metadata=dict(self.metadata),
        )
