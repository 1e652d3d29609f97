"""Data models for raw source records and canonical transactions."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class TransactionStatus(str, Enum):
    """Settlement status of a transaction."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class TransactionType(str, Enum):
    """Derived classification relative to the queried address."""
    SENT = "sent"
    RECEIVED = "received"
    TOKEN_TRANSFER = "token_transfer"
    CONTRACT_INTERACTION = "contract_interaction"


class Direction(str, Enum):
    """Flow direction relative to the queried address."""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class RecordFormat(str, Enum):
    """Wire shape produced by a source adapter."""
    EXPLORER = "explorer"
    RPC = "rpc"


@dataclass
class RawSourceRecord:
    """
    One on-chain event in source-neutral form.

    Quantities are integers in the smallest unit. Token fields are only
    populated for token transfers.
    """
    hash: str
    from_address: str
    to_address: str
    value: int
    timestamp: int
    block_number: Optional[int] = None
    gas_price: Optional[int] = None
    gas_used: Optional[int] = None
    is_error: bool = False
    receipt_failed: bool = False
    contract_address: Optional[str] = None
    token_symbol: Optional[str] = None
    token_name: Optional[str] = None
    token_decimals: Optional[int] = None
    transaction_index: Optional[int] = None
    method_id: Optional[str] = None
    function_name: Optional[str] = None


@dataclass
class CanonicalTransaction:
    """The unified, source-independent transaction record."""
    hash: str
    from_address: str
    to_address: str
    amount: str
    status: TransactionStatus
    network: str
    timestamp: datetime
    type: TransactionType
    direction: Direction
    chain_id: Optional[str] = None
    fee: Optional[str] = None
    gas_price: Optional[str] = None
    gas_used: Optional[str] = None
    block_number: Optional[int] = None
    token_symbol: Optional[str] = None
    token_name: Optional[str] = None
    token_decimals: Optional[int] = None
    explorer_url: str = "#"
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.hash

    @property
    def contract_address(self) -> Optional[str]:
        return self.metadata.get("contractAddress") or None

    def sort_key(self) -> Tuple[datetime, int]:
        return (self.timestamp, self.block_number or 0)

    def copy_with(self, **changes) -> "CanonicalTransaction":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hash": self.hash,
            "fromAddress": self.from_address,
            "toAddress": self.to_address,
            "amount": self.amount,
            "fee": self.fee,
            "gasPrice": self.gas_price,
            "gasUsed": self.gas_used,
            "status": self.status.value,
            "network": self.network,
            "chainId": self.chain_id,
            "blockNumber": self.block_number,
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
            "direction": self.direction.value,
            "tokenSymbol": self.token_symbol,
            "tokenName": self.token_name,
            "tokenDecimals": self.token_decimals,
            "explorerUrl": self.explorer_url,
            "metadata": dict(self.metadata),
        }


@dataclass
class HistoryOptions:
    """Query options for ``get_transaction_history``."""
    page: int = 1
    page_size: int = 25
    include_token_transfers: bool = True
    sort_order: SortOrder = SortOrder.DESC
    start_block: Optional[int] = None
    end_block: Optional[int] = None

    def __post_init__(self):
        self.sort_order = SortOrder(self.sort_order)


@dataclass
class PaginatedResult:
    """One page of a sorted transaction list."""
    items: List[CanonicalTransaction]
    has_more: bool
    total_count: int
    page: int
    page_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [tx.to_dict() for tx in self.items],
            "hasMore": self.has_more,
            "totalCount": self.total_count,
            "page": self.page,
            "pageSize": self.page_size,
        }


@dataclass
class FilterCriteria:
    """
    Conjunctive filter over a fetched slice.

    ``None`` disables a criterion. Ranges are inclusive on both ends.
    """
    types: Optional[List[TransactionType]] = None
    statuses: Optional[List[TransactionStatus]] = None
    networks: Optional[List[str]] = None
    date_range: Optional[Tuple[datetime, datetime]] = None
    amount_range: Optional[Tuple[float, float]] = None
