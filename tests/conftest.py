"""Pytest configuration and fixtures for wallet history tests."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from wallet_history.core.data_provider import SourceAdapter
from wallet_history.database.manager import TransactionStore
from wallet_history.models.config import HistoryConfig
from wallet_history.models.networks import NetworkRegistry
from wallet_history.models.transaction import (
    CanonicalTransaction,
    Direction,
    HistoryOptions,
    RecordFormat,
    TransactionStatus,
    TransactionType,
)


WALLET = "0x52908400098527886E0F7030069857D2E4169EE7"
COUNTERPARTY = "0x8617e340b3d01fa5f11f306f4090fd50e238070d"
TOKEN_CONTRACT = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"

BASE_TIMESTAMP = 1700000000


def make_hash(index: int) -> str:
    """Deterministic, well-formed transaction hash."""
    return "0x" + format(index, "064x")


# ============================================================================
# TIME FIXTURES
# ============================================================================

class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def config():
    """Test configuration: in-memory store, no retry backoff."""
    return HistoryConfig(
        database_url="sqlite://",
        request_timeout=5.0,
        source_fetch_timeout=5.0,
        request_max_retries=2,
        request_retry_delay=0.0,
        cache_ttl_seconds=120.0,
        store_batch_size=100,
        log_format="text",
    )


@pytest.fixture
def registry():
    return NetworkRegistry()


@pytest.fixture
def store(config):
    """Fresh in-memory transaction store with schema."""
    store = TransactionStore(config)
    store.create_tables()
    yield store
    store.close()


# ============================================================================
# SAMPLE DATA FIXTURES
# ============================================================================

def explorer_row(index: int, sender: str, recipient: str,
                 value: str = "1000000000000000000",
                 timestamp: Optional[int] = None,
                 **extra) -> Dict[str, Any]:
    """Etherscan ``txlist`` style row."""
    row = {
        "blockNumber": str(18000000 + index),
        "timeStamp": str(timestamp if timestamp is not None else BASE_TIMESTAMP + index * 60),
        "hash": make_hash(index),
        "transactionIndex": "3",
        "from": sender,
        "to": recipient,
        "value": value,
        "gas": "21000",
        "gasPrice": "20000000000",
        "gasUsed": "21000",
        "isError": "0",
        "txreceipt_status": "1",
        "contractAddress": "",
        "methodId": "0x",
        "functionName": "",
    }
    row.update(extra)
    return row


def token_row(index: int, sender: str, recipient: str,
              value: str = "2500000",
              timestamp: Optional[int] = None,
              symbol: str = "USDC",
              decimals: str = "6",
              **extra) -> Dict[str, Any]:
    """Etherscan ``tokentx`` style row; shares its hash with ``explorer_row(index, ...)``."""
    row = explorer_row(index, sender, recipient, value=value, timestamp=timestamp)
    for key in ("isError", "txreceipt_status", "methodId", "functionName"):
        row.pop(key)
    row.update({
        "contractAddress": TOKEN_CONTRACT,
        "tokenName": "USD Coin",
        "tokenSymbol": symbol,
        "tokenDecimal": decimals,
    })
    row.update(extra)
    return row


def canonical_tx(index: int,
                 sender: str = COUNTERPARTY,
                 recipient: str = WALLET,
                 network: str = "Ethereum Mainnet",
                 chain_id: str = "0x1",
                 status: TransactionStatus = TransactionStatus.CONFIRMED,
                 amount: str = "1",
                 timestamp: Optional[datetime] = None,
                 **extra) -> CanonicalTransaction:
    """Canonical transaction with sensible defaults."""
    is_outgoing = sender.lower() == WALLET.lower()
    values = dict(
        hash=make_hash(index),
        from_address=sender.lower(),
        to_address=recipient.lower(),
        amount=amount,
        status=status,
        network=network,
        chain_id=chain_id,
        timestamp=timestamp or datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=index),
        type=TransactionType.SENT if is_outgoing else TransactionType.RECEIVED,
        direction=Direction.OUTGOING if is_outgoing else Direction.INCOMING,
        block_number=18000000 + index,
        fee="0.00042",
    )
    values.update(extra)
    return CanonicalTransaction(**values)


class FakeAdapter(SourceAdapter):
    """Scriptable adapter returning canned explorer rows or raising."""

    kind = "explorer"
    record_format = RecordFormat.EXPLORER
    supports_token_transfers = True

    def __init__(self, network, native=None, tokens=None):
        super().__init__(network)
        self.native = native if native is not None else []
        self.tokens = tokens if tokens is not None else []
        self.native_calls = 0
        self.token_calls = 0

    async def _resolve(self, payload):
        if isinstance(payload, BaseException):
            raise payload
        return list(payload)

    async def fetch_native(self, address: str, options: HistoryOptions):
        self.native_calls += 1
        return await self._resolve(self.native)

    async def fetch_token_transfers(self, address: str, options: HistoryOptions):
        self.token_calls += 1
        return await self._resolve(self.tokens)
