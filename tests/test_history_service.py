"""Integration tests for the transaction history service."""

import csv
import io
import json
from decimal import Decimal

import httpx
import pytest

from conftest import COUNTERPARTY, WALLET, FakeAdapter, canonical_tx, explorer_row, make_hash
from wallet_history.core.aggregator import TransactionAggregator
from wallet_history.core.cache import TransactionCache
from wallet_history.core.history_service import TransactionHistoryService
from wallet_history.exceptions import InvalidAddress, SourceUnavailable, StoreFallbackFailure
from wallet_history.models.transaction import (
    Direction,
    FilterCriteria,
    HistoryOptions,
    SortOrder,
    TransactionStatus,
    TransactionType,
)


class BrokenStore:
    """Store whose reads and writes fail."""

    async def upsert_transactions(self, transactions):
        raise RuntimeError("connection refused")

    async def get_transactions_by_address(self, address):
        raise RuntimeError("connection refused")

    async def get_pending_transactions(self, address):
        raise RuntimeError("connection refused")

    def close(self):
        pass


@pytest.fixture
def adapter(registry):
    rows = [explorer_row(i, COUNTERPARTY if i % 2 else WALLET, WALLET if i % 2 else COUNTERPARTY)
            for i in range(30)]
    return FakeAdapter(registry.get("0x1"), native=rows)


def build_service(config, registry, adapter, clock, store=None):
    aggregator = TransactionAggregator(registry, {adapter.network.chain_id: adapter}, store=store)
    cache = TransactionCache(ttl_seconds=config.cache_ttl_seconds, clock=clock)
    return TransactionHistoryService(config, registry, aggregator, cache, store=store)


@pytest.fixture
def service(config, registry, adapter, clock, store):
    return build_service(config, registry, adapter, clock, store=store)


class TestGetTransactionHistory:
    """Tests for the history query path."""

    # ========================================================================
    # VALIDATION
    # ========================================================================

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address", ["", "0x123", "52908400098527886E0F7030069857D2E4169EE7",
                                         "0xZZ908400098527886E0F7030069857D2E4169EE7"])
    async def test_invalid_address_rejected_before_io(self, service, adapter, address):
        """Test malformed addresses raise before any source call."""
        with pytest.raises(InvalidAddress):
            await service.get_transaction_history(address, "0x1")

        assert adapter.native_calls == 0

    # ========================================================================
    # PAGINATION
    # ========================================================================

    @pytest.mark.asyncio
    async def test_first_page_defaults(self, service):
        """Test the default page size and newest-first order."""
        result = await service.get_transaction_history(WALLET, "0x1")

        assert result.page == 1
        assert result.page_size == 25
        assert len(result.items) == 25
        assert result.total_count == 30
        assert result.has_more is True
        assert result.items[0].hash == make_hash(29)

    @pytest.mark.asyncio
    async def test_middle_page(self, service):
        """Test page two of three holds items 10 through 19."""
        result = await service.get_transaction_history(WALLET, "0x1", HistoryOptions(page=2, page_size=10))

        assert [tx.hash for tx in result.items] == [make_hash(i) for i in range(19, 9, -1)]
        assert result.has_more is True

    @pytest.mark.asyncio
    async def test_last_page_has_no_more(self, service):
        """Test the final page reports has_more False."""
        result = await service.get_transaction_history(WALLET, "0x1", HistoryOptions(page=3, page_size=10))

        assert len(result.items) == 10
        assert result.has_more is False

    @pytest.mark.asyncio
    async def test_page_beyond_end_is_empty(self, service):
        """Test a page past the end is empty without error."""
        result = await service.get_transaction_history(WALLET, "0x1", HistoryOptions(page=9, page_size=10))

        assert result.items == []
        assert result.has_more is False

    @pytest.mark.asyncio
    async def test_page_size_clamped(self, service):
        """Test oversized and non-positive paging inputs are clamped."""
        result = await service.get_transaction_history(WALLET, "0x1", HistoryOptions(page=0, page_size=500))

        assert result.page == 1
        assert result.page_size == 100
        assert len(result.items) == 30

    @pytest.mark.asyncio
    async def test_ascending_order(self, service):
        """Test ascending sort returns the oldest transaction first."""
        result = await service.get_transaction_history(
            WALLET, "0x1", HistoryOptions(page_size=5, sort_order=SortOrder.ASC))

        assert result.items[0].hash == make_hash(0)

    @pytest.mark.asyncio
    async def test_directions_relative_to_wallet(self, service):
        """Test every item is oriented to the queried address."""
        result = await service.get_transaction_history(WALLET.lower(), "0x1", HistoryOptions(page_size=30))

        for tx in result.items:
            expected = Direction.OUTGOING if tx.from_address == WALLET.lower() else Direction.INCOMING
            assert tx.direction == expected

    # ========================================================================
    # CACHING
    # ========================================================================

    @pytest.mark.asyncio
    async def test_repeat_query_served_from_cache(self, service, adapter, clock):
        """Test an identical query within the TTL does not hit the source."""
        first = await service.get_transaction_history(WALLET, "0x1")
        clock.advance(60)
        second = await service.get_transaction_history(WALLET.lower(), 1)

        assert adapter.native_calls == 1
        assert [tx.hash for tx in first.items] == [tx.hash for tx in second.items]

    @pytest.mark.asyncio
    async def test_stale_cache_refetches(self, service, adapter, clock):
        """Test a query after the TTL aggregates again."""
        await service.get_transaction_history(WALLET, "0x1")
        clock.advance(121)
        await service.get_transaction_history(WALLET, "0x1")

        assert adapter.native_calls == 2

    @pytest.mark.asyncio
    async def test_different_options_miss_cache(self, service, adapter):
        """Test a different page is a different cache entry."""
        await service.get_transaction_history(WALLET, "0x1", HistoryOptions(page=1, page_size=10))
        await service.get_transaction_history(WALLET, "0x1", HistoryOptions(page=2, page_size=10))

        assert adapter.native_calls == 2

    @pytest.mark.asyncio
    async def test_clear_cache(self, service, adapter):
        """Test clearing the cache forces aggregation."""
        await service.get_transaction_history(WALLET, "0x1")
        service.clear_cache()
        await service.get_transaction_history(WALLET, "0x1")

        assert adapter.native_calls == 2

    @pytest.mark.asyncio
    async def test_sweep_cache_drops_stale_entries(self, service, clock):
        """Test sweeping removes entries past the freshness window."""
        await service.get_transaction_history(WALLET, "0x1")
        clock.advance(121)

        assert service.sweep_cache() == 1
        assert len(service.cache) == 0

    # ========================================================================
    # FALLBACK
    # ========================================================================

    @pytest.mark.asyncio
    async def test_falls_back_to_store(self, config, registry, clock, store):
        """Test stored transactions are paginated when every source fails."""
        await store.upsert_transactions([canonical_tx(i) for i in range(30)])
        adapter = FakeAdapter(registry.get("0x1"),
                              native=SourceUnavailable("explorer", "down"),
                              tokens=httpx.ConnectError("refused"))
        service = build_service(config, registry, adapter, clock, store=store)

        result = await service.get_transaction_history(WALLET, "0x1", HistoryOptions(page=1, page_size=10))

        assert len(result.items) == 10
        assert result.total_count == 30
        assert result.has_more is True
        assert result.items[0].hash == make_hash(29)
        assert result.items[0].explorer_url == f"https://etherscan.io/tx/{make_hash(29)}"

    @pytest.mark.asyncio
    async def test_fallback_is_not_cached(self, config, registry, clock, store):
        """Test degraded answers are not memoized."""
        adapter = FakeAdapter(registry.get("0x1"),
                              native=SourceUnavailable("explorer", "down"),
                              tokens=SourceUnavailable("explorer", "down"))
        service = build_service(config, registry, adapter, clock, store=store)

        await service.get_transaction_history(WALLET, "0x1")
        await service.get_transaction_history(WALLET, "0x1")

        assert adapter.native_calls == 2
        assert len(service.cache) == 0

    @pytest.mark.asyncio
    async def test_fallback_reorients_stored_rows(self, config, registry, clock, store):
        """Test rows stored for the counterparty are re-derived for the wallet."""
        await store.upsert_transactions([
            canonical_tx(1, sender=COUNTERPARTY, recipient=WALLET).copy_with(
                type=TransactionType.SENT, direction=Direction.OUTGOING),
        ])
        adapter = FakeAdapter(registry.get("0x1"), native=SourceUnavailable("explorer", "down"))
        service = build_service(config, registry, adapter, clock, store=store)

        result = await service.get_transaction_history(
            WALLET, "0x1", HistoryOptions(include_token_transfers=False))

        assert result.items[0].direction == Direction.INCOMING
        assert result.items[0].type == TransactionType.RECEIVED

    @pytest.mark.asyncio
    async def test_unsupported_network_falls_back(self, service, store):
        """Test an unsupported network answers from the store."""
        await store.upsert_transactions([canonical_tx(1)])

        result = await service.get_transaction_history(WALLET, "0x12345")

        assert [tx.hash for tx in result.items] == [make_hash(1)]

    @pytest.mark.asyncio
    async def test_empty_result_when_store_fails_too(self, config, registry, clock):
        """Test a broken store degrades to an empty page."""
        adapter = FakeAdapter(registry.get("0x1"), native=SourceUnavailable("explorer", "down"))
        service = build_service(config, registry, adapter, clock, store=BrokenStore())

        result = await service.get_transaction_history(
            WALLET, "0x1", HistoryOptions(include_token_transfers=False))

        assert result.items == []
        assert result.has_more is False
        assert result.total_count == 0

    @pytest.mark.asyncio
    async def test_empty_result_without_store(self, config, registry, clock):
        """Test a service without a store still answers."""
        adapter = FakeAdapter(registry.get("0x1"), native=SourceUnavailable("explorer", "down"))
        service = build_service(config, registry, adapter, clock)

        result = await service.get_transaction_history(
            WALLET, "0x1", HistoryOptions(include_token_transfers=False))

        assert result.items == []


class TestStoreBackedViews:
    """Tests for pending, stats and export."""

    @pytest.mark.asyncio
    async def test_pending_transactions(self, service, store):
        """Test only pending transactions are returned."""
        await store.upsert_transactions([
            canonical_tx(1, status=TransactionStatus.PENDING),
            canonical_tx(2),
        ])

        pending = await service.get_pending_transactions(WALLET)

        assert [tx.hash for tx in pending] == [make_hash(1)]

    @pytest.mark.asyncio
    async def test_pending_without_store_raises(self, config, registry, adapter, clock):
        """Test store-only views surface a missing store."""
        service = build_service(config, registry, adapter, clock)

        with pytest.raises(StoreFallbackFailure):
            await service.get_pending_transactions(WALLET)

    @pytest.mark.asyncio
    async def test_stats(self, service, store):
        """Test summary counts and volume."""
        await store.upsert_transactions([
            canonical_tx(1, amount="1.5"),
            canonical_tx(2, sender=WALLET, recipient=COUNTERPARTY, amount="0.25",
                         status=TransactionStatus.FAILED),
            canonical_tx(3, network="Polygon Mainnet", chain_id="0x89", amount="2",
                         status=TransactionStatus.PENDING),
        ])

        stats = await service.get_transaction_stats(WALLET)

        assert stats["total"] == 3
        assert stats["sent"] == 1
        assert stats["received"] == 2
        assert stats["pending"] == 1
        assert stats["confirmed"] == 1
        assert stats["failed"] == 1
        assert stats["networks"] == ["Ethereum Mainnet", "Polygon Mainnet"]
        assert stats["total_volume"] == Decimal("3.75")

    @pytest.mark.asyncio
    async def test_export_csv(self, service, store):
        """Test CSV export carries a header and one row per transaction."""
        await store.upsert_transactions([canonical_tx(1), canonical_tx(2)])

        content = await service.export_transactions(WALLET, "csv")

        rows = list(csv.reader(io.StringIO(content)))
        assert rows[0] == ["Hash", "Date", "From", "To", "Amount", "Status", "Network", "Fee", "Block Number"]
        assert [row[0] for row in rows[1:]] == [make_hash(2), make_hash(1)]

    @pytest.mark.asyncio
    async def test_export_json(self, service, store):
        """Test JSON export uses camelCase keys."""
        await store.upsert_transactions([canonical_tx(1)])

        content = await service.export_transactions(WALLET, "json")

        data = json.loads(content)
        assert data[0]["hash"] == make_hash(1)
        assert data[0]["direction"] == "incoming"
        assert data[0]["explorerUrl"].startswith("https://etherscan.io/tx/")

    @pytest.mark.asyncio
    async def test_export_unknown_format(self, service):
        """Test unsupported export formats are rejected."""
        with pytest.raises(ValueError):
            await service.export_transactions(WALLET, "xml")


class TestSliceHelpers:
    """Tests for search and filter exposed on the service."""

    def test_search_and_filter(self):
        """Test the static helpers delegate to the query functions."""
        transactions = [canonical_tx(1), canonical_tx(2, status=TransactionStatus.FAILED)]

        assert TransactionHistoryService.search_transactions(transactions, make_hash(2)[-8:]) == [transactions[1]]
        assert TransactionHistoryService.filter_transactions(
            transactions, FilterCriteria(statuses=[TransactionStatus.CONFIRMED])) == [transactions[0]]

    @pytest.mark.asyncio
    async def test_async_context_manager_closes_store(self, config, registry, adapter, clock):
        """Test leaving the context closes owned resources."""
        closed = []

        class ClosingStore(BrokenStore):
            def close(self):
                closed.append(True)

        async with build_service(config, registry, adapter, clock, store=ClosingStore()) as service:
            assert service.store is not None

        assert closed == [True]
