"""
Public entry point for wallet transaction history.

Query flow: validate address, check cache, aggregate on miss, cache the
full sorted list, paginate. When aggregation fails for any reason the
service answers from the durable store instead, and when that fails too
it returns an empty page. History is advisory data, so this path trades
completeness for availability and never raises past address validation.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from wallet_history.core import query
from wallet_history.core.aggregator import TransactionAggregator, sort_transactions
from wallet_history.core.cache import CacheKey, TransactionCache
from wallet_history.core.data_provider import build_adapters
from wallet_history.core.normalizer import reorient
from wallet_history.core.rate_limiter import SlidingWindowRateLimiter
from wallet_history.database.manager import TransactionStore
from wallet_history.exceptions import InvalidAddress, StoreFallbackFailure
from wallet_history.models.config import HistoryConfig
from wallet_history.models.networks import NetworkRegistry, normalize_chain_id
from wallet_history.models.transaction import (
    CanonicalTransaction,
    FilterCriteria,
    HistoryOptions,
    PaginatedResult,
    SortOrder,
    TransactionStatus,
)
from wallet_history.utils.evm import validate_evm_address
from wallet_history.utils.metrics import metrics

logger = structlog.get_logger(__name__)


class TransactionHistoryService:
    """Query facade tying cache, aggregator and durable store together."""

    def __init__(self,
                 config: HistoryConfig,
                 registry: NetworkRegistry,
                 aggregator: TransactionAggregator,
                 cache: TransactionCache,
                 store: Optional[TransactionStore] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.registry = registry
        self.aggregator = aggregator
        self.cache = cache
        self.store = store
        self._http_client = http_client
        self.logger = logger.bind(component="transaction_history_service")

    @classmethod
    def from_config(cls, config: Optional[HistoryConfig] = None,
                    store: Optional[TransactionStore] = None) -> "TransactionHistoryService":
        """Wire the default component graph with process-wide lifetimes."""
        config = config or HistoryConfig()
        registry = NetworkRegistry()
        client = httpx.AsyncClient(
            timeout=config.request_timeout,
            headers={"User-Agent": "wallet-history/1.0.0", "Accept": "application/json"},
        )
        rate_limiter = SlidingWindowRateLimiter(registry)
        store = store or TransactionStore(config)
        aggregator = TransactionAggregator(
            registry=registry,
            adapters=build_adapters(registry, config, client, rate_limiter),
            store=store,
            store_batch_size=config.store_batch_size,
            fetch_timeout=config.source_fetch_timeout,
        )
        cache = TransactionCache(ttl_seconds=config.cache_ttl_seconds,
                                 max_entries=config.cache_max_entries)
        return cls(config, registry, aggregator, cache, store=store, http_client=client)

    async def __aenter__(self) -> "TransactionHistoryService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
        if self.store is not None:
            self.store.close()

    # ============================================================
    # History
    # ============================================================

    def _validate_address(self, address: str) -> str:
        if not validate_evm_address(address):
            raise InvalidAddress(address)
        return address.lower()

    def _resolve_options(self, options: Optional[HistoryOptions]) -> HistoryOptions:
        if options is None:
            return HistoryOptions(page_size=self.config.default_page_size)
        page_size = options.page_size if options.page_size and options.page_size > 0 else self.config.default_page_size
        return HistoryOptions(
            page=max(1, options.page),
            page_size=min(page_size, self.config.max_page_size),
            include_token_transfers=options.include_token_transfers,
            sort_order=options.sort_order,
            start_block=options.start_block,
            end_block=options.end_block,
        )

    async def get_transaction_history(self, address: str, chain_id,
                                      options: Optional[HistoryOptions] = None) -> PaginatedResult:
        """
        One page of the wallet's activity on ``chain_id``.

        Raises ``InvalidAddress`` before any I/O for malformed addresses;
        every later failure degrades to stored or empty results.
        """
        address = self._validate_address(address)
        options = self._resolve_options(options)
        chain_key = normalize_chain_id(chain_id)

        key = CacheKey(address, chain_key, options.page, options.page_size,
                       options.include_token_transfers, options.sort_order)

        cached = self.cache.get(key)
        if cached is not None:
            metrics.cache_hits.inc()
            self.logger.debug("Cache hit", address=address, chain_id=chain_key, page=options.page)
            return query.paginate(cached, options.page, options.page_size)

        metrics.cache_misses.inc()

        try:
            transactions = await self.aggregator.aggregate(address, chain_key, options)
        except Exception as e:
            self.logger.error("Failed to fetch transaction history, using stored transactions",
                              address=address,
                              chain_id=chain_key,
                              error_type=type(e).__name__,
                              error=str(e))
            metrics.store_fallbacks.labels(reason=type(e).__name__).inc()
            return await self._fallback(address, options)

        self.cache.put(key, transactions)
        return query.paginate(transactions, options.page, options.page_size)

    async def _fallback(self, address: str, options: HistoryOptions) -> PaginatedResult:
        try:
            stored = await self._load_stored(address)
        except StoreFallbackFailure as e:
            self.logger.error("Failed to fetch stored transactions", address=address, error=str(e))
            return PaginatedResult(items=[], has_more=False, total_count=0,
                                   page=options.page, page_size=options.page_size)

        return query.paginate(sort_transactions(stored, options.sort_order), options.page, options.page_size)

    def _hydrate(self, tx: CanonicalTransaction, address: str) -> CanonicalTransaction:
        tx = reorient(tx, address)
        chain_id = tx.chain_id
        if chain_id is None:
            network = self.registry.by_name(tx.network)
            chain_id = network.chain_id if network else None
        if chain_id is not None:
            tx = tx.copy_with(chain_id=chain_id,
                              explorer_url=self.registry.explorer_tx_url(chain_id, tx.hash))
        return tx

    async def _load_stored(self, address: str, pending_only: bool = False) -> List[CanonicalTransaction]:
        """Stored transactions for ``address`` on any network, oriented to it."""
        if self.store is None:
            raise StoreFallbackFailure("No durable store configured")
        try:
            if pending_only:
                rows = await self.store.get_pending_transactions(address)
            else:
                rows = await self.store.get_transactions_by_address(address)
        except Exception as e:
            raise StoreFallbackFailure(str(e)) from e
        return [self._hydrate(tx, address) for tx in rows]

    # ============================================================
    # Store-backed views
    # ============================================================

    async def get_pending_transactions(self, address: str) -> List[CanonicalTransaction]:
        """Pending transactions are only known to the durable store."""
        address = self._validate_address(address)
        rows = await self._load_stored(address, pending_only=True)
        return [tx for tx in rows if tx.status == TransactionStatus.PENDING]

    async def get_transaction_stats(self, address: str) -> Dict[str, Any]:
        address = self._validate_address(address)
        return query.summarize(await self._load_stored(address))

    async def export_transactions(self, address: str, fmt: str = "json") -> str:
        address = self._validate_address(address)
        stored = sort_transactions(await self._load_stored(address), SortOrder.DESC)
        return query.export(stored, fmt)

    # ============================================================
    # Slice helpers
    # ============================================================

    @staticmethod
    def search_transactions(transactions: List[CanonicalTransaction], term: str) -> List[CanonicalTransaction]:
        return query.search(transactions, term)

    @staticmethod
    def filter_transactions(transactions: List[CanonicalTransaction],
                            criteria: FilterCriteria) -> List[CanonicalTransaction]:
        return query.filter_transactions(transactions, criteria)

    def clear_cache(self) -> None:
        self.cache.clear()

    def sweep_cache(self) -> int:
        return self.cache.sweep()
