"""Orchestration of source adapters into one sorted canonical list."""

import asyncio
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

import structlog

from wallet_history.core.data_provider import SourceAdapter
from wallet_history.core.normalizer import normalize, to_raw_record
from wallet_history.exceptions import PersistenceFailure, SourceUnavailable, UnsupportedNetwork
from wallet_history.models.networks import NetworkInfo, NetworkRegistry, normalize_chain_id
from wallet_history.models.transaction import CanonicalTransaction, HistoryOptions, SortOrder
from wallet_history.utils.evm import chunked
from wallet_history.utils.metrics import metrics

logger = structlog.get_logger(__name__)


def sort_transactions(transactions: List[CanonicalTransaction],
                      sort_order: SortOrder = SortOrder.DESC) -> List[CanonicalTransaction]:
    """Order by timestamp, block number breaking ties."""
    return sorted(transactions,
                  key=lambda tx: tx.sort_key(),
                  reverse=SortOrder(sort_order) == SortOrder.DESC)


class TransactionAggregator:
    """
    Unit of work for one history query.

    Native and token fetches run concurrently. A failed fetch degrades to
    an empty list; only when every issued fetch fails does aggregation
    raise ``SourceUnavailable``. Results are persisted best-effort.
    """

    def __init__(self,
                 registry: NetworkRegistry,
                 adapters: Dict[str, SourceAdapter],
                 store=None,
                 store_batch_size: int = 100,
                 fetch_timeout: Optional[float] = 60.0):
        self.registry = registry
        self.adapters = {normalize_chain_id(cid): adapter for cid, adapter in adapters.items()}
        self.store = store
        self.store_batch_size = store_batch_size
        self.fetch_timeout = fetch_timeout
        self.logger = logger.bind(component="transaction_aggregator")

    def adapter_for(self, chain_id) -> Tuple[NetworkInfo, SourceAdapter]:
        network = self.registry.get(chain_id)
        adapter = self.adapters.get(normalize_chain_id(chain_id))
        if network is None or adapter is None:
            raise UnsupportedNetwork(chain_id)
        return network, adapter

    async def _guarded(self, label: str, adapter: SourceAdapter,
                       fetch: Awaitable[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """Apply the per-fetch deadline and map timeouts to ``SourceUnavailable``."""
        try:
            if self.fetch_timeout is None:
                return await fetch
            return await asyncio.wait_for(fetch, timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            raise SourceUnavailable(adapter.kind, f"{label} fetch timed out after {self.fetch_timeout}s")

    async def _fetch_raw(self, adapter: SourceAdapter, address: str,
                         options: HistoryOptions) -> List[Dict[str, Any]]:
        labels = ["native"]
        fetches = [self._guarded("native", adapter, adapter.fetch_native(address, options))]

        if options.include_token_transfers and adapter.supports_token_transfers:
            labels.append("token")
            fetches.append(self._guarded("token", adapter, adapter.fetch_token_transfers(address, options)))

        results = await asyncio.gather(*fetches, return_exceptions=True)

        raw: List[Dict[str, Any]] = []
        failures = []
        for label, result in zip(labels, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failures.append(label)
                metrics.source_failures.labels(source=adapter.kind, network=adapter.network.name).inc()
                self.logger.warning("Source fetch failed, degrading to empty result",
                                    fetch=label,
                                    source=adapter.kind,
                                    network=adapter.network.name,
                                    error=str(result))
                continue
            raw.extend(result)

        if len(failures) == len(labels):
            raise SourceUnavailable(adapter.kind, f"all fetches failed for {adapter.network.name}")

        return raw

    def _normalize_all(self, raw: List[Dict[str, Any]], adapter: SourceAdapter,
                       address: str, network: NetworkInfo) -> List[CanonicalTransaction]:
        transactions = []
        for payload in raw:
            try:
                record = to_raw_record(payload, adapter.record_format)
                transactions.append(normalize(record, address, network))
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning("Skipping malformed source record",
                                    network=network.name,
                                    hash=payload.get("hash"),
                                    error=str(e))
        return transactions

    async def aggregate(self, address: str, chain_id,
                        options: Optional[HistoryOptions] = None) -> List[CanonicalTransaction]:
        """Fetch, normalize, merge and sort; unpaginated."""
        options = options or HistoryOptions()
        network, adapter = self.adapter_for(chain_id)

        raw = await self._fetch_raw(adapter, address, options)
        transactions = sort_transactions(
            self._normalize_all(raw, adapter, address, network), options.sort_order
        )

        self.logger.info("Aggregation complete",
                         network=network.name,
                         source=adapter.kind,
                         raw_count=len(raw),
                         count=len(transactions))

        await self.persist(transactions)
        return transactions

    async def persist(self, transactions: Sequence[CanonicalTransaction]) -> int:
        """Best-effort upsert in store-sized chunks; never raises."""
        if self.store is None or not transactions:
            return 0

        stored = 0
        try:
            for batch in chunked(transactions, self.store_batch_size):
                try:
                    stored += await self.store.upsert_transactions(batch)
                except Exception as e:
                    raise PersistenceFailure(str(e)) from e
        except PersistenceFailure as e:
            self.logger.error("Failed to store transactions",
                              error=str(e),
                              count=len(transactions),
                              stored=stored,
                              sample=[tx.hash for tx in transactions[:2]])
            return stored

        metrics.persisted_transactions.inc(stored)
        self.logger.debug("Transactions persisted", count=stored)
        return stored
