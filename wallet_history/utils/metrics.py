"""Prometheus metrics for the transaction history engine."""

from prometheus_client import Counter


class Metrics:
    """Prometheus metrics collection."""

    def __init__(self):
        self.cache_hits = Counter(
            'wallet_history_cache_hits_total',
            'Transaction history cache hit count'
        )

        self.cache_misses = Counter(
            'wallet_history_cache_misses_total',
            'Transaction history cache miss count'
        )

        self.source_failures = Counter(
            'wallet_history_source_failures_total',
            'Upstream data source failures',
            ['source', 'network']
        )

        self.rate_limit_waits = Counter(
            'wallet_history_rate_limit_waits_total',
            'Calls suspended by the per-network rate limiter',
            ['network']
        )

        self.store_fallbacks = Counter(
            'wallet_history_store_fallbacks_total',
            'Queries answered from the durable store after aggregation failed',
            ['reason']
        )

        self.persisted_transactions = Counter(
            'wallet_history_persisted_transactions_total',
            'Canonical transactions upserted into the durable store'
        )


# Global metrics instance
metrics = Metrics()
