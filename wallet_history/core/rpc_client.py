"""
JSON-RPC block scan adapter.

Fallback for networks without an indexed API. It walks the most recent
``block_window`` blocks backwards and keeps transactions whose ``from``
or ``to`` equals the queried address. The window is a heuristic bound on
cost, not a completeness guarantee: anything older is invisible to this
adapter, and token transfers (event logs) are never decoded.
"""

import asyncio
import itertools
from typing import Any, Dict, List, Optional

import httpx
import structlog

from wallet_history.core.data_provider import SourceAdapter
from wallet_history.core.rate_limiter import SlidingWindowRateLimiter
from wallet_history.exceptions import SourceUnavailable
from wallet_history.models.networks import NetworkInfo
from wallet_history.models.transaction import HistoryOptions, RecordFormat
from wallet_history.utils.evm import parse_quantity

logger = structlog.get_logger(__name__)


class RPCError(SourceUnavailable):
    """JSON-RPC specific error."""

    def __init__(self, message: str):
        super().__init__("rpc", message)


class RPCScanClient(SourceAdapter):
    """EVM JSON-RPC client scanning recent blocks for one address."""

    kind = "rpc"
    record_format = RecordFormat.RPC
    supports_token_transfers = False

    def __init__(self,
                 network: NetworkInfo,
                 client: httpx.AsyncClient,
                 rate_limiter: SlidingWindowRateLimiter,
                 rpc_url: Optional[str] = None,
                 block_window: int = 100,
                 timeout: float = 15.0,
                 max_retries: int = 3,
                 retry_delay: float = 1.0):
        super().__init__(network)
        self.client = client
        self.rate_limiter = rate_limiter
        self.rpc_url = rpc_url or network.rpc_url
        self.block_window = max(1, block_window)
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._ids = itertools.count(1)
        self.logger = logger.bind(component="rpc_client", network=network.name)

    async def _make_request(self, method: str, params: Optional[List[Any]] = None,
                            attempts: Optional[int] = None) -> Any:
        """Make RPC request with retry logic."""
        if params is None:
            params = []
        attempts = attempts or self.max_retries

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params
        }

        for attempt in range(attempts):
            try:
                response = await self.client.post(self.rpc_url, json=payload, timeout=self.timeout)
                response.raise_for_status()

                data = response.json()

                if not isinstance(data, dict):
                    raise RPCError("Malformed JSON-RPC response")

                if data.get('error') is not None:
                    error = data['error'] if isinstance(data['error'], dict) else {"message": str(data['error'])}
                    raise RPCError(f"RPC Error {error.get('code', -1)}: {error.get('message', 'Unknown RPC error')}")

                return data.get('result')

            except (httpx.HTTPError, ValueError) as e:
                self.logger.warning("RPC request failed",
                                    method=method,
                                    attempt=attempt + 1,
                                    error=str(e) or type(e).__name__)

                if attempt == attempts - 1:
                    raise RPCError(f"RPC request failed after {attempts} attempts: {e}")

                await asyncio.sleep(self.retry_delay * (2 ** attempt))

        raise RPCError("Unexpected error in RPC request")

    async def get_block_number(self) -> int:
        """Get the current block height."""
        result = await self._make_request("eth_blockNumber")
        height = parse_quantity(result)
        if height is None:
            raise RPCError("eth_blockNumber returned no result")
        return height

    async def get_block(self, number: int, full_transactions: bool = True) -> Optional[Dict[str, Any]]:
        """Get block by number; a single best-effort attempt."""
        return await self._make_request(
            "eth_getBlockByNumber", [hex(number), full_transactions], attempts=1
        )

    def _block_range(self, latest: int, options: HistoryOptions) -> range:
        upper = latest if options.end_block is None else min(latest, options.end_block)
        lower = max(0, upper - self.block_window + 1)
        if options.start_block is not None:
            lower = max(lower, options.start_block)
        return range(upper, lower - 1, -1)

    async def fetch_native(self, address: str, options: HistoryOptions) -> List[Dict[str, Any]]:
        """Scan recent blocks, newest first, for transactions touching ``address``."""
        await self.rate_limiter.acquire(self.network.chain_id)

        target = address.lower()
        latest = await self.get_block_number()
        matches: List[Dict[str, Any]] = []
        skipped = 0

        for number in self._block_range(latest, options):
            try:
                block = await self.get_block(number)
            except SourceUnavailable as e:
                skipped += 1
                self.logger.warning("Failed to fetch block, skipping", block=number, error=str(e))
                continue

            if not block:
                continue

            for tx in block.get("transactions") or []:
                if not isinstance(tx, dict):
                    continue
                if (tx.get("from") or "").lower() == target or (tx.get("to") or "").lower() == target:
                    matches.append({
                        **tx,
                        "blockNumber": tx.get("blockNumber") or block.get("number"),
                        "blockTimestamp": block.get("timestamp"),
                    })

        self.logger.info("RPC scan complete",
                         latest_block=latest,
                         window=self.block_window,
                         matches=len(matches),
                         skipped_blocks=skipped)
        return matches
