"""
Etherscan-style explorer API adapter.

Serves Ethereum, Polygon and BSC (mainnets and testnets) through the
``module=account`` endpoints: ``txlist`` for native transfers and
``tokentx`` for ERC-20 transfers.
"""

import asyncio
from typing import Any, Dict, List, Optional

import httpx
import structlog

from wallet_history.core.data_provider import SourceAdapter
from wallet_history.core.rate_limiter import SlidingWindowRateLimiter
from wallet_history.exceptions import SourceUnavailable
from wallet_history.models.networks import NetworkInfo
from wallet_history.models.transaction import HistoryOptions, RecordFormat

logger = structlog.get_logger(__name__)

# Explorers reject page * offset above this
MAX_RESULT_WINDOW = 10000
MAX_RETRY_AFTER_SECONDS = 30.0


class ExplorerAPIClient(SourceAdapter):
    """
    Indexed-API adapter for one network.

    Every HTTP attempt passes through the shared rate limiter. A response
    whose ``status`` is not ``"1"`` (including "No transactions found")
    is an empty result; transport failures and HTTP error statuses raise
    ``SourceUnavailable`` once retries are exhausted.
    """

    kind = "explorer"
    record_format = RecordFormat.EXPLORER
    supports_token_transfers = True

    def __init__(self,
                 network: NetworkInfo,
                 client: httpx.AsyncClient,
                 rate_limiter: SlidingWindowRateLimiter,
                 api_key: Optional[str] = None,
                 timeout: float = 15.0,
                 max_retries: int = 3,
                 retry_delay: float = 1.0,
                 default_start_block: int = 0,
                 default_end_block: int = 99999999):
        super().__init__(network)
        self.client = client
        self.rate_limiter = rate_limiter
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.default_start_block = default_start_block
        self.default_end_block = default_end_block
        self.logger = logger.bind(component="explorer_client", network=network.name)

    def _build_params(self, action: str, address: str, options: HistoryOptions) -> Dict[str, Any]:
        # Fetch everything up to the requested page plus one row so the
        # caller can tell whether more history exists upstream.
        offset = min(options.page * options.page_size + 1, MAX_RESULT_WINDOW)
        params = {
            "module": "account",
            "action": action,
            "address": address.lower(),
            "startblock": options.start_block if options.start_block is not None else self.default_start_block,
            "endblock": options.end_block if options.end_block is not None else self.default_end_block,
            "page": 1,
            "offset": offset,
            "sort": options.sort_order.value,
        }
        if self.api_key:
            params["apikey"] = self.api_key
        return params

    async def _make_request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Make API request with retry logic."""
        url = self.network.explorer_api_url
        last_error = "no attempts made"

        for attempt in range(self.max_retries):
            await self.rate_limiter.acquire(self.network.chain_id)

            try:
                response = await self.client.get(url, params=params, timeout=self.timeout)

                # Handle rate limiting
                if response.status_code == 429:
                    wait_time = min(float(response.headers.get("Retry-After", self.retry_delay) or 0),
                                    MAX_RETRY_AFTER_SECONDS)
                    last_error = "HTTP 429"
                    self.logger.warning("Rate limited by explorer, waiting",
                                        wait_time=wait_time,
                                        attempt=attempt + 1)
                    await asyncio.sleep(wait_time)
                    continue

                response.raise_for_status()
                return response.json()

            except (httpx.HTTPError, ValueError) as e:
                last_error = str(e) or type(e).__name__
                self.logger.warning("Explorer request failed",
                                    action=params.get("action"),
                                    attempt=attempt + 1,
                                    error=last_error)

                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay * (2 ** attempt))

        raise SourceUnavailable(
            self.kind,
            f"{self.network.name} request failed after {self.max_retries} attempts: {last_error}"
        )

    async def _fetch_list(self, action: str, address: str, options: HistoryOptions) -> List[Dict[str, Any]]:
        data = await self._make_request(self._build_params(action, address, options))

        if isinstance(data, dict) and str(data.get("status")) == "1" and isinstance(data.get("result"), list):
            rows = [row for row in data["result"] if isinstance(row, dict)]
            self.logger.debug("Explorer rows fetched", action=action, count=len(rows))
            return rows

        self.logger.debug("Explorer returned no rows",
                          action=action,
                          message=data.get("message") if isinstance(data, dict) else None)
        return []

    async def fetch_native(self, address: str, options: HistoryOptions) -> List[Dict[str, Any]]:
        return await self._fetch_list("txlist", address, options)

    async def fetch_token_transfers(self, address: str, options: HistoryOptions) -> List[Dict[str, Any]]:
        return await self._fetch_list("tokentx", address, options)
