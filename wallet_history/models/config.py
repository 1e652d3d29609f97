"""Configuration management using Pydantic settings."""

from typing import Dict, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class HistoryConfig(BaseSettings):
    """Configuration for the wallet transaction history engine."""

    # Database Settings
    database_url: str = Field(
        default="sqlite:///wallet_history.db",
        description="SQLAlchemy URL of the durable transaction store"
    )
    db_pool_size: int = Field(default=10, description="Connection pool size")
    db_max_overflow: int = Field(default=20, description="Max pool overflow")
    db_echo: bool = Field(default=False, description="Echo SQL statements")
    store_batch_size: int = Field(default=100, ge=1, le=1000, description="Max transactions per bulk upsert")

    # Upstream Source Settings
    request_timeout: float = Field(default=15.0, gt=0, description="Per HTTP call timeout in seconds")
    source_fetch_timeout: float = Field(default=60.0, gt=0, description="Per adapter fetch timeout in seconds")
    request_max_retries: int = Field(default=3, ge=1, description="Attempts per HTTP call on transport failure")
    request_retry_delay: float = Field(default=1.0, ge=0, description="Backoff base between retries in seconds")
    rpc_scan_block_window: int = Field(default=100, ge=1, le=1000, description="Recent blocks walked by the RPC scan")

    # Explorer API keys by rate-limit family
    etherscan_api_key: Optional[str] = Field(default=None, description="Etherscan API key")
    polygonscan_api_key: Optional[str] = Field(default=None, description="Polygonscan API key")
    bscscan_api_key: Optional[str] = Field(default=None, description="BscScan API key")

    # Per chain RPC endpoint overrides, e.g. {"0xa4b1": "https://my-node"}
    rpc_url_overrides: Dict[str, str] = Field(default_factory=dict, description="RPC URL overrides by chain id")

    # Cache Settings
    cache_ttl_seconds: float = Field(default=120.0, gt=0, description="Freshness window of cached results")
    cache_max_entries: int = Field(default=1000, ge=1, description="Maximum cache entries kept after a sweep")

    # Query Settings
    default_page_size: int = Field(default=25, ge=1, description="Page size when none is given")
    max_page_size: int = Field(default=100, ge=1, description="Upper bound for requested page size")
    default_start_block: int = Field(default=0, ge=0, description="Default lower block bound")
    default_end_block: int = Field(default=99999999, ge=0, description="Default upper block bound")

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json|text)")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size_mb: int = Field(default=100, description="Max log file size in MB")
    log_backup_count: int = Field(default=5, description="Number of log backups")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "WALLET_HISTORY_"
        case_sensitive = False
        extra = "ignore"

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only json and text renderers exist."""
        if v.lower() not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v.lower()

    def get_api_key(self, family: str) -> Optional[str]:
        """Explorer API key for a rate-limit family."""
        return {
            "ethereum": self.etherscan_api_key,
            "polygon": self.polygonscan_api_key,
            "bsc": self.bscscan_api_key,
        }.get(family)
