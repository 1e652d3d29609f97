"""Utility functions and helpers."""

from wallet_history.utils.logging import setup_logging
from wallet_history.utils.evm import (
    validate_evm_address,
    validate_tx_hash,
    parse_quantity,
    format_units,
    chunked,
)
from wallet_history.utils.time import to_utc_timestamp

__all__ = [
    "setup_logging",
    "validate_evm_address",
    "validate_tx_hash",
    "parse_quantity",
    "format_units",
    "chunked",
    "to_utc_timestamp",
]
