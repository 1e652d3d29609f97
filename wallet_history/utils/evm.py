"""EVM-specific utility functions."""

import re
from decimal import Decimal, localcontext
from typing import Iterator, List, Optional, Sequence, TypeVar, Union

# EVM address / hash patterns
ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')
TX_HASH_PATTERN = re.compile(r'^0x[0-9a-fA-F]{64}$')

# uint256 needs 78 significant digits
_SCALING_PRECISION = 100

T = TypeVar("T")


def validate_evm_address(address: Optional[str]) -> bool:
    """Validate EVM address format (0x + 40 hex chars, any case)."""
    if not address:
        return False
    return ADDRESS_PATTERN.match(address) is not None


def validate_tx_hash(tx_hash: Optional[str]) -> bool:
    """Validate EVM transaction hash format."""
    if not tx_hash:
        return False
    return TX_HASH_PATTERN.match(tx_hash) is not None


def parse_quantity(value: Union[str, int, None]) -> Optional[int]:
    """
    Parse an integer quantity from an explorer or RPC payload.

    Explorer APIs return decimal strings, JSON-RPC returns 0x-prefixed hex.
    Missing or empty values yield None.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a quantity: {value!r}")
    if isinstance(value, int):
        return value

    text = str(value).strip()
    if not text:
        return None
    if text.lower().startswith("0x"):
        return int(text, 16) if len(text) > 2 else 0
    return int(text)


def format_units(raw_value: int, decimals: int) -> str:
    """
    Scale an integer amount in the smallest unit to a human decimal string.

    Exact for any uint256 value; trailing zeros are stripped.
    """
    with localcontext() as ctx:
        ctx.prec = _SCALING_PRECISION
        value = Decimal(int(raw_value)).scaleb(-int(decimals))
        text = format(value, "f")

    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("", "-0"):
        text = "0"
    return text


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield successive lists of at most ``size`` items."""
    if size <= 0:
        raise ValueError("Chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])
