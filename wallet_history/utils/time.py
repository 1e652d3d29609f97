"""Time utility functions for blockchain data."""

from datetime import datetime, timezone
from typing import Union


def to_utc_timestamp(timestamp: Union[int, float, datetime]) -> datetime:
    """Convert various timestamp formats to UTC datetime."""
    if isinstance(timestamp, datetime):
        # Ensure timezone awareness
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)

    elif isinstance(timestamp, (int, float)):
        # Unix timestamp
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)

    else:
        raise ValueError(f"Unsupported timestamp type: {type(timestamp)}")
