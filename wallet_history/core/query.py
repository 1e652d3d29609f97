"""Pure operations over an already fetched list of transactions."""

import csv
import io
import json
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from wallet_history.models.transaction import (
    CanonicalTransaction,
    Direction,
    FilterCriteria,
    PaginatedResult,
    TransactionStatus,
    TransactionType,
)
from wallet_history.utils.time import to_utc_timestamp

CSV_HEADERS = ['Hash', 'Date', 'From', 'To', 'Amount', 'Status', 'Network', 'Fee', 'Block Number']


def paginate(transactions: List[CanonicalTransaction], page: int, page_size: int) -> PaginatedResult:
    """Slice one 1-based page out of a sorted list."""
    start = (page - 1) * page_size
    end = start + page_size
    return PaginatedResult(
        items=transactions[start:end],
        has_more=end < len(transactions),
        total_count=len(transactions),
        page=page,
        page_size=page_size,
    )


def search(transactions: List[CanonicalTransaction], query: str) -> List[CanonicalTransaction]:
    """Case-insensitive substring match over hash, addresses and token symbol/name."""
    if not query or not query.strip():
        return list(transactions)

    term = query.strip().lower()

    def matches(tx: CanonicalTransaction) -> bool:
        fields = (tx.hash, tx.from_address, tx.to_address, tx.token_symbol, tx.token_name)
        return any(term in value.lower() for value in fields if value)

    return [tx for tx in transactions if matches(tx)]


def _amount_as_float(amount: str) -> float:
    try:
        return float(amount)
    except (TypeError, ValueError):
        return float("nan")


def filter_transactions(transactions: List[CanonicalTransaction],
                        criteria: FilterCriteria) -> List[CanonicalTransaction]:
    """Keep transactions satisfying every criterion that is set."""
    types = {TransactionType(t) for t in criteria.types} if criteria.types is not None else None
    statuses = {TransactionStatus(s) for s in criteria.statuses} if criteria.statuses is not None else None
    networks = set(criteria.networks) if criteria.networks is not None else None

    # Naive bounds are taken as UTC
    date_range = None
    if criteria.date_range is not None:
        date_range = tuple(to_utc_timestamp(bound) for bound in criteria.date_range)

    def keep(tx: CanonicalTransaction) -> bool:
        if types is not None and tx.type not in types:
            return False
        if statuses is not None and tx.status not in statuses:
            return False
        if networks is not None and tx.network not in networks:
            return False

        if date_range is not None:
            start, end = date_range
            timestamp = to_utc_timestamp(tx.timestamp)
            if timestamp < start or timestamp > end:
                return False

        if criteria.amount_range is not None:
            low, high = criteria.amount_range
            amount = _amount_as_float(tx.amount)
            if not (low <= amount <= high):
                return False

        return True

    return [tx for tx in transactions if keep(tx)]


def summarize(transactions: List[CanonicalTransaction]) -> Dict[str, Any]:
    """Counts and volume over transactions already oriented to one address."""
    total_volume = Decimal("0")
    for tx in transactions:
        try:
            total_volume += Decimal(tx.amount or "0")
        except InvalidOperation:
            continue

    return {
        "total": len(transactions),
        "sent": sum(1 for tx in transactions if tx.direction == Direction.OUTGOING),
        "received": sum(1 for tx in transactions if tx.direction == Direction.INCOMING),
        "pending": sum(1 for tx in transactions if tx.status == TransactionStatus.PENDING),
        "confirmed": sum(1 for tx in transactions if tx.status == TransactionStatus.CONFIRMED),
        "failed": sum(1 for tx in transactions if tx.status == TransactionStatus.FAILED),
        "networks": sorted({tx.network for tx in transactions}),
        "total_volume": total_volume,
    }


def export(transactions: List[CanonicalTransaction], fmt: str = "json") -> str:
    """Render transactions as ``json`` or ``csv`` text."""
    fmt = fmt.lower()

    if fmt == "json":
        return json.dumps([tx.to_dict() for tx in transactions], indent=2)

    if fmt == "csv":
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_HEADERS)
        for tx in transactions:
            writer.writerow([
                tx.hash,
                tx.timestamp.isoformat(),
                tx.from_address,
                tx.to_address,
                tx.amount or '0',
                tx.status.value,
                tx.network,
                tx.fee or '',
                tx.block_number if tx.block_number is not None else '',
            ])
        return buffer.getvalue()

    raise ValueError(f"Unsupported export format: {fmt}")
