"""
Normalization of heterogeneous source records into canonical transactions.

Pure transformations, no I/O. ``direction`` and ``type`` are always
derived relative to the queried address and never trusted from a source.

Type precedence is deliberate: a record with an empty ``to`` or any
``contractAddress`` is a contract interaction even when it also carries
a token symbol. This merges two separate properties (is it a contract
call, does it move a token) into one label and is kept for compatibility.
"""

from typing import Any, Dict, Optional, Tuple

from wallet_history.models.networks import NetworkInfo
from wallet_history.models.transaction import (
    CanonicalTransaction,
    Direction,
    RawSourceRecord,
    RecordFormat,
    TransactionStatus,
    TransactionType,
)
from wallet_history.utils.evm import format_units, parse_quantity
from wallet_history.utils.time import to_utc_timestamp


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_explorer_row(row: Dict[str, Any]) -> RawSourceRecord:
    """Explorer ``txlist`` / ``tokentx`` row (decimal strings)."""
    receipt_status = _text(row.get("txreceipt_status"))
    token_decimals = parse_quantity(row.get("tokenDecimal"))

    return RawSourceRecord(
        hash=str(row["hash"]),
        from_address=_text(row.get("from")) or "",
        to_address=_text(row.get("to")) or "",
        value=parse_quantity(row.get("value")) or 0,
        timestamp=parse_quantity(row.get("timeStamp")) or 0,
        block_number=parse_quantity(row.get("blockNumber")),
        gas_price=parse_quantity(row.get("gasPrice")),
        gas_used=parse_quantity(row.get("gasUsed")),
        is_error=_text(row.get("isError")) == "1",
        receipt_failed=receipt_status == "0",
        contract_address=_text(row.get("contractAddress")),
        token_symbol=_text(row.get("tokenSymbol")),
        token_name=_text(row.get("tokenName")),
        token_decimals=token_decimals,
        transaction_index=parse_quantity(row.get("transactionIndex")),
        method_id=_text(row.get("methodId")),
        function_name=_text(row.get("functionName")),
    )


def parse_rpc_transaction(tx: Dict[str, Any]) -> RawSourceRecord:
    """
    ``eth_getBlockByNumber`` transaction body (hex quantities).

    Block bodies carry no receipt, so gas used is unknown (no fee) and
    the status cannot be read; such records count as confirmed.
    """
    input_data = _text(tx.get("input")) or ""
    method_id = input_data[:10] if len(input_data) >= 10 else None

    return RawSourceRecord(
        hash=str(tx["hash"]),
        from_address=_text(tx.get("from")) or "",
        to_address=_text(tx.get("to")) or "",
        value=parse_quantity(tx.get("value")) or 0,
        timestamp=parse_quantity(tx.get("blockTimestamp")) or 0,
        block_number=parse_quantity(tx.get("blockNumber")),
        gas_price=parse_quantity(tx.get("gasPrice")),
        gas_used=None,
        transaction_index=parse_quantity(tx.get("transactionIndex")),
        method_id=method_id,
    )


def to_raw_record(payload: Dict[str, Any], record_format: RecordFormat) -> RawSourceRecord:
    if record_format == RecordFormat.RPC:
        return parse_rpc_transaction(payload)
    return parse_explorer_row(payload)


def classify(from_address: str,
             to_address: Optional[str],
             contract_address: Optional[str],
             token_symbol: Optional[str],
             queried_address: str) -> Tuple[TransactionType, Direction]:
    """Derive ``(type, direction)`` relative to ``queried_address``."""
    is_outgoing = (from_address or "").lower() == (queried_address or "").lower()
    direction = Direction.OUTGOING if is_outgoing else Direction.INCOMING

    if not to_address or contract_address:
        tx_type = TransactionType.CONTRACT_INTERACTION
    elif token_symbol:
        tx_type = TransactionType.TOKEN_TRANSFER
    else:
        tx_type = TransactionType.SENT if is_outgoing else TransactionType.RECEIVED

    return tx_type, direction


def compute_fee(gas_used: Optional[int], gas_price: Optional[int], decimals: int) -> Optional[str]:
    """``gas_used * gas_price`` in human units; absent inputs give no fee."""
    if gas_used is None or gas_price is None:
        return None
    return format_units(gas_used * gas_price, decimals)


def normalize(raw: RawSourceRecord, queried_address: str, network: NetworkInfo) -> CanonicalTransaction:
    """Translate one raw record into a ``CanonicalTransaction``."""
    tx_type, direction = classify(
        raw.from_address, raw.to_address, raw.contract_address, raw.token_symbol, queried_address
    )

    # Token rows are denominated in the token's own decimals even when the
    # precedence above labels them a contract interaction.
    if raw.token_symbol and raw.token_decimals is not None:
        amount = format_units(raw.value, raw.token_decimals)
    else:
        amount = format_units(raw.value, network.decimals)

    if raw.is_error or raw.receipt_failed:
        status = TransactionStatus.FAILED
    else:
        status = TransactionStatus.CONFIRMED

    metadata = {
        "transactionIndex": raw.transaction_index,
        "functionName": raw.function_name,
        "methodId": raw.method_id,
        "contractAddress": raw.contract_address.lower() if raw.contract_address else None,
    }

    return CanonicalTransaction(
        hash=raw.hash,
        from_address=raw.from_address.lower(),
        to_address=(raw.to_address or raw.contract_address or "").lower(),
        amount=amount,
        fee=compute_fee(raw.gas_used, raw.gas_price, network.decimals),
        gas_price=str(raw.gas_price) if raw.gas_price is not None else None,
        gas_used=str(raw.gas_used) if raw.gas_used is not None else None,
        status=status,
        network=network.name,
        chain_id=network.chain_id,
        block_number=raw.block_number,
        timestamp=to_utc_timestamp(raw.timestamp),
        type=tx_type,
        direction=direction,
        token_symbol=raw.token_symbol,
        token_name=raw.token_name,
        token_decimals=raw.token_decimals if raw.token_symbol else None,
        explorer_url=network.tx_url(raw.hash),
        metadata={key: value for key, value in metadata.items() if value is not None},
    )


def reorient(tx: CanonicalTransaction, queried_address: str) -> CanonicalTransaction:
    """Recompute ``type`` and ``direction`` of a stored transaction for another viewer."""
    # Stored rows keep the contract address in ``to`` when the original
    # ``to`` was empty, and in metadata; either way precedence is preserved.
    tx_type, direction = classify(
        tx.from_address, tx.to_address, tx.contract_address, tx.token_symbol, queried_address
    )
    if tx_type == tx.type and direction == tx.direction:
        return tx
    return tx.copy_with(type=tx_type, direction=direction)
