"""Tests for the durable transaction store."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from conftest import COUNTERPARTY, TOKEN_CONTRACT, WALLET, canonical_tx, make_hash
from wallet_history.database.manager import TransactionStore
from wallet_history.database.schemas import StoredTransaction
from wallet_history.models.transaction import TransactionStatus, TransactionType


class TestTransactionStore:
    """Test suite for TransactionStore."""

    def test_connection(self, store):
        """Test the in-memory database is reachable."""
        assert store.test_connection() is True

    @pytest.mark.asyncio
    async def test_upsert_and_read_back(self, store):
        """Test stored fields survive a round trip."""
        tx = canonical_tx(1, token_symbol="USDC", token_name="USD Coin", token_decimals=6,
                          metadata={"contractAddress": TOKEN_CONTRACT, "transactionIndex": 3})

        assert await store.upsert_transactions([tx]) == 1
        [stored] = await store.get_transactions_by_address(WALLET)

        assert stored.hash == tx.hash
        assert stored.amount == "1"
        assert stored.fee == "0.00042"
        assert stored.block_number == tx.block_number
        assert stored.timestamp == tx.timestamp
        assert stored.timestamp.tzinfo is not None
        assert stored.token_decimals == 6
        assert stored.contract_address == TOKEN_CONTRACT
        assert stored.metadata["transactionIndex"] == 3

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, store):
        """Test writing the same transaction twice keeps one row with the latest values."""
        await store.upsert_transactions([canonical_tx(1, status=TransactionStatus.PENDING)])
        await store.upsert_transactions([canonical_tx(1, status=TransactionStatus.CONFIRMED)])

        stored = await store.get_transactions_by_address(WALLET)

        assert len(stored) == 1
        assert stored[0].status == TransactionStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_same_hash_on_two_networks(self, store):
        """Test the upsert key includes the network."""
        await store.upsert_transactions([
            canonical_tx(1),
            canonical_tx(1, network="Polygon Mainnet", chain_id="0x89"),
        ])

        stored = await store.get_transactions_by_address(WALLET)

        assert sorted(tx.network for tx in stored) == ["Ethereum Mainnet", "Polygon Mainnet"]

    @pytest.mark.asyncio
    async def test_lookup_is_case_insensitive(self, store):
        """Test rows match the address as sender or recipient in any case."""
        await store.upsert_transactions([
            canonical_tx(1, sender=COUNTERPARTY, recipient=WALLET),
            canonical_tx(2, sender=WALLET, recipient=COUNTERPARTY),
        ])

        stored = await store.get_transactions_by_address(WALLET.upper().replace("0X", "0x"))

        assert [tx.hash for tx in stored] == [make_hash(2), make_hash(1)]

    @pytest.mark.asyncio
    async def test_unrelated_address_has_no_rows(self, store):
        """Test rows of other wallets are not returned."""
        await store.upsert_transactions([canonical_tx(1)])

        assert await store.get_transactions_by_address("0x" + "ab" * 20) == []

    @pytest.mark.asyncio
    async def test_pending_filter(self, store):
        """Test pending lookup returns only pending rows."""
        await store.upsert_transactions([
            canonical_tx(1, status=TransactionStatus.PENDING),
            canonical_tx(2, status=TransactionStatus.FAILED),
        ])

        pending = await store.get_pending_transactions(WALLET)

        assert [tx.hash for tx in pending] == [make_hash(1)]

    @pytest.mark.asyncio
    async def test_duplicate_key_in_batch_keeps_last(self, store):
        """Test one batch carrying a hash twice stores a single row with the later values."""
        stored_count = await store.upsert_transactions([
            canonical_tx(1, amount="1"),
            canonical_tx(1, amount="2.5", token_symbol="USDC", token_decimals=6),
        ])

        stored = await store.get_transactions_by_address(WALLET)

        assert stored_count == 1
        assert len(stored) == 1
        assert stored[0].amount == "2.5"
        assert stored[0].token_symbol == "USDC"

    @pytest.mark.asyncio
    async def test_invalid_record_skipped(self, store):
        """Test a record failing validation does not block the rest of the batch."""
        stored_count = await store.upsert_transactions([canonical_tx(2), canonical_tx(3, hash="0xabc")])

        stored = await store.get_transactions_by_address(WALLET)

        assert stored_count == 1
        assert [tx.hash for tx in stored] == [make_hash(2)]

    @pytest.mark.asyncio
    async def test_all_records_invalid(self, store):
        """Test a batch with nothing valid writes nothing."""
        assert await store.upsert_transactions([canonical_tx(1, hash="0xabc")]) == 0
        assert await store.get_transactions_by_address(WALLET) == []

    @pytest.mark.asyncio
    async def test_empty_batch(self, store):
        """Test an empty batch is a no-op."""
        assert await store.upsert_transactions([]) == 0

    @pytest.mark.asyncio
    async def test_batch_limit(self, config):
        """Test oversized batches are rejected."""
        store = TransactionStore(config.model_copy(update={"store_batch_size": 2}))
        store.create_tables()

        with pytest.raises(ValueError):
            await store.upsert_transactions([canonical_tx(i) for i in range(3)])

        store.close()


class TestStoredTransaction:
    """Tests for the upsert validation schema."""

    def test_invalid_hash_rejected(self):
        """Test a malformed hash fails validation."""
        with pytest.raises(ValidationError):
            StoredTransaction.from_canonical(canonical_tx(1, hash="0xnothash"))

    def test_invalid_sender_rejected(self):
        """Test a malformed sender fails validation."""
        with pytest.raises(ValidationError):
            StoredTransaction(hash=make_hash(1), from_address="0x123",
                              timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc))

    def test_empty_recipient_allowed(self):
        """Test contract creations may have no recipient."""
        record = StoredTransaction(hash=make_hash(1).upper().replace("0X", "0x"), from_address=WALLET,
                                   timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc))

        assert record.to_address == ""
        assert record.hash == make_hash(1)
        assert record.from_address == WALLET.lower()

    def test_to_row_maps_columns(self):
        """Test the ORM row uses column attribute names."""
        row = StoredTransaction.from_canonical(canonical_tx(1)).to_row()

        assert row["tx_hash"] == make_hash(1)
        assert row["status"] == "confirmed"
        assert row["tx_type"] == TransactionType.RECEIVED.value
        assert row["tx_metadata"] is None
