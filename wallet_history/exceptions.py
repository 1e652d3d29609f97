"""Error taxonomy of the transaction history engine."""


class TransactionHistoryError(Exception):
    """Base class for transaction history errors."""
    pass


class InvalidAddress(TransactionHistoryError):
    """Address does not match the network-native format. Raised before any I/O."""

    def __init__(self, address):
        self.address = address
        super().__init__(f"Invalid address: {address!r}")


class UnsupportedNetwork(TransactionHistoryError):
    """No indexed-API or RPC adapter is configured for the network."""

    def __init__(self, chain_id):
        self.chain_id = chain_id
        super().__init__(f"Unsupported network: {chain_id}")


class SourceUnavailable(TransactionHistoryError):
    """An upstream data source failed at the transport level."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class PersistenceFailure(TransactionHistoryError):
    """Writing canonical transactions to the durable store failed."""
    pass


class StoreFallbackFailure(TransactionHistoryError):
    """Reading previously persisted transactions from the durable store failed."""
    pass
