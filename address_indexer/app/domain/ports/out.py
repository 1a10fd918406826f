from __future__ import annotations

from typing import Protocol, Sequence

from address_indexer.app.domain.models import Transaction


class BlockchainReader(Protocol):
    """
    Port for reading blocks from a chain node.

    Implementations must raise BlockchainReaderError for every failure,
    including responses that cannot be decoded into Transactions.
    """

    async def get_latest_block_number(self) -> int:
        ...

    async def get_block_transactions(self, block_number: int) -> Sequence[Transaction]:
        ...


class SubscriptionRegistry(Protocol):
    """
    Port for the set of watched addresses.

    Every operation is atomic with respect to concurrent callers.
    """

    def add(self, address: str) -> bool:
        """Return True if the address was newly inserted."""
        ...

    def check(self, address: str) -> bool:
        ...

    def remove(self, address: str) -> bool:
        """Return True if the address was present and is now removed."""
        ...

    def __len__(self) -> int:
        ...


class TransactionArchive(Protocol):
    """
    Port for the per-address transaction log and the last-indexed-block marker.

    save_transaction fans a transaction out under both its sender and
    its recipient; get_transactions returns a snapshot in insertion order.
    """

    def save_block(self, block_number: int) -> None:
        ...

    def get_last_block(self) -> int:
        ...

    def save_transaction(self, tx: Transaction) -> None:
        ...

    def get_transactions(self, address: str) -> list[Transaction]:
        ...
