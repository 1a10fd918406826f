from __future__ import annotations

import threading
from typing import Literal

from address_indexer.app.domain.models import Transaction


_Role = Literal["from", "to"]


class InMemoryTransactionArchive:
    """
    Archive adapter: per-address transaction log held in memory.

    Strategy:
    - Every saved transaction is appended under its sender and, independently,
      under its recipient. A self-transfer therefore shows up twice under the
      same address.
    - Saving the same transaction again in the same role is a no-op, so
      re-scanning a block range leaves the archive unchanged.
    - Reads return copies; callers never see a list that is still being
      appended to.

    Notes:
    - The last-block marker is written by the engine and is not forced to be
      monotonic here.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_block = 0
        self._transactions: dict[str, list[Transaction]] = {}
        self._seen: set[tuple[str, _Role, str, int]] = set()

    def save_block(self, block_number: int) -> None:
        with self._lock:
            self._last_block = block_number

    def get_last_block(self) -> int:
        with self._lock:
            return self._last_block

    def save_transaction(self, tx: Transaction) -> None:
        with self._lock:
            self._append(tx.from_address, "from", tx)
            self._append(tx.to_address, "to", tx)

    def get_transactions(self, address: str) -> list[Transaction]:
        with self._lock:
            return list(self._transactions.get(address, ()))

    def _append(self, address: str, role: _Role, tx: Transaction) -> None:
        if not address:
            # contract creation has no recipient
            return
        key = (address, role, tx.hash, tx.block_number)
        if key in self._seen:
            return
        self._seen.add(key)
        self._transactions.setdefault(address, []).append(tx)
