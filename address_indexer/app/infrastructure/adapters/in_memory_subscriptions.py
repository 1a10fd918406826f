from __future__ import annotations

import threading


class InMemorySubscriptionRegistry:
    """
    Registry adapter: keeps watched addresses in a process-local set.

    Addresses are opaque strings and are compared exactly. The set is lost
    on restart.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._addresses: set[str] = set()

    def add(self, address: str) -> bool:
        with self._lock:
            if address in self._addresses:
                return False
            self._addresses.add(address)
            return True

    def check(self, address: str) -> bool:
        with self._lock:
            return address in self._addresses

    def remove(self, address: str) -> bool:
        with self._lock:
            if address not in self._addresses:
                return False
            self._addresses.discard(address)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._addresses)
