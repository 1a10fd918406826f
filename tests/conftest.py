"""Pytest configuration and shared fixtures for all tests."""

from __future__ import annotations

from typing import Sequence

import pytest

from address_indexer.app.application.services.indexing_engine import IndexingEngine
from address_indexer.app.domain.errors import BlockchainReaderError
from address_indexer.app.domain.models import Transaction
from address_indexer.app.infrastructure.adapters.in_memory_archive import (
    InMemoryTransactionArchive,
)
from address_indexer.app.infrastructure.adapters.in_memory_subscriptions import (
    InMemorySubscriptionRegistry,
)


class FakeBlockchainReader:
    """In-process reader serving a fixed set of blocks."""

    def __init__(
        self,
        *,
        latest_block: int,
        blocks: dict[int, Sequence[Transaction]] | None = None,
    ) -> None:
        self.latest_block = latest_block
        self.blocks = dict(blocks or {})
        self.failing_blocks: set[int] = set()
        self.fail_latest = False
        self.requested_blocks: list[int] = []

    async def get_latest_block_number(self) -> int:
        if self.fail_latest:
            raise BlockchainReaderError("node unavailable")
        return self.latest_block

    async def get_block_transactions(self, block_number: int) -> list[Transaction]:
        self.requested_blocks.append(block_number)
        if block_number in self.failing_blocks:
            raise BlockchainReaderError(f"block {block_number} unavailable")
        return list(self.blocks.get(block_number, ()))


@pytest.fixture
def sample_blocks() -> dict[int, list[Transaction]]:
    return {
        1: [
            Transaction(
                from_address="0x1234",
                to_address="0x5678",
                hash="0xabcd",
                value=100,
                block_number=1,
            )
        ],
        2: [
            Transaction(
                from_address="0x5678",
                to_address="0x1234",
                hash="0xefgh",
                value=200,
                block_number=2,
            )
        ],
    }


@pytest.fixture
def reader(sample_blocks) -> FakeBlockchainReader:
    return FakeBlockchainReader(latest_block=2, blocks=sample_blocks)


@pytest.fixture
def registry() -> InMemorySubscriptionRegistry:
    return InMemorySubscriptionRegistry()


@pytest.fixture
def archive() -> InMemoryTransactionArchive:
    return InMemoryTransactionArchive()


@pytest.fixture
def engine(reader, registry, archive) -> IndexingEngine:
    return IndexingEngine(
        reader=reader,
        registry=registry,
        archive=archive,
        lookback=20,
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def make_reader():
    return FakeBlockchainReader


@pytest.fixture
def make_engine(registry, archive):
    def _make(reader, **kwargs) -> IndexingEngine:
        kwargs.setdefault("poll_interval_seconds", 0.01)
        return IndexingEngine(reader=reader, registry=registry, archive=archive, **kwargs)

    return _make
