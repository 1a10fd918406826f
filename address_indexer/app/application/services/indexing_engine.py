from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

from address_indexer.app.application.services.block_range import BlockRange
from address_indexer.app.application.services.notifications import (
    NotificationTxn,
    to_notification_txns,
)
from address_indexer.app.config import Settings
from address_indexer.app.domain.errors import BlockchainReaderError, EngineStartupError
from address_indexer.app.domain.models import EngineState, Transaction
from address_indexer.app.domain.ports.out import (
    BlockchainReader,
    SubscriptionRegistry,
    TransactionArchive,
)

logger = logging.getLogger(__name__)

LOOKBACK_FROM_LATEST = 20
POLL_INTERVAL_SECONDS = 15.0


class IndexingEngine:
    """
    Polls the chain on a fixed interval and keeps the archive filled with
    transactions touching subscribed addresses.

    Lifecycle:
    - start(): fetch the latest block L, index [max(0, L - lookback), L],
      then launch the polling task.
    - every tick: fetch the latest block L' and index [cursor, L'].
      The block at the cursor is scanned again; the archive ignores repeats.
    - subscribe(): register the address and backfill
      [max(0, cursor - lookback), cursor] in a background task.
    - stop(): request the polling loop to exit after its current tick,
      then drain in-flight backfills.

    Failure policy:
    - a failed latest-block fetch skips the tick,
    - a failed block fetch skips that block only; the cursor still moves
      past it. Skipped blocks are remembered and retried at the start of the
      next tick when retry_skipped_blocks is enabled.

    The cursor only moves forward. Backfills scan ranges behind it and never
    pull it back.
    """

    def __init__(
        self,
        *,
        reader: BlockchainReader,
        registry: SubscriptionRegistry,
        archive: TransactionArchive,
        lookback: int = LOOKBACK_FROM_LATEST,
        poll_interval_seconds: float = POLL_INTERVAL_SECONDS,
        max_concurrent_backfills: int = 4,
        retry_skipped_blocks: bool = True,
        max_skipped_blocks: int = 1000,
    ) -> None:
        if lookback < 0:
            raise ValueError("lookback must be non-negative")
        if max_concurrent_backfills <= 0:
            raise ValueError("max_concurrent_backfills must be positive")

        self._reader = reader
        self._registry = registry
        self._archive = archive
        self._lookback = lookback
        self._poll_interval_seconds = poll_interval_seconds
        self._retry_skipped_blocks = retry_skipped_blocks
        self._max_skipped_blocks = max_skipped_blocks

        self._cursor_lock = threading.Lock()
        self._cursor = 0

        # insertion-ordered set of block numbers still owed a scan
        self._skipped_lock = threading.Lock()
        self._skipped_blocks: dict[int, None] = {}
        self._block_fetch_failures = 0

        self._initialized = False
        self._stopped = False
        self._stop_event = asyncio.Event()
        self._polling_task: asyncio.Task[None] | None = None
        self._backfill_tasks: set[asyncio.Task[None]] = set()
        self._backfill_semaphore = asyncio.Semaphore(max_concurrent_backfills)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        reader: BlockchainReader,
        registry: SubscriptionRegistry,
        archive: TransactionArchive,
    ) -> "IndexingEngine":
        return cls(
            reader=reader,
            registry=registry,
            archive=archive,
            lookback=settings.lookback_blocks,
            poll_interval_seconds=settings.poll_interval_seconds,
            max_concurrent_backfills=settings.max_concurrent_backfills,
            retry_skipped_blocks=settings.retry_skipped_blocks,
            max_skipped_blocks=settings.max_skipped_blocks,
        )

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #

    async def initialize(self) -> None:
        """Index the lookback window behind the chain head. Runs once."""
        if self._initialized:
            return
        try:
            latest_block = await self._reader.get_latest_block_number()
        except BlockchainReaderError as exc:
            raise EngineStartupError(f"Failed to get latest block: {exc}") from exc

        block_range = BlockRange.lookback(to_block=latest_block, lookback=self._lookback)
        logger.info(
            "Initial indexing of blocks %s..%s",
            block_range.from_block,
            block_range.to_block,
        )
        await self.index_range(block_range)
        self._initialized = True

    async def start(self) -> None:
        await self.initialize()
        self._polling_task = asyncio.create_task(
            self._poll_forever(),
            name="indexer-polling",
        )

    async def stop(self, *, grace_seconds: float | None = None) -> None:
        """
        Stop polling and drain backfills.

        The polling loop only looks at the stop signal between ticks, so a
        tick that is already indexing runs to completion. Backfills still
        running after grace_seconds are cancelled.
        """
        self._stop_event.set()
        if self._polling_task is not None:
            await self._polling_task
            self._polling_task = None

        if not await self.wait_for_backfills(timeout=grace_seconds):
            pending = list(self._backfill_tasks)
            logger.warning("Cancelling %s unfinished backfill(s)", len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        self._stopped = True
        logger.info("Indexing engine stopped at block %s", self.get_current_block())

    async def wait_for_backfills(self, *, timeout: float | None = None) -> bool:
        """Wait for backfills in flight right now. Returns False on timeout."""
        pending = set(self._backfill_tasks)
        if not pending:
            return True
        _, not_done = await asyncio.wait(pending, timeout=timeout)
        return not not_done

    async def _poll_forever(self) -> None:
        while not await self._wait_for_stop(self._poll_interval_seconds):
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Polling tick failed")
        logger.info("Stop requested. Polling loop shutting down.")

    async def _wait_for_stop(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------ #
    # indexing
    # ------------------------------------------------------------------ #

    async def poll_once(self) -> None:
        """One polling tick: a single latest-block attempt, then [cursor, latest]."""
        logger.info("Checking for new transactions")
        try:
            latest_block = await self._reader.get_latest_block_number()
        except BlockchainReaderError as exc:
            logger.error("Failed to get latest block: %s", exc)
            return

        if self._retry_skipped_blocks:
            await self._retry_skipped()

        block_range = BlockRange(from_block=self.get_current_block(), to_block=latest_block)
        if block_range.is_empty():
            logger.warning(
                "Chain head %s is behind cursor %s; nothing to index",
                latest_block,
                block_range.from_block,
            )
            return
        await self.index_range(block_range)

    async def index_range(self, block_range: BlockRange) -> None:
        """
        Scan every block of the range in order.

        A block whose transactions cannot be fetched is logged and skipped;
        the scan goes on with the next one. The cursor follows the scan
        whether or not the block succeeded.
        """
        block_range.validate()
        for block_number in block_range:
            await self._index_block(block_number)
            self._advance_cursor(block_number)

    async def _index_block(self, block_number: int) -> bool:
        logger.debug("Updating block %s", block_number)
        try:
            transactions = await self._reader.get_block_transactions(block_number)
        except BlockchainReaderError as exc:
            logger.error(
                "Failed to get transactions for block %s: %s",
                block_number,
                exc,
                extra={"block_number": block_number},
            )
            self._remember_skipped(block_number)
            return False

        saved = sum(1 for tx in transactions if self.filter_and_persist(tx))
        self._forget_skipped(block_number)
        logger.info(
            "Indexed block %s (txs %s, matched %s)",
            block_number,
            len(transactions),
            saved,
        )
        return True

    def filter_and_persist(self, tx: Transaction) -> bool:
        """Archive tx if its sender or recipient is subscribed right now."""
        if self._registry.check(tx.from_address) or self._registry.check(tx.to_address):
            self._archive.save_transaction(tx)
            return True
        return False

    def _advance_cursor(self, block_number: int) -> None:
        with self._cursor_lock:
            if block_number <= self._cursor:
                return
            self._cursor = block_number
            self._archive.save_block(block_number)

    # ------------------------------------------------------------------ #
    # skipped blocks
    # ------------------------------------------------------------------ #

    def _remember_skipped(self, block_number: int) -> None:
        with self._skipped_lock:
            self._block_fetch_failures += 1
            if not self._retry_skipped_blocks or self._max_skipped_blocks == 0:
                logger.warning("Block %s skipped and will not be retried", block_number)
                return
            self._skipped_blocks.pop(block_number, None)
            self._skipped_blocks[block_number] = None
            while len(self._skipped_blocks) > self._max_skipped_blocks:
                dropped = next(iter(self._skipped_blocks))
                del self._skipped_blocks[dropped]
                logger.warning(
                    "Skipped-block queue full; block %s will not be retried",
                    dropped,
                )

    def _forget_skipped(self, block_number: int) -> None:
        with self._skipped_lock:
            self._skipped_blocks.pop(block_number, None)

    async def _retry_skipped(self) -> None:
        with self._skipped_lock:
            owed = list(self._skipped_blocks)
        if not owed:
            return
        logger.info("Retrying %s skipped block(s)", len(owed))
        for block_number in owed:
            if await self._index_block(block_number):
                logger.info("Recovered skipped block %s", block_number)

    def skipped_blocks(self) -> list[int]:
        with self._skipped_lock:
            return sorted(self._skipped_blocks)

    # ------------------------------------------------------------------ #
    # subscriptions
    # ------------------------------------------------------------------ #

    def subscribe(self, address: str) -> bool:
        """
        Add an address if it has not already been added, returning True,
        and return False otherwise.

        A new subscription schedules a backfill over the lookback window
        behind the current cursor; the call does not wait for it. Must be
        called from within the running event loop.
        """
        if not self._registry.add(address):
            return False

        if self._stopped:
            logger.warning("Engine stopped; no backfill for %s", address)
            return True

        block_range = BlockRange.lookback(
            to_block=self.get_current_block(),
            lookback=self._lookback,
        )
        task = asyncio.get_running_loop().create_task(
            self._backfill(address, block_range),
            name=f"backfill-{address}",
        )
        self._backfill_tasks.add(task)
        task.add_done_callback(self._on_backfill_done)
        return True

    def unsubscribe(self, address: str) -> bool:
        """Remove an address if it has been added, returning True, and False otherwise."""
        return self._registry.remove(address)

    async def _backfill(self, address: str, block_range: BlockRange) -> None:
        async with self._backfill_semaphore:
            logger.info(
                "Backfilling blocks %s..%s for %s",
                block_range.from_block,
                block_range.to_block,
                address,
            )
            await self.index_range(block_range)
            logger.info("Backfill for %s finished", address)

    def _on_backfill_done(self, task: asyncio.Task[None]) -> None:
        self._backfill_tasks.discard(task)
        if task.cancelled():
            logger.warning("Backfill %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Backfill %s failed", task.get_name(), exc_info=exc)

    # ------------------------------------------------------------------ #
    # queries
    # ------------------------------------------------------------------ #

    def get_current_block(self) -> int:
        with self._cursor_lock:
            return self._cursor

    def get_transactions(self, address: str) -> list[NotificationTxn]:
        """
        Transactions seen for a subscribed address, in processing order.

        Unsubscribed addresses get an empty list even when history for them
        is still archived.
        """
        if not self._registry.check(address):
            return []
        return to_notification_txns(self._archive.get_transactions(address))

    @property
    def state(self) -> EngineState:
        if self._stopped:
            return EngineState.STOPPED
        if not self._initialized:
            return EngineState.INITIALIZING
        if self._backfill_tasks:
            return EngineState.BACKFILLING
        return EngineState.POLLING

    def status(self) -> dict[str, Any]:
        with self._skipped_lock:
            skipped = len(self._skipped_blocks)
            failures = self._block_fetch_failures
        return {
            "state": self.state.value,
            "current_block": self.get_current_block(),
            "backfills_in_flight": len(self._backfill_tasks),
            "skipped_blocks": skipped,
            "block_fetch_failures": failures,
            "subscriptions": len(self._registry),
        }
