from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


INT64_MAX = 2**63 - 1


@dataclass(frozen=True)
class Transaction:
    """
    A transfer as read from the chain.

    Amounts and positions are plain Python ints, so values wider than
    64 bits (wei amounts routinely are) are carried without loss. The
    block number is the exception: blocks are addressed by signed 64-bit
    numbers at the reader boundary, so anything wider is rejected here.

    `to_address` is an empty string for contract-creation transactions.
    """

    from_address: str
    to_address: str
    hash: str
    value: int
    block_number: int
    transaction_index: int = 0

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(f"Transaction value must be non-negative: {self.value}")
        if self.transaction_index < 0:
            raise ValueError(
                f"Transaction index must be non-negative: {self.transaction_index}"
            )
        if not 0 <= self.block_number <= INT64_MAX:
            raise ValueError(
                f"Block number out of signed 64-bit range: {self.block_number}"
            )


class EngineState(str, Enum):
    INITIALIZING = "initializing"
    POLLING = "polling"
    BACKFILLING = "backfilling"
    STOPPED = "stopped"
