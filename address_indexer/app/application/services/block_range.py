from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    @classmethod
    def lookback(cls, *, to_block: int, lookback: int) -> "BlockRange":
        """Range ending at to_block and reaching back `lookback` blocks, clamped at genesis."""
        return cls(from_block=max(0, to_block - lookback), to_block=to_block)

    def validate(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError("from_block must be <= to_block")

    def is_empty(self) -> bool:
        return self.from_block > self.to_block

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.from_block, self.to_block + 1))
