from __future__ import annotations

import logging
from typing import Any, Mapping

from web3 import AsyncWeb3

from address_indexer.app.domain.errors import BlockchainReaderError
from address_indexer.app.domain.models import Transaction
from address_indexer.app.domain.ports.out import BlockchainReader

logger = logging.getLogger(__name__)


class Web3BlockchainReader(BlockchainReader):
    """
    Blockchain reader using AsyncWeb3.

    Calls:
      - eth_blockNumber        -> get_latest_block_number()
      - eth_getBlockByNumber   -> get_block_transactions(n), full transactions

    Addresses are emitted lower-cased (the raw JSON-RPC form), so callers
    can match them as plain strings. Every failure, including a block the
    node does not know and a transaction that cannot be decoded, surfaces
    as BlockchainReaderError.
    """

    def __init__(self, *, w3: AsyncWeb3) -> None:
        self._w3 = w3

    async def get_latest_block_number(self) -> int:
        try:
            latest = await self._w3.eth.block_number
        except Exception as exc:
            raise BlockchainReaderError(f"eth_blockNumber call failed: {exc}") from exc
        return int(latest)

    async def get_block_transactions(self, block_number: int) -> list[Transaction]:
        try:
            block = await self._w3.eth.get_block(
                block_identifier=block_number,
                full_transactions=True,
            )
        except Exception as exc:
            raise BlockchainReaderError(
                f"eth_getBlockByNumber call failed for block {block_number}: {exc}"
            ) from exc

        try:
            return [self._to_transaction(tx) for tx in block["transactions"]]
        except (KeyError, TypeError, ValueError) as exc:
            raise BlockchainReaderError(
                f"Malformed transaction in block {block_number}: {exc}"
            ) from exc

    @staticmethod
    def _to_transaction(raw: Mapping[str, Any]) -> Transaction:
        if not isinstance(raw, Mapping):
            # node returned hashes only
            raise TypeError(f"expected a full transaction object, got {type(raw).__name__}")
        return Transaction(
            from_address=_normalize_address(raw["from"]),
            to_address=_normalize_address(raw.get("to")),
            hash=_to_hex(raw["hash"]),
            value=_to_int(raw.get("value")),
            block_number=_to_int(raw["blockNumber"]),
            transaction_index=_to_int(raw.get("transactionIndex")),
        )


def _normalize_address(value: Any) -> str:
    if value is None:
        return ""
    return str(value).lower()


def _to_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return AsyncWeb3.to_hex(value)
    return str(value)


def _to_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    s = str(value)
    if s.startswith("0x"):
        return int(s, 16) if len(s) > 2 else 0
    return int(s)
