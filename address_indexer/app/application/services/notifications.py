from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field

from address_indexer.app.domain.models import INT64_MAX, Transaction


class NotificationTxn(BaseModel):
    """
    Wire record read by notification consumers.

    Serialises as {"from", "to", "value", "hash", "block"}; `value` is the
    decimal rendering of the on-chain amount.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_address: str = Field(alias="from")
    to_address: str = Field(alias="to")
    value: str
    hash: str
    block: int


def to_notification_txn(tx: Transaction) -> NotificationTxn:
    if not 0 <= tx.block_number <= INT64_MAX:
        raise OverflowError(
            f"Block number {tx.block_number} does not fit a signed 64-bit wire field"
        )
    return NotificationTxn(
        from_address=tx.from_address,
        to_address=tx.to_address,
        value=str(tx.value),
        hash=tx.hash,
        block=tx.block_number,
    )


def to_notification_txns(txs: Iterable[Transaction]) -> list[NotificationTxn]:
    return [to_notification_txn(tx) for tx in txs]
