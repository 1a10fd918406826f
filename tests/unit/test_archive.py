from address_indexer.app.domain.models import Transaction
from address_indexer.app.infrastructure.adapters.in_memory_archive import (
    InMemoryTransactionArchive,
)


def _tx(sender: str, recipient: str, tx_hash: str, block: int = 1) -> Transaction:
    return Transaction(
        from_address=sender,
        to_address=recipient,
        hash=tx_hash,
        value=1,
        block_number=block,
    )


def test_transfer_is_stored_under_sender_and_recipient():
    archive = InMemoryTransactionArchive()
    tx = _tx("0xa", "0xb", "0x01")

    archive.save_transaction(tx)

    assert archive.get_transactions("0xa") == [tx]
    assert archive.get_transactions("0xb") == [tx]


def test_unknown_address_returns_empty_list():
    assert InMemoryTransactionArchive().get_transactions("0xnope") == []


def test_self_transfer_is_stored_twice():
    archive = InMemoryTransactionArchive()
    tx = _tx("0xa", "0xa", "0x01")

    archive.save_transaction(tx)

    assert archive.get_transactions("0xa") == [tx, tx]


def test_saving_same_transaction_again_is_a_noop():
    archive = InMemoryTransactionArchive()
    tx = _tx("0xa", "0xa", "0x01")

    archive.save_transaction(tx)
    archive.save_transaction(tx)

    assert archive.get_transactions("0xa") == [tx, tx]


def test_insertion_order_is_kept():
    archive = InMemoryTransactionArchive()
    late = _tx("0xa", "0xb", "0x02", block=9)
    early = _tx("0xc", "0xa", "0x01", block=3)

    archive.save_transaction(late)
    archive.save_transaction(early)

    assert archive.get_transactions("0xa") == [late, early]


def test_contract_creation_has_no_recipient_entry():
    archive = InMemoryTransactionArchive()
    tx = _tx("0xa", "", "0x01")

    archive.save_transaction(tx)

    assert archive.get_transactions("0xa") == [tx]
    assert archive.get_transactions("") == []


def test_returned_list_is_a_snapshot():
    archive = InMemoryTransactionArchive()
    archive.save_transaction(_tx("0xa", "0xb", "0x01"))
    snapshot = archive.get_transactions("0xa")

    archive.save_transaction(_tx("0xa", "0xb", "0x02"))

    assert len(snapshot) == 1
    assert len(archive.get_transactions("0xa")) == 2


def test_block_marker_round_trips():
    archive = InMemoryTransactionArchive()
    assert archive.get_last_block() == 0

    archive.save_block(42)

    assert archive.get_last_block() == 42
