from __future__ import annotations

from typing import Callable, Dict

from web3 import AsyncHTTPProvider, AsyncWeb3

from address_indexer.app.config import Settings
from address_indexer.app.domain.ports.out import BlockchainReader
from address_indexer.app.infrastructure.readers.web3_blockchain_reader import (
    Web3BlockchainReader,
)

BlockchainReaderFactory = Callable[[Settings], BlockchainReader]

_BLOCKCHAIN_READER_REGISTRY: Dict[str, BlockchainReaderFactory] = {}


def _make_web3_reader(settings: Settings) -> BlockchainReader:
    """
    Wire dependencies for the web3 backend:
    - AsyncWeb3 HTTP provider pointed at RPC_URL, with the configured timeout
    - Web3BlockchainReader on top of it
    """
    w3 = AsyncWeb3(
        AsyncHTTPProvider(
            str(settings.rpc_url),
            request_kwargs={"timeout": settings.rpc_timeout_seconds},
        )
    )
    return Web3BlockchainReader(w3=w3)


# Register backends
_BLOCKCHAIN_READER_REGISTRY["web3"] = _make_web3_reader


def blockchain_reader_factory(
    *,
    backend: str,
    settings: Settings,
) -> BlockchainReader:
    try:
        factory = _BLOCKCHAIN_READER_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported blockchain reader backend: {backend!r}")

    return factory(settings)
