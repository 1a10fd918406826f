from __future__ import annotations


class BlockchainReaderError(RuntimeError):
    """
    Raised by BlockchainReader implementations for any failure at the
    reader boundary: transport errors, RPC error payloads, missing blocks
    and malformed responses alike.
    """


class EngineStartupError(RuntimeError):
    """The engine could not fetch its first latest-block number."""
