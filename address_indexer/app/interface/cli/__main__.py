import asyncio
import contextlib
import logging
import signal
from typing import Iterator

import typer
import uvicorn
from dotenv import load_dotenv

from address_indexer.app.config import settings
from address_indexer.app.domain.errors import BlockchainReaderError, EngineStartupError
from address_indexer.app.application.services.indexing_engine import IndexingEngine
from address_indexer.app.infrastructure.adapters.in_memory_archive import (
    InMemoryTransactionArchive,
)
from address_indexer.app.infrastructure.adapters.in_memory_subscriptions import (
    InMemorySubscriptionRegistry,
)
from address_indexer.app.infrastructure.factories.blockchain_reader_factory import (
    blockchain_reader_factory,
)
from address_indexer.app.interface.http.api import create_app


load_dotenv()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)

app = typer.Typer()
indexer_app = typer.Typer(help="cli for indexing transactions of watched addresses.")
app.add_typer(indexer_app, name="indexer")

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class _IndexerServer(uvicorn.Server):
    """
    uvicorn server whose SIGINT/SIGTERM handling ends at should_exit.

    Stock uvicorn re-raises the captured signal once serve() returns, which
    under SIGTERM kills the process before the engine is stopped.
    """

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        loop = asyncio.get_running_loop()
        for sig in _SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self.handle_exit, sig, None)
        try:
            yield
        finally:
            for sig in _SHUTDOWN_SIGNALS:
                loop.remove_signal_handler(sig)


async def _serve(host: str, port: int) -> None:
    reader = blockchain_reader_factory(backend=settings.reader_backend, settings=settings)
    engine = IndexingEngine.from_settings(
        settings,
        reader=reader,
        registry=InMemorySubscriptionRegistry(),
        archive=InMemoryTransactionArchive(),
    )

    # Nothing is served until the initial window has been indexed.
    await engine.start()

    server = _IndexerServer(
        uvicorn.Config(
            create_app(engine, title=settings.project_name),
            host=host,
            port=port,
            timeout_graceful_shutdown=int(settings.shutdown_grace_seconds),
            log_config=None,
        )
    )
    try:
        await server.serve()
    finally:
        logger.info("Server is shutting down...")
        await engine.stop(grace_seconds=settings.shutdown_grace_seconds)
        logger.info("Server exiting")


@indexer_app.command("serve")
def serve(
    host: str = typer.Option(settings.http_host, help="Interface to bind."),
    port: int = typer.Option(settings.http_port, help="Port to listen on."),
) -> None:
    """Index watched addresses and serve the HTTP API until SIGINT/SIGTERM."""
    try:
        asyncio.run(_serve(host, port))
    except EngineStartupError as exc:
        logger.error("Indexer failed to start: %s", exc)
        raise typer.Exit(code=1)


@indexer_app.command("latest-block")
def latest_block() -> None:
    """Print the chain head as seen by the configured reader."""
    reader = blockchain_reader_factory(backend=settings.reader_backend, settings=settings)
    try:
        block_number = asyncio.run(reader.get_latest_block_number())
    except BlockchainReaderError as exc:
        logger.error("Failed to get latest block: %s", exc)
        raise typer.Exit(code=1)
    typer.echo(block_number)


if __name__ == "__main__":
    app()
