from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Query
from fastapi.responses import PlainTextResponse

from address_indexer.app.application.services.indexing_engine import IndexingEngine
from address_indexer.app.application.services.notifications import NotificationTxn

logger = logging.getLogger(__name__)


def _address_required() -> PlainTextResponse:
    return PlainTextResponse("Address is required", status_code=400)


def create_app(engine: IndexingEngine, *, title: str = "Address Indexer") -> FastAPI:
    """
    HTTP surface over an IndexingEngine.

    The engine's lifecycle is owned by the caller; the app only reads from
    it and forwards subscription changes.
    """
    app = FastAPI(title=title)

    @app.get("/currentBlock", response_class=PlainTextResponse)
    async def current_block() -> str:
        return str(engine.get_current_block())

    @app.post("/subscribe", response_class=PlainTextResponse)
    async def subscribe(address: Optional[str] = Query(default=None)) -> PlainTextResponse:
        if not address:
            return _address_required()
        if engine.subscribe(address):
            logger.info("Subscribed %s", address)
            return PlainTextResponse("Subscribed successfully")
        return PlainTextResponse("Address already subscribed", status_code=409)

    @app.delete("/subscribe", response_class=PlainTextResponse)
    async def unsubscribe(address: Optional[str] = Query(default=None)) -> PlainTextResponse:
        if not address:
            return _address_required()
        if engine.unsubscribe(address):
            logger.info("Unsubscribed %s", address)
            return PlainTextResponse("Unsubscribed successfully")
        return PlainTextResponse("Address not subscribed", status_code=404)

    @app.get("/transactions", response_model=list[NotificationTxn])
    async def transactions(address: Optional[str] = Query(default=None)) -> Any:
        if not address:
            return _address_required()
        return engine.get_transactions(address)

    @app.get("/status")
    async def status() -> dict[str, Any]:
        return engine.status()

    return app
