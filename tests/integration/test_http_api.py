"""Integration tests for the HTTP surface over a live engine."""

import httpx
import pytest
import pytest_asyncio

from address_indexer.app.interface.http.api import create_app


@pytest_asyncio.fixture
async def client(engine):
    await engine.initialize()
    transport = httpx.ASGITransport(app=create_app(engine))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await engine.wait_for_backfills()


class TestHttpApi:
    @pytest.mark.asyncio
    async def test_current_block_is_plain_decimal(self, client):
        resp = await client.get("/currentBlock")

        assert resp.status_code == 200
        assert resp.text == "2"

    @pytest.mark.asyncio
    async def test_subscribe_flow(self, client, engine):
        resp = await client.get("/transactions", params={"address": "0x1234"})
        assert resp.status_code == 200
        assert resp.json() == []

        resp = await client.post("/subscribe", params={"address": "0x1234"})
        assert resp.status_code == 200
        assert resp.text == "Subscribed successfully"
        await engine.wait_for_backfills()

        resp = await client.get("/transactions", params={"address": "0x1234"})
        assert resp.status_code == 200
        assert resp.json() == [
            {"from": "0x1234", "to": "0x5678", "value": "100", "hash": "0xabcd", "block": 1},
            {"from": "0x5678", "to": "0x1234", "value": "200", "hash": "0xefgh", "block": 2},
        ]

        resp = await client.delete("/subscribe", params={"address": "0x1234"})
        assert resp.status_code == 200
        assert resp.text == "Unsubscribed successfully"

        resp = await client.get("/transactions", params={"address": "0x1234"})
        assert resp.json() == []

    @pytest.mark.asyncio
    async def test_duplicate_subscribe_conflicts(self, client):
        await client.post("/subscribe", params={"address": "0x1234"})

        resp = await client.post("/subscribe", params={"address": "0x1234"})

        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown_address_is_not_found(self, client):
        resp = await client.delete("/subscribe", params={"address": "0x1234"})

        assert resp.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["POST", "DELETE"])
    async def test_subscribe_requires_address(self, client, method):
        resp = await client.request(method, "/subscribe")

        assert resp.status_code == 400
        assert resp.text == "Address is required"

    @pytest.mark.asyncio
    async def test_transactions_require_address(self, client):
        resp = await client.get("/transactions", params={"address": ""})

        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_other_methods_are_not_allowed(self, client):
        resp = await client.put("/subscribe", params={"address": "0x1234"})

        assert resp.status_code == 405

    @pytest.mark.asyncio
    async def test_status_snapshot(self, client):
        resp = await client.get("/status")

        assert resp.status_code == 200
        body = resp.json()
        assert body["state"] == "polling"
        assert body["current_block"] == 2
        assert body["subscriptions"] == 0

    @pytest.mark.asyncio
    async def test_indexing_failures_do_not_leak(self, client, engine, reader):
        reader.failing_blocks.add(2)
        reader.latest_block = 3
        await engine.poll_once()

        resp = await client.get("/currentBlock")

        assert resp.text == "3"
