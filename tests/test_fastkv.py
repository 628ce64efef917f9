"""
Tests for the FastKV storage adapter against an in-process HTTP server.
"""

from __future__ import annotations

from typing import AsyncGenerator, Dict

import aiohttp
import pytest
from aiohttp import test_utils, web

from privatekv import (
    EncryptedEntry,
    FastKVStorage,
    MockTrustAnchor,
    PrivateKV,
    SerializationError,
    StorageError,
)

ACCOUNT_ID = "alice.near"
CONTRACT_ID = "contextual.near"


class FakeFastKV:
    """Minimal FastKV API: set/delete by POST, get/query by GET."""

    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, object]] = {}
        self.tx_counter = 0
        self.unavailable = False

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/v1/kv/set", self.handle_set)
        app.router.add_post("/v1/kv/delete", self.handle_delete)
        app.router.add_get("/v1/kv/get", self.handle_get)
        app.router.add_get("/v1/kv/query", self.handle_query)
        return app

    def _tx(self) -> str:
        self.tx_counter += 1
        return f"tx-{self.tx_counter}"

    def _check(self, account_id: str, contract_id: str) -> None:
        if self.unavailable:
            raise web.HTTPServiceUnavailable(text="backend down")
        if account_id != ACCOUNT_ID or contract_id != CONTRACT_ID:
            raise web.HTTPBadRequest(text="wrong account or contract")

    async def handle_set(self, request: web.Request) -> web.Response:
        body = await request.json()
        self._check(body["accountId"], body["contractId"])
        self.rows[body["key"]] = {"value": body["value"], "isDeleted": False}
        return web.json_response({"txHash": self._tx()})

    async def handle_delete(self, request: web.Request) -> web.Response:
        body = await request.json()
        self._check(body["accountId"], body["contractId"])
        if body["key"] in self.rows:
            self.rows[body["key"]] = {"value": "", "isDeleted": True}
        return web.json_response({"txHash": self._tx()})

    async def handle_get(self, request: web.Request) -> web.Response:
        query = request.query
        self._check(query["accountId"], query["contractId"])
        row = self.rows.get(query["key"])
        return web.json_response({"data": row})

    async def handle_query(self, request: web.Request) -> web.Response:
        query = request.query
        self._check(query["accountId"], query["contractId"])
        prefix = query.get("key_prefix", "")
        keys = [
            {"key": key}
            for key, row in sorted(self.rows.items())
            if key.startswith(prefix) and not row["isDeleted"]
        ]
        return web.json_response({"data": keys, "meta": {"has_more": False}})


@pytest.fixture
def fake_fastkv() -> FakeFastKV:
    return FakeFastKV()


@pytest.fixture
async def fastkv_storage(fake_fastkv: FakeFastKV) -> AsyncGenerator[FastKVStorage, None]:
    server = test_utils.TestServer(fake_fastkv.app())
    await server.start_server()

    storage = FastKVStorage(str(server.make_url("/")), ACCOUNT_ID)
    yield storage

    await storage.close()
    await server.close()


def _entry(key_id: str = "k1") -> EncryptedEntry:
    return EncryptedEntry(wrapped_key="d3JhcHBlZA==", ciphertext="Y2lwaGVy", key_id=key_id)


async def test_set_get(fastkv_storage: FastKVStorage, fake_fastkv: FakeFastKV) -> None:
    receipt = await fastkv_storage.set("privatekv/alice.near/a", _entry())
    assert receipt.tx_hash == "tx-1"
    assert await fastkv_storage.get("privatekv/alice.near/a") == _entry()
    assert EncryptedEntry.from_json(fake_fastkv.rows["privatekv/alice.near/a"]["value"]) == _entry()


async def test_get_missing(fastkv_storage: FastKVStorage) -> None:
    assert await fastkv_storage.get("privatekv/alice.near/missing") is None


async def test_delete(fastkv_storage: FastKVStorage) -> None:
    await fastkv_storage.set("k", _entry())
    receipt = await fastkv_storage.delete("k")
    assert receipt.tx_hash == "tx-2"
    assert await fastkv_storage.get("k") is None
    assert await fastkv_storage.list() == []


async def test_list_prefix(fastkv_storage: FastKVStorage) -> None:
    for key in ["p/a", "p/b", "q/c"]:
        await fastkv_storage.set(key, _entry())
    assert await fastkv_storage.list("p/") == ["p/a", "p/b"]


async def test_error_status(fastkv_storage: FastKVStorage, fake_fastkv: FakeFastKV) -> None:
    fake_fastkv.unavailable = True
    with pytest.raises(StorageError, match="503"):
        await fastkv_storage.set("k", _entry())
    with pytest.raises(StorageError):
        await fastkv_storage.get("k")
    with pytest.raises(StorageError):
        await fastkv_storage.list()


async def test_corrupt_value(fastkv_storage: FastKVStorage, fake_fastkv: FakeFastKV) -> None:
    fake_fastkv.rows["k"] = {"value": "{not json", "isDeleted": False}
    with pytest.raises(SerializationError):
        await fastkv_storage.get("k")


async def test_transport_error_propagates() -> None:
    storage = FastKVStorage("http://127.0.0.1:1", ACCOUNT_ID, timeout=2.0)
    try:
        with pytest.raises(aiohttp.ClientError):
            await storage.get("k")
    finally:
        await storage.close()


async def test_client_round_trip(fastkv_storage: FastKVStorage) -> None:
    kv = PrivateKV(ACCOUNT_ID, storage=fastkv_storage, trust_anchor=MockTrustAnchor())
    await kv.set("password", "hello world")
    await kv.set("notes/todo", "buy milk")

    assert await kv.get("password") == "hello world"
    assert sorted(await kv.list()) == ["notes/todo", "password"]

    await kv.delete("password")
    assert await kv.get("password") is None
