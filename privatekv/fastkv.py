"""
FastKV storage adapter.

Stores encrypted entries as JSON string values in FastKV, keyed by
``(accountId, contractId, key)``. The backend is fed by a blockchain indexer,
so a write may take a while to become visible to ``get`` and ``list``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .entry import EncryptedEntry
from .errors import StorageError
from .storage import StorageAdapter, WriteReceipt

logger = logging.getLogger(__name__)

DEFAULT_CONTRACT_ID = "contextual.near"


class FastKVStorage(StorageAdapter):
    """
    Storage adapter talking to the FastKV HTTP API.

    An ``aiohttp.ClientSession`` may be injected (custom auth headers,
    connection pooling, tests); otherwise one is created lazily and closed
    by ``close()``. Transport errors (``aiohttp.ClientError``) propagate
    unchanged; non-success responses raise StorageError.
    """

    def __init__(
        self,
        api_url: str,
        account_id: str,
        *,
        contract_id: str = DEFAULT_CONTRACT_ID,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Args:
            api_url: FastKV API base URL
            account_id: Account that owns the stored keys
            contract_id: Storage contract (default: contextual.near)
            session: Optional shared client session
            timeout: Total per-request timeout in seconds
        """
        self._api_url = api_url.rstrip("/")
        self._account_id = account_id
        self._contract_id = contract_id
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def __aenter__(self) -> FastKVStorage:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the client session if this adapter created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def _params(self, **extra: str) -> Dict[str, str]:
        return {"accountId": self._account_id, "contractId": self._contract_id, **extra}

    async def set(self, key: str, entry: EncryptedEntry) -> WriteReceipt:
        body = {**self._params(key=key), "value": entry.to_json()}
        data = await self._post("/v1/kv/set", body, operation="set")
        logger.debug("Stored %s (tx %s)", key, data.get("txHash"))
        return WriteReceipt(tx_hash=data.get("txHash"))

    async def get(self, key: str) -> Optional[EncryptedEntry]:
        session = self._get_session()
        params = self._params(key=key, fields="value,isDeleted")

        async with session.get(
            f"{self._api_url}/v1/kv/get", params=params, timeout=self._timeout
        ) as response:
            if response.status == 404:
                return None
            if not response.ok:
                raise await _status_error("get", response)
            payload = await response.json(content_type=None)

        record = (payload or {}).get("data")
        if not record or record.get("isDeleted") or not record.get("value"):
            return None

        return EncryptedEntry.from_json(record["value"])

    async def delete(self, key: str) -> WriteReceipt:
        data = await self._post("/v1/kv/delete", self._params(key=key), operation="delete")
        logger.debug("Deleted %s (tx %s)", key, data.get("txHash"))
        return WriteReceipt(tx_hash=data.get("txHash"))

    async def list(self, prefix: str = "") -> List[str]:
        session = self._get_session()
        params = self._params(key_prefix=prefix, exclude_deleted="true", fields="key")

        async with session.get(
            f"{self._api_url}/v1/kv/query", params=params, timeout=self._timeout
        ) as response:
            if not response.ok:
                raise await _status_error("query", response)
            payload = await response.json(content_type=None)

        return [row["key"] for row in (payload or {}).get("data") or [] if "key" in row]

    async def _post(self, path: str, body: Dict[str, Any], *, operation: str) -> Dict[str, Any]:
        session = self._get_session()

        async with session.post(
            f"{self._api_url}{path}", json=body, timeout=self._timeout
        ) as response:
            if not response.ok:
                raise await _status_error(operation, response)
            return await response.json(content_type=None) or {}


async def _status_error(operation: str, response: aiohttp.ClientResponse) -> StorageError:
    text = await response.text()
    logger.warning("FastKV %s failed with status %s", operation, response.status)
    return StorageError(f"FastKV {operation} failed ({response.status}): {text}")
