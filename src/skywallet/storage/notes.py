"""
Key/value note storage.

Notes are kept by the node's data API, keyed by transaction id. Writes are
idempotent overwrites, so a failed write can simply be retried.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

import httpx
from loguru import logger

from skywallet.constants import NOTE_STORE_RETRIES, NOTE_STORE_RETRY_DELAY
from skywallet.errors import TransientStorageError


class StorageKind(str, Enum):
    NOTES = "txid"
    CLIENT = "client"


class NoteStore(ABC):
    @abstractmethod
    async def get(self, kind: StorageKind, key: str | None = None) -> dict[str, str]:
        """Get the stored values; all of them when `key` is None"""

    @abstractmethod
    async def put(self, kind: StorageKind, key: str, value: str) -> None:
        """Store `value` under `key`, overwriting any previous value"""

    async def close(self) -> None:
        pass


async def put_with_retry(
    store: NoteStore,
    kind: StorageKind,
    key: str,
    value: str,
    attempts: int = NOTE_STORE_RETRIES,
    delay: float = NOTE_STORE_RETRY_DELAY,
) -> bool:
    """
    Store a value, retrying transient failures with a fixed delay.

    Returns False once all attempts failed; the failure is not raised.
    """
    for attempt in range(1, attempts + 1):
        try:
            await store.put(kind, key, value)
            return True
        except TransientStorageError as e:
            if attempt < attempts:
                logger.warning(
                    f"Storing {kind.value} {key} failed ({e}), retrying in {delay}s "
                    f"(attempt {attempt}/{attempts})"
                )
                await asyncio.sleep(delay)
            else:
                logger.warning(f"Storing {kind.value} {key} failed after {attempts} attempts: {e}")
    return False


class NodeNoteStore(NoteStore):
    """Note store backed by the node's /api/v2/data endpoint."""

    def __init__(
        self,
        node_url: str = "http://127.0.0.1:6420",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = f"{node_url.rstrip('/')}/api/v2/data"
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _request(self, method: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.request(method, self.url, **kwargs)
        except httpx.HTTPError as e:
            raise TransientStorageError(f"Note store unavailable: {e}") from e
        if response.is_error:
            raise TransientStorageError(
                f"Note store error {response.status_code}: {response.text.strip()}"
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise TransientStorageError(f"Note store returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise TransientStorageError(
                f"Note store returned unexpected payload: {type(payload).__name__}"
            )
        return payload.get("data")

    async def get(self, kind: StorageKind, key: str | None = None) -> dict[str, str]:
        params = {"type": kind.value}
        if key is not None:
            params["key"] = key
        data = await self._request("GET", params=params)
        if key is not None:
            return {key: data} if data else {}
        if data and not isinstance(data, dict):
            raise TransientStorageError(f"Note store returned unexpected data: {data!r}")
        return dict(data or {})

    async def put(self, kind: StorageKind, key: str, value: str) -> None:
        await self._request("POST", json={"type": kind.value, "key": key, "val": value})

    async def close(self) -> None:
        await self.client.aclose()
