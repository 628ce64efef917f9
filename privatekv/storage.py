"""
Storage abstractions for encrypted entries.

This module provides:
- StorageAdapter: Abstract interface for entry storage backends
- InMemoryStorage: Coroutine-safe in-memory implementation for testing
- WriteReceipt: Opaque acknowledgement returned by writes

Storage adapters only ever see ``EncryptedEntry`` records; they never receive
a plaintext value or an unwrapped key.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from .entry import EncryptedEntry


@dataclass(frozen=True)
class WriteReceipt:
    """Write acknowledgement; ``tx_hash`` is set when the backend provides one."""

    tx_hash: Optional[str] = None


class StorageAdapter(ABC):
    """
    Abstract storage interface for encrypted entries.

    All methods are async to support both in-memory and networked backends.
    Backends may be eventually consistent; callers that need read-after-write
    visibility poll at their own boundary.
    """

    @abstractmethod
    async def set(self, key: str, entry: EncryptedEntry) -> WriteReceipt:
        """Store an entry, replacing any previous value."""
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[EncryptedEntry]:
        """Get an entry by key, or None if absent."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> WriteReceipt:
        """Delete (or mark deleted) an entry."""
        ...

    @abstractmethod
    async def list(self, prefix: str = "") -> List[str]:
        """List keys starting with ``prefix``. Ordering is backend-defined."""
        ...


class InMemoryStorage(StorageAdapter):
    """
    In-memory storage implementation for testing.

    Uses asyncio.Lock for safe concurrent access. Entries are copied on the
    way in and out, so mutating a returned entry does not touch the stored
    record (matching the serializing backends).
    """

    def __init__(self) -> None:
        self._entries: Dict[str, EncryptedEntry] = {}
        self._lock = asyncio.Lock()

    async def set(self, key: str, entry: EncryptedEntry) -> WriteReceipt:
        async with self._lock:
            self._entries[key] = replace(entry)
        return WriteReceipt()

    async def get(self, key: str) -> Optional[EncryptedEntry]:
        async with self._lock:
            entry = self._entries.get(key)
        return replace(entry) if entry is not None else None

    async def delete(self, key: str) -> WriteReceipt:
        async with self._lock:
            self._entries.pop(key, None)
        return WriteReceipt()

    async def list(self, prefix: str = "") -> List[str]:
        """List keys in sorted order."""
        async with self._lock:
            return sorted(k for k in self._entries if k.startswith(prefix))

    def clear(self) -> None:
        """Remove all stored entries."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
