"""
Trust-anchor abstractions.

The trust anchor wraps and unwraps per-value keys under a group identifier.
It only ever receives exported keys (to wrap) and wrapped keys (to unwrap),
never ciphertext or plaintext values.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class WrappedKey:
    """Result of a wrap: the protected key and the group's key id."""

    wrapped_key_b64: str
    key_id: str


@dataclass(frozen=True)
class UnwrappedKey:
    """Result of an unwrap. ``plaintext_key_b64`` is kept out of repr."""

    plaintext_key_b64: str = field(repr=False)
    key_id: str


class TrustAnchorAdapter(ABC):
    """
    Abstract trust-anchor interface.

    Implementations must never log or persist ``plaintext_key_b64``.
    Authorization failures are raised, not retried.
    """

    @abstractmethod
    async def wrap_key(self, group_id: str, plaintext_key_b64: str) -> WrappedKey:
        """Wrap an exported key under the group's policy."""
        ...

    @abstractmethod
    async def unwrap_key(self, group_id: str, wrapped_key_b64: str) -> UnwrappedKey:
        """Recover an exported key previously wrapped for the same group."""
        ...


@runtime_checkable
class KeyIdLookup(Protocol):
    """Optional capability: look up a group's key id without wrapping."""

    async def get_key_id(self, group_id: str) -> str:
        ...
