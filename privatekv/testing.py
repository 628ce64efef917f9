"""
Deterministic trust-anchor double for tests.

NOT SECURE: the "wrapped" key is a reversible encoding of the plaintext key.
Use InMemoryStorage from ``privatekv.storage`` as the matching storage double.
"""

from __future__ import annotations

import base64
from collections import Counter
from typing import Dict, Iterable, Optional, Tuple

from .errors import GroupAuthorizationError, TrustAnchorError
from .trust_anchor import TrustAnchorAdapter, UnwrappedKey, WrappedKey


class MockTrustAnchor(TrustAnchorAdapter):
    """
    In-process stand-in for a remote trust anchor.

    Each group gets a stable key id (``mock-key-1``, ``mock-key-2``, ...) in
    order of first use. Unwrapping enforces that the wrapped key was produced
    for the same group.
    """

    def __init__(self, deny_groups: Optional[Iterable[str]] = None) -> None:
        """
        Args:
            deny_groups: Group ids for which every call fails with
                GroupAuthorizationError
        """
        self._wrapped: Dict[str, Tuple[str, str]] = {}
        self._group_key_ids: Dict[str, str] = {}
        self.deny_groups = set(deny_groups or ())
        self.calls: Counter = Counter()

    async def wrap_key(self, group_id: str, plaintext_key_b64: str) -> WrappedKey:
        self.calls["wrap_key"] += 1
        self._authorize(group_id)

        key_id = self._key_id_for(group_id)
        marker = f"wrapped:{plaintext_key_b64}:{group_id}:{key_id}"
        wrapped = base64.standard_b64encode(marker.encode("utf-8")).decode("ascii")

        self._wrapped[wrapped] = (plaintext_key_b64, group_id)
        return WrappedKey(wrapped_key_b64=wrapped, key_id=key_id)

    async def unwrap_key(self, group_id: str, wrapped_key_b64: str) -> UnwrappedKey:
        self.calls["unwrap_key"] += 1
        self._authorize(group_id)

        try:
            plaintext_key_b64, wrapped_for = self._wrapped[wrapped_key_b64]
        except KeyError:
            raise TrustAnchorError("Wrapped key not recognized") from None

        if wrapped_for != group_id:
            raise GroupAuthorizationError(
                f"Wrapped key does not belong to group {group_id}"
            )

        return UnwrappedKey(
            plaintext_key_b64=plaintext_key_b64,
            key_id=self._group_key_ids[group_id],
        )

    async def get_key_id(self, group_id: str) -> str:
        self.calls["get_key_id"] += 1
        self._authorize(group_id)
        return self._key_id_for(group_id)

    def _authorize(self, group_id: str) -> None:
        if group_id in self.deny_groups:
            raise GroupAuthorizationError(f"Not a group member: {group_id}")

    def _key_id_for(self, group_id: str) -> str:
        if group_id not in self._group_key_ids:
            self._group_key_ids[group_id] = f"mock-key-{len(self._group_key_ids) + 1}"
        return self._group_key_ids[group_id]


class WrapOnlyTrustAnchor(TrustAnchorAdapter):
    """
    Delegating double without the optional ``get_key_id`` capability.

    Exercises the coordinator's throwaway-wrap fallback for key id lookups.
    """

    def __init__(self, inner: Optional[MockTrustAnchor] = None) -> None:
        self.inner = inner or MockTrustAnchor()

    async def wrap_key(self, group_id: str, plaintext_key_b64: str) -> WrappedKey:
        return await self.inner.wrap_key(group_id, plaintext_key_b64)

    async def unwrap_key(self, group_id: str, wrapped_key_b64: str) -> UnwrappedKey:
        return await self.inner.unwrap_key(group_id, wrapped_key_b64)
