"""
PrivateKV envelope encryption client.

This module provides:
- PrivateKV: Encrypted key-value client over pluggable storage, trust-anchor
  and crypto adapters

Write flow (``set``):
1. Generate a fresh per-value key locally
2. Encrypt the plaintext locally (AES-256-GCM)
3. Export the key and have the trust anchor wrap it under the group id
4. Store ``{wrapped_key, ciphertext, key_id, algorithm, v}``

Read flow (``get``) is the mirror image: load, unwrap, import, decrypt.

Boundaries:
- The trust anchor only sees exported keys and wrapped keys
- Storage only sees wrapped keys and ciphertext
- Plaintext never leaves the process

The storage write is the last step of ``set``, so a failure anywhere earlier
never persists a partial record. No step is retried.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from .crypto import CryptoProvider, default_crypto_provider
from .entry import ALGORITHM, FORMAT_VERSION, EncryptedEntry
from .errors import ConfigError
from .storage import StorageAdapter, WriteReceipt
from .trust_anchor import KeyIdLookup, TrustAnchorAdapter

if TYPE_CHECKING:
    from .config import PrivateKVSettings

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "privatekv"
DEFAULT_GROUP_SUFFIX = "private"


class PrivateKV:
    """
    Backend-agnostic end-to-end encrypted key-value client.

    Example:
        >>> kv = PrivateKV(
        ...     "alice.near",
        ...     storage=InMemoryStorage(),
        ...     trust_anchor=MockTrustAnchor(),
        ... )
        >>> await kv.set("password", "hello world")
        >>> await kv.get("password")
        'hello world'
    """

    def __init__(
        self,
        account_id: str,
        storage: StorageAdapter,
        trust_anchor: TrustAnchorAdapter,
        *,
        crypto: Optional[CryptoProvider] = None,
        namespace: str = DEFAULT_NAMESPACE,
        group_suffix: str = DEFAULT_GROUP_SUFFIX,
    ) -> None:
        """
        Initialize PrivateKV.

        Args:
            account_id: Account the values belong to
            storage: Storage adapter for encrypted entries
            trust_anchor: Trust anchor that wraps per-value keys
            crypto: Crypto provider (defaults to AesGcmProvider)
            namespace: Storage key namespace (default: "privatekv")
            group_suffix: Suffix of the wrapping group id (default: "private")

        Raises:
            ConfigError: If account_id, namespace or group_suffix is empty
        """
        for name, value in (
            ("account_id", account_id),
            ("namespace", namespace),
            ("group_suffix", group_suffix),
        ):
            if not value:
                raise ConfigError(f"{name} must not be empty")

        self._account_id = account_id
        self._namespace = namespace
        self._group_suffix = group_suffix
        self._storage = storage
        self._trust_anchor = trust_anchor
        self._crypto = crypto or default_crypto_provider()
        self._key_id_cache: Dict[str, str] = {}

    @classmethod
    def from_settings(
        cls,
        settings: PrivateKVSettings,
        storage: StorageAdapter,
        trust_anchor: TrustAnchorAdapter,
        crypto: Optional[CryptoProvider] = None,
    ) -> PrivateKV:
        """Create a client from loaded settings."""
        return cls(
            settings.account_id,
            storage,
            trust_anchor,
            crypto=crypto,
            namespace=settings.namespace,
            group_suffix=settings.group_suffix,
        )

    @property
    def account_id(self) -> str:
        return self._account_id

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def group_id(self) -> str:
        """Wrapping scope: ``{account_id}/{group_suffix}``."""
        return f"{self._account_id}/{self._group_suffix}"

    @property
    def key_prefix(self) -> str:
        """Storage prefix owned by this client: ``{namespace}/{account_id}/``."""
        return f"{self._namespace}/{self._account_id}/"

    def full_key(self, key: str) -> str:
        """Storage identity of a user key: ``{namespace}/{account_id}/{key}``."""
        return f"{self.key_prefix}{key}"

    async def set(self, key: str, plaintext: str) -> WriteReceipt:
        """
        Encrypt and store a value, replacing any previous value.

        Args:
            key: User key
            plaintext: Value to protect

        Returns:
            WriteReceipt from the storage adapter
        """
        group_id = self.group_id
        full_key = self.full_key(key)

        value_key = await self._crypto.generate_key()
        ciphertext = await self._crypto.encrypt(plaintext, value_key)
        exported = await self._crypto.export_key(value_key)

        wrapped = await self._trust_anchor.wrap_key(group_id, exported)
        self._key_id_cache.setdefault(group_id, wrapped.key_id)

        entry = EncryptedEntry(
            wrapped_key=wrapped.wrapped_key_b64,
            ciphertext=ciphertext,
            key_id=wrapped.key_id,
            algorithm=ALGORITHM,
            version=FORMAT_VERSION,
        )

        receipt = await self._storage.set(full_key, entry)
        logger.debug("Set %s (key id %s)", full_key, wrapped.key_id)
        return receipt

    async def get(self, key: str) -> Optional[str]:
        """
        Load and decrypt a value.

        Args:
            key: User key

        Returns:
            Plaintext, or None if the key was never written or was deleted

        Raises:
            GroupAuthorizationError: If the trust anchor refuses the unwrap
            DecryptionError: If the stored ciphertext fails authentication
        """
        group_id = self.group_id
        full_key = self.full_key(key)

        entry = await self._storage.get(full_key)
        if entry is None:
            logger.debug("Get %s: not found", full_key)
            return None

        unwrapped = await self._trust_anchor.unwrap_key(group_id, entry.wrapped_key)
        self._key_id_cache.setdefault(group_id, unwrapped.key_id)

        value_key = await self._crypto.import_key(unwrapped.plaintext_key_b64)
        return await self._crypto.decrypt(entry.ciphertext, value_key)

    async def delete(self, key: str) -> WriteReceipt:
        """Delete a value. No key material is involved."""
        return await self._storage.delete(self.full_key(key))

    async def list(self, prefix: str = "") -> List[str]:
        """
        List user keys starting with ``prefix``.

        Returned keys never include the internal ``{namespace}/{account_id}/``
        prefix, and keys outside it are dropped.
        """
        base = self.key_prefix
        keys = await self._storage.list(self.full_key(prefix))
        return [k[len(base):] for k in keys if k.startswith(base)]

    async def get_key_id(self) -> str:
        """
        Get the trust anchor's key id for this client's group.

        Uses the instance cache, then the adapter's direct lookup when it has
        one, and otherwise wraps a throwaway key just to learn the id.
        """
        group_id = self.group_id

        cached = self._key_id_cache.get(group_id)
        if cached is not None:
            return cached

        if isinstance(self._trust_anchor, KeyIdLookup):
            key_id = await self._trust_anchor.get_key_id(group_id)
        else:
            logger.debug("Trust anchor has no key id lookup; wrapping a throwaway key")
            throwaway = await self._crypto.generate_key()
            exported = await self._crypto.export_key(throwaway)
            wrapped = await self._trust_anchor.wrap_key(group_id, exported)
            key_id = wrapped.key_id

        self._key_id_cache[group_id] = key_id
        return key_id
