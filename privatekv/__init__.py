"""
PrivateKV

End-to-end encrypted key-value storage using envelope encryption: every value
gets a fresh AES-256-GCM key generated locally, that key is wrapped by a
remote trust anchor under a group id, and only the wrapped key plus the
ciphertext are handed to a pluggable storage backend.

Quick Start
-----------
```python
import asyncio
from privatekv import FastKVStorage, OutLayerTrustAnchor, PrivateKV

async def sign_transaction(tx):
    # Sign and submit with your wallet or keypair, return the JSON result
    ...

async def main():
    async with FastKVStorage("https://fastkv.example.com", "alice.near") as storage:
        kv = PrivateKV(
            "alice.near",
            storage=storage,
            trust_anchor=OutLayerTrustAnchor(sign_transaction),
        )

        await kv.set("password", "hello world")
        print(await kv.get("password"))

asyncio.run(main())
```

Key Features
------------
- **AES-256-GCM**: Authenticated encryption with a single-use key per value
- **Split trust**: Storage never sees keys, the trust anchor never sees data
- **Pluggable adapters**: Storage, trust anchor and crypto swap independently
- **Test doubles**: In-memory storage and a deterministic mock trust anchor
- **Memory Security**: Best-effort key zeroization on deletion

Modules
-------
- `client`: PrivateKV envelope encryption client
- `crypto`: AES-256-GCM primitives and crypto providers
- `entry`: Persisted record and inline value formats
- `storage`: Storage adapter interface and in-memory storage
- `fastkv`: FastKV HTTP storage adapter
- `postgres_storage`: PostgreSQL storage adapter
- `trust_anchor`: Trust-anchor adapter interface
- `outlayer`: OutLayer TEE trust-anchor adapter
- `testing`: Mock trust anchor for tests
- `config`: Environment-driven settings
- `polling`: Read-after-write polling helper
- `errors`: Error types and exception classes
"""

__version__ = "0.1.0"

# =============================================================================
# Crypto Exports
# =============================================================================

from .crypto import (
    AES_256_KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    AesGcmProvider,
    CryptoProvider,
    EncryptedData,
    SecureKey,
    StreamingAesGcmProvider,
    default_crypto_provider,
)

# =============================================================================
# Error Exports
# =============================================================================

from .errors import (
    ConfigError,
    CryptoError,
    DecryptionError,
    GroupAuthorizationError,
    InvalidKeyError,
    MalformedValueError,
    PrivateKVError,
    SerializationError,
    StorageError,
    TrustAnchorError,
)

# =============================================================================
# Record Format Exports
# =============================================================================

from .entry import (
    ALGORITHM,
    FORMAT_VERSION,
    EncryptedEntry,
    EncryptedValue,
    format_encrypted_value,
    is_encrypted_value,
    parse_encrypted_value,
)

# =============================================================================
# Adapter Exports
# =============================================================================

from .storage import InMemoryStorage, StorageAdapter, WriteReceipt
from .fastkv import FastKVStorage
from .postgres_storage import PostgresStorage
from .trust_anchor import KeyIdLookup, TrustAnchorAdapter, UnwrappedKey, WrappedKey
from .outlayer import OutLayerTrustAnchor, ResourceLimits
from .testing import MockTrustAnchor

# =============================================================================
# Client Exports (Primary API)
# =============================================================================

from .client import PrivateKV
from .config import PrivateKVSettings
from .polling import wait_for_value

# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Version
    "__version__",
    # Crypto
    "AES_256_KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "AesGcmProvider",
    "CryptoProvider",
    "EncryptedData",
    "SecureKey",
    "StreamingAesGcmProvider",
    "default_crypto_provider",
    # Errors
    "PrivateKVError",
    "CryptoError",
    "InvalidKeyError",
    "DecryptionError",
    "TrustAnchorError",
    "GroupAuthorizationError",
    "StorageError",
    "SerializationError",
    "MalformedValueError",
    "ConfigError",
    # Record formats
    "ALGORITHM",
    "FORMAT_VERSION",
    "EncryptedEntry",
    "EncryptedValue",
    "format_encrypted_value",
    "is_encrypted_value",
    "parse_encrypted_value",
    # Storage
    "StorageAdapter",
    "InMemoryStorage",
    "WriteReceipt",
    "FastKVStorage",
    "PostgresStorage",
    # Trust anchor
    "TrustAnchorAdapter",
    "KeyIdLookup",
    "WrappedKey",
    "UnwrappedKey",
    "OutLayerTrustAnchor",
    "ResourceLimits",
    "MockTrustAnchor",
    # Client (Primary API)
    "PrivateKV",
    "PrivateKVSettings",
    "wait_for_value",
]
