"""
Exception classes for PrivateKV operations.

A missing key is never an exception: ``PrivateKV.get`` returns ``None``.
Everything else that can go wrong falls under ``PrivateKVError``.
"""

from __future__ import annotations


class PrivateKVError(Exception):
    """Base exception for all PrivateKV operations."""

    pass


class CryptoError(PrivateKVError):
    """Cryptographic operation failed (key generation, encryption, decoding)."""

    pass


class InvalidKeyError(CryptoError):
    """Exported key material is malformed or has the wrong length."""

    pass


class DecryptionError(CryptoError):
    """Authentication tag did not verify (tampered data or wrong key)."""

    pass


class TrustAnchorError(PrivateKVError):
    """Trust anchor rejected the request or returned an unusable response."""

    pass


class GroupAuthorizationError(TrustAnchorError):
    """Caller is not authorized for the group, or the key belongs to another group."""

    pass


class StorageError(PrivateKVError):
    """Storage backend error (HTTP, database, in-memory, etc.)."""

    pass


class SerializationError(PrivateKVError):
    """Serialization or deserialization error."""

    pass


class MalformedValueError(SerializationError):
    """Inline encrypted value does not match ``enc:AES256:<key_id>:<ciphertext>``."""

    pass


class ConfigError(PrivateKVError):
    """Configuration error."""

    pass
