"""
Cryptographic primitives for AES-256-GCM envelope encryption.

This module provides:
- SecureKey: Secure key wrapper with automatic zeroization
- EncryptedData: Encrypted payload with nonce and ciphertext
- CryptoProvider: Abstract per-value key and payload encryption interface
- AesGcmProvider: One-shot AEAD implementation
- StreamingAesGcmProvider: Incremental cipher implementation with explicit tag

Wire format shared by both providers:

    base64( nonce (12 bytes) || ciphertext || tag (16 bytes) )

A payload encrypted by either provider decrypts with the other given the same
exported key.
"""

from __future__ import annotations

import base64
import binascii
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import CryptoError, DecryptionError, InvalidKeyError

# Cryptographic constants
AES_256_KEY_SIZE: int = 32  # 256 bits
NONCE_SIZE: int = 12  # 96 bits (standard for AES-GCM)
TAG_SIZE: int = 16  # 128 bits (authentication tag)


class SecureKey:
    """
    Secure key wrapper with automatic memory cleanup on deletion.

    Uses bytearray internally for mutable zeroing in __del__.
    Note: Python's garbage collector doesn't guarantee immediate cleanup,
    so this is best-effort zeroization.
    """

    __slots__ = ("_bytes",)

    def __init__(self, key_bytes: bytes | bytearray) -> None:
        if not isinstance(key_bytes, (bytes, bytearray)):
            raise CryptoError("Key must be bytes or bytearray")
        self._bytes = bytearray(key_bytes)

    @classmethod
    def generate(cls) -> SecureKey:
        """Generate a cryptographically secure random 32-byte key."""
        try:
            return cls(secrets.token_bytes(AES_256_KEY_SIZE))
        except OSError as e:
            raise CryptoError(f"Entropy source unavailable: {e}") from e

    def as_bytes(self) -> bytes:
        """Return key as immutable bytes."""
        return bytes(self._bytes)

    def __len__(self) -> int:
        return len(self._bytes)

    def __repr__(self) -> str:
        """Redacted representation to prevent accidental key disclosure."""
        return "SecureKey([REDACTED])"

    def __del__(self) -> None:
        """Zero memory on deletion (best-effort)."""
        if hasattr(self, "_bytes"):
            for i in range(len(self._bytes)):
                self._bytes[i] = 0


@dataclass
class EncryptedData:
    """
    Encrypted data container with nonce and ciphertext.

    The ciphertext includes the 16-byte authentication tag as its suffix.
    """

    nonce: bytes  # 12 bytes
    ciphertext: bytes  # Ciphertext + 16-byte auth tag

    @property
    def body(self) -> bytes:
        """Ciphertext without the authentication tag."""
        return self.ciphertext[:-TAG_SIZE]

    @property
    def tag(self) -> bytes:
        """Trailing 16-byte authentication tag."""
        return self.ciphertext[-TAG_SIZE:]

    def to_aead_blob(self) -> bytes:
        """Convert to AEAD blob format: nonce || ciphertext || tag."""
        return self.nonce + self.ciphertext

    @classmethod
    def from_aead_blob(cls, blob: bytes) -> EncryptedData:
        """
        Parse from AEAD blob format: nonce || ciphertext || tag.

        Raises:
            CryptoError: If blob is too small
        """
        min_size = NONCE_SIZE + TAG_SIZE
        if len(blob) < min_size:
            raise CryptoError(
                f"AEAD blob too small: expected at least {min_size} bytes, got {len(blob)}"
            )
        return cls(nonce=blob[:NONCE_SIZE], ciphertext=blob[NONCE_SIZE:])

    def to_base64(self) -> str:
        """Encode as base64 string."""
        return base64.standard_b64encode(self.to_aead_blob()).decode("ascii")

    @classmethod
    def from_base64(cls, encoded: str) -> EncryptedData:
        """
        Decode from base64 string.

        Only the canonical encoding produced by ``to_base64`` is accepted, so
        flipping the unused trailing bits of the last character is rejected.

        Raises:
            CryptoError: If decoding fails, the encoding is not canonical,
                or data is too short
        """
        try:
            decoded = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError(f"Base64 decode error: {e}") from e
        if base64.standard_b64encode(decoded).decode("ascii") != encoded:
            raise CryptoError("Base64 decode error: non-canonical encoding")
        return cls.from_aead_blob(decoded)


def _check_key(key: SecureKey) -> None:
    if len(key) != AES_256_KEY_SIZE:
        raise CryptoError(
            f"Invalid key size: expected {AES_256_KEY_SIZE}, got {len(key)}"
        )


def _encode_key(key: SecureKey) -> str:
    _check_key(key)
    return base64.standard_b64encode(key.as_bytes()).decode("ascii")


def _decode_key(key_b64: str) -> SecureKey:
    try:
        raw = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidKeyError(f"Key is not valid base64: {e}") from e
    if len(raw) != AES_256_KEY_SIZE:
        raise InvalidKeyError(
            f"Invalid key size: expected {AES_256_KEY_SIZE}, got {len(raw)}"
        )
    return SecureKey(raw)


def _load_payload(encoded: str) -> EncryptedData:
    # Undecodable or truncated payloads count as tampered
    try:
        return EncryptedData.from_base64(encoded)
    except CryptoError:
        raise DecryptionError("Decryption failed") from None


def _utf8_encode(plaintext: str) -> bytes:
    try:
        return plaintext.encode("utf-8")
    except UnicodeEncodeError as e:
        raise CryptoError(f"Plaintext is not encodable as UTF-8: {e}") from e


def _utf8_decode(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CryptoError(f"Decrypted payload is not valid UTF-8: {e}") from e


class CryptoProvider(ABC):
    """
    Per-value key generation and authenticated payload encryption.

    All methods are async so that providers backed by a remote or hardware
    source fit the same interface. A key handle must never be used for more
    than one ``encrypt`` call.
    """

    async def generate_key(self) -> SecureKey:
        """Generate a fresh 256-bit key."""
        return SecureKey.generate()

    async def export_key(self, key: SecureKey) -> str:
        """Serialize raw key material as base64. The result is plaintext-equivalent."""
        return _encode_key(key)

    async def import_key(self, key_b64: str) -> SecureKey:
        """Inverse of ``export_key``; raises InvalidKeyError on malformed input."""
        return _decode_key(key_b64)

    @abstractmethod
    async def encrypt(self, plaintext: str, key: SecureKey) -> str:
        """Encrypt and return base64(nonce || ciphertext || tag)."""
        ...

    @abstractmethod
    async def decrypt(self, encoded: str, key: SecureKey) -> str:
        """Verify and decrypt; raises DecryptionError on a malformed payload or bad tag."""
        ...


class AesGcmProvider(CryptoProvider):
    """
    AES-256-GCM through the one-shot AEAD interface.

    The tag is appended to the ciphertext by ``AESGCM`` itself.
    """

    async def encrypt(self, plaintext: str, key: SecureKey) -> str:
        _check_key(key)
        nonce = secrets.token_bytes(NONCE_SIZE)
        aesgcm = AESGCM(key.as_bytes())

        try:
            ciphertext = aesgcm.encrypt(nonce, _utf8_encode(plaintext), None)
        except OverflowError as e:
            raise CryptoError(f"Encryption error: {e}") from e

        return EncryptedData(nonce=nonce, ciphertext=ciphertext).to_base64()

    async def decrypt(self, encoded: str, key: SecureKey) -> str:
        _check_key(key)
        encrypted = _load_payload(encoded)
        aesgcm = AESGCM(key.as_bytes())

        try:
            plaintext = aesgcm.decrypt(encrypted.nonce, encrypted.ciphertext, None)
        except InvalidTag:
            # Generic error to prevent oracle attacks
            raise DecryptionError("Decryption failed") from None

        return _utf8_decode(plaintext)


class StreamingAesGcmProvider(CryptoProvider):
    """
    AES-256-GCM through the incremental cipher interface.

    Produces the ciphertext and tag separately and concatenates them, then
    splits the tag off again before verification.
    """

    async def encrypt(self, plaintext: str, key: SecureKey) -> str:
        _check_key(key)
        nonce = secrets.token_bytes(NONCE_SIZE)
        encryptor = Cipher(algorithms.AES(key.as_bytes()), modes.GCM(nonce)).encryptor()

        body = encryptor.update(_utf8_encode(plaintext)) + encryptor.finalize()

        return EncryptedData(nonce=nonce, ciphertext=body + encryptor.tag).to_base64()

    async def decrypt(self, encoded: str, key: SecureKey) -> str:
        _check_key(key)
        encrypted = _load_payload(encoded)
        decryptor = Cipher(
            algorithms.AES(key.as_bytes()),
            modes.GCM(encrypted.nonce, encrypted.tag),
        ).decryptor()

        try:
            plaintext = decryptor.update(encrypted.body) + decryptor.finalize()
        except InvalidTag:
            raise DecryptionError("Decryption failed") from None

        return _utf8_decode(plaintext)


def default_crypto_provider() -> CryptoProvider:
    """Return the provider used when none is configured."""
    return AesGcmProvider()
