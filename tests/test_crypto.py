"""
Tests for AES-256-GCM primitives and crypto providers.
"""

from __future__ import annotations

import base64

import pytest

from privatekv import (
    AES_256_KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    AesGcmProvider,
    CryptoError,
    DecryptionError,
    EncryptedData,
    InvalidKeyError,
    SecureKey,
    StreamingAesGcmProvider,
)

PROVIDERS = [AesGcmProvider, StreamingAesGcmProvider]


@pytest.fixture(params=PROVIDERS, ids=lambda cls: cls.__name__)
def provider(request):
    return request.param()


def _flip_bit(encoded: str, index: int) -> str:
    blob = bytearray(base64.b64decode(encoded))
    blob[index] ^= 0x01
    return base64.b64encode(bytes(blob)).decode("ascii")


def _flip_unused_bit(encoded: str) -> str:
    """Change the padding bits of the last base64 character; the bytes decode the same."""
    body = encoded.rstrip("=")
    alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
    last = alphabet[alphabet.index(body[-1]) ^ 1]
    return body[:-1] + last + encoded[len(body):]


class TestSecureKey:
    def test_generate_is_32_random_bytes(self) -> None:
        a = SecureKey.generate()
        b = SecureKey.generate()
        assert len(a) == AES_256_KEY_SIZE
        assert a.as_bytes() != b.as_bytes()

    def test_repr_is_redacted(self) -> None:
        key = SecureKey(b"k" * 32)
        assert "k" * 8 not in repr(key)
        assert repr(key) == "SecureKey([REDACTED])"

    def test_rejects_non_bytes(self) -> None:
        with pytest.raises(CryptoError):
            SecureKey("not-bytes")  # type: ignore[arg-type]


class TestEncryptedData:
    def test_base64_layout(self) -> None:
        data = EncryptedData(nonce=b"n" * NONCE_SIZE, ciphertext=b"c" * 5 + b"t" * TAG_SIZE)
        decoded = EncryptedData.from_base64(data.to_base64())
        assert decoded.nonce == b"n" * NONCE_SIZE
        assert decoded.body == b"c" * 5
        assert decoded.tag == b"t" * TAG_SIZE

    def test_too_short_blob_rejected(self) -> None:
        short = base64.b64encode(b"x" * (NONCE_SIZE + TAG_SIZE - 1)).decode("ascii")
        with pytest.raises(CryptoError):
            EncryptedData.from_base64(short)

    def test_invalid_base64_rejected(self) -> None:
        with pytest.raises(CryptoError):
            EncryptedData.from_base64("not base64!!")

    def test_non_canonical_base64_rejected(self) -> None:
        # 38-byte blob: the final character carries two unused bits
        data = EncryptedData(nonce=b"n" * NONCE_SIZE, ciphertext=b"c" * 10 + b"t" * TAG_SIZE)
        encoded = data.to_base64()
        assert encoded.endswith("=") and not encoded.endswith("==")
        altered = _flip_unused_bit(encoded)
        assert base64.b64decode(altered) == base64.b64decode(encoded)
        with pytest.raises(CryptoError):
            EncryptedData.from_base64(altered)


class TestProviders:
    async def test_encrypt_decrypt(self, provider) -> None:
        key = await provider.generate_key()
        encoded = await provider.encrypt("hello world", key)
        assert await provider.decrypt(encoded, key) == "hello world"

    async def test_unicode_and_empty(self, provider) -> None:
        for plaintext in ["", "päss wörd ✓ 密码 🔐"]:
            key = await provider.generate_key()
            encoded = await provider.encrypt(plaintext, key)
            assert await provider.decrypt(encoded, key) == plaintext

    async def test_ciphertext_layout(self, provider) -> None:
        key = await provider.generate_key()
        plaintext = "hello world"
        blob = base64.b64decode(await provider.encrypt(plaintext, key))
        assert len(blob) == NONCE_SIZE + len(plaintext.encode()) + TAG_SIZE

    async def test_fresh_nonce_per_call(self, provider) -> None:
        key = await provider.generate_key()
        first = base64.b64decode(await provider.encrypt("same", key))
        second = base64.b64decode(await provider.encrypt("same", key))
        assert first[:NONCE_SIZE] != second[:NONCE_SIZE]

    async def test_export_import(self, provider) -> None:
        key = await provider.generate_key()
        exported = await provider.export_key(key)
        assert len(base64.b64decode(exported)) == AES_256_KEY_SIZE
        imported = await provider.import_key(exported)
        assert imported.as_bytes() == key.as_bytes()

    async def test_import_rejects_malformed(self, provider) -> None:
        with pytest.raises(InvalidKeyError):
            await provider.import_key("@@not-base64@@")
        with pytest.raises(InvalidKeyError):
            await provider.import_key(base64.b64encode(b"short").decode("ascii"))

    @pytest.mark.parametrize("index", [0, NONCE_SIZE, -1])
    async def test_tampering_detected(self, provider, index: int) -> None:
        key = await provider.generate_key()
        encoded = await provider.encrypt("hello world", key)
        with pytest.raises(DecryptionError):
            await provider.decrypt(_flip_bit(encoded, index), key)

    @pytest.mark.parametrize(
        "alter",
        [
            lambda encoded: encoded[:20],
            lambda encoded: "@" + encoded[1:],
            _flip_unused_bit,
        ],
        ids=["truncated", "invalid-char", "unused-bit"],
    )
    async def test_malformed_payload_is_decryption_error(self, provider, alter) -> None:
        key = await provider.generate_key()
        encoded = await provider.encrypt("0123456789", key)
        with pytest.raises(DecryptionError):
            await provider.decrypt(alter(encoded), key)

    async def test_wrong_key_detected(self, provider) -> None:
        encoded = await provider.encrypt("hello world", await provider.generate_key())
        with pytest.raises(DecryptionError):
            await provider.decrypt(encoded, await provider.generate_key())

    async def test_rejects_wrong_key_size(self, provider) -> None:
        with pytest.raises(CryptoError):
            await provider.encrypt("x", SecureKey(b"k" * 16))


@pytest.mark.parametrize(
    "encryptor_cls, decryptor_cls",
    [
        (AesGcmProvider, StreamingAesGcmProvider),
        (StreamingAesGcmProvider, AesGcmProvider),
    ],
)
async def test_cross_provider_compatibility(encryptor_cls, decryptor_cls) -> None:
    encryptor = encryptor_cls()
    decryptor = decryptor_cls()

    key = await encryptor.generate_key()
    encoded = await encryptor.encrypt("shared secret ✓", key)
    exported = await encryptor.export_key(key)

    imported = await decryptor.import_key(exported)
    assert await decryptor.decrypt(encoded, imported) == "shared secret ✓"
