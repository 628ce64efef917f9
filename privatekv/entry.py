"""
Persisted record and inline value formats.

Record (handed to a storage adapter, JSON-encoded):

    {"wrapped_key": ..., "ciphertext": ..., "key_id": ..., "algorithm": "AES-256-GCM", "v": 1}

Inline value (embedded in a larger key-value record):

    enc:AES256:<key_id>:<ciphertext_base64>
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .errors import MalformedValueError, SerializationError

ALGORITHM: str = "AES-256-GCM"
FORMAT_VERSION: int = 1

INLINE_PREFIX: str = "enc:AES256:"
_INLINE_SEGMENTS: int = 4


@dataclass
class EncryptedEntry:
    """
    Unit persisted by a storage adapter.

    Every field is safe to hand to a party other than the caller: the
    ciphertext needs the unwrapped key, and the wrapped key needs the
    trust anchor.
    """

    wrapped_key: str
    ciphertext: str
    key_id: str
    algorithm: str = ALGORITHM
    version: int = FORMAT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (note the ``v`` key for the version)."""
        return {
            "wrapped_key": self.wrapped_key,
            "ciphertext": self.ciphertext,
            "key_id": self.key_id,
            "algorithm": self.algorithm,
            "v": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EncryptedEntry:
        """
        Build an entry from its wire representation.

        Raises:
            SerializationError: If fields are missing or the format is unsupported
        """
        if not isinstance(data, Mapping):
            raise SerializationError(
                f"Encrypted entry must be an object, got {type(data).__name__}"
            )

        missing = [
            name
            for name in ("wrapped_key", "ciphertext", "key_id", "algorithm", "v")
            if name not in data
        ]
        if missing:
            raise SerializationError(
                f"Encrypted entry is missing fields: {', '.join(missing)}"
            )

        if data["algorithm"] != ALGORITHM:
            raise SerializationError(f"Unsupported algorithm: {data['algorithm']}")
        if data["v"] != FORMAT_VERSION:
            raise SerializationError(f"Unsupported entry version: {data['v']}")

        for name in ("wrapped_key", "ciphertext", "key_id"):
            if not isinstance(data[name], str):
                raise SerializationError(f"Field {name} must be a string")

        return cls(
            wrapped_key=data["wrapped_key"],
            ciphertext=data["ciphertext"],
            key_id=data["key_id"],
            algorithm=data["algorithm"],
            version=data["v"],
        )

    def to_json(self) -> str:
        """Serialize entry to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str | bytes) -> EncryptedEntry:
        """Deserialize entry from JSON string."""
        try:
            data = json.loads(json_str)
        except ValueError as e:
            raise SerializationError(f"Failed to deserialize entry: {e}") from e
        return cls.from_dict(data)


@dataclass(frozen=True)
class EncryptedValue:
    """Inline encrypted value: key id plus base64 ciphertext."""

    key_id: str
    ciphertext_b64: str

    def __post_init__(self) -> None:
        if not self.key_id or ":" in self.key_id:
            raise MalformedValueError(f"Invalid key id for inline value: {self.key_id!r}")
        if not self.ciphertext_b64 or ":" in self.ciphertext_b64:
            raise MalformedValueError("Invalid ciphertext for inline value")

    def __str__(self) -> str:
        return f"{INLINE_PREFIX}{self.key_id}:{self.ciphertext_b64}"

    @classmethod
    def from_string(cls, value: str) -> EncryptedValue:
        """
        Strict parse of ``enc:AES256:<key_id>:<ciphertext_b64>``.

        Raises:
            MalformedValueError: If the prefix or segment count does not match
        """
        if not isinstance(value, str) or not value.startswith(INLINE_PREFIX):
            raise MalformedValueError("Value does not start with 'enc:AES256:'")

        parts = value.split(":")
        if len(parts) != _INLINE_SEGMENTS:
            raise MalformedValueError(
                f"Expected {_INLINE_SEGMENTS} colon-delimited segments, got {len(parts)}"
            )

        return cls(key_id=parts[2], ciphertext_b64=parts[3])


def parse_encrypted_value(value: str) -> Optional[EncryptedValue]:
    """Parse an inline value, returning None when it is not one."""
    try:
        return EncryptedValue.from_string(value)
    except MalformedValueError:
        return None


def format_encrypted_value(key_id: str, ciphertext_b64: str) -> str:
    """Build the inline form for a key id and base64 ciphertext."""
    return str(EncryptedValue(key_id=key_id, ciphertext_b64=ciphertext_b64))


def is_encrypted_value(value: str) -> bool:
    """Detect an inline value in a raw KV row, where it may arrive JSON-quoted."""
    if not isinstance(value, str):
        return False
    return parse_encrypted_value(value.strip('"')) is not None
