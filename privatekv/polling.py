"""
Read-after-write polling for eventually consistent storage.

PrivateKV itself never retries. Backends fed by an indexer (FastKV) can take
several seconds to expose a write, so callers that need to read their own
writes poll here, at the application boundary.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .client import PrivateKV
from .errors import ConfigError

logger = logging.getLogger(__name__)


async def wait_for_value(
    kv: PrivateKV,
    key: str,
    *,
    attempts: int = 10,
    interval: float = 1.0,
    expected: Optional[str] = None,
) -> Optional[str]:
    """
    Poll ``kv.get(key)`` until a value is visible.

    Args:
        kv: Client to read through
        key: User key
        attempts: Maximum number of reads
        interval: Seconds to sleep between reads
        expected: If given, keep polling until this exact value is returned

    Returns:
        The value, or None if it did not become visible in time. Errors from
        ``get`` (authorization, decryption, transport) are not swallowed.

    Raises:
        ConfigError: If ``attempts`` is less than 1
    """
    if attempts < 1:
        raise ConfigError(f"attempts must be at least 1, got {attempts}")

    for attempt in range(1, attempts + 1):
        value = await kv.get(key)
        if value is not None and (expected is None or value == expected):
            return value
        if attempt < attempts:
            logger.debug("Waiting for %s (attempt %d/%d)", key, attempt, attempts)
            await asyncio.sleep(interval)

    return None
