"""
Environment-driven configuration.

Values are read from the process environment after loading an optional
``.env`` file:

    PRIVATEKV_ACCOUNT_ID            (required)
    PRIVATEKV_NAMESPACE             default: privatekv
    PRIVATEKV_GROUP_SUFFIX          default: private
    FASTKV_API_URL
    FASTKV_CONTRACT_ID              default: contextual.near
    OUTLAYER_NETWORK                default: mainnet
    OUTLAYER_CONTRACT_ID
    OUTLAYER_MAX_INSTRUCTIONS       default: 10000000000
    OUTLAYER_MAX_MEMORY_MB          default: 128
    OUTLAYER_MAX_EXECUTION_SECONDS  default: 60
    DATABASE_URL
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .client import DEFAULT_GROUP_SUFFIX, DEFAULT_NAMESPACE
from .errors import ConfigError
from .fastkv import DEFAULT_CONTRACT_ID
from .outlayer import ResourceLimits

_DEFAULT_LIMITS = ResourceLimits()


@dataclass(frozen=True)
class PrivateKVSettings:
    """Settings for a PrivateKV client and its adapters."""

    account_id: str
    namespace: str = DEFAULT_NAMESPACE
    group_suffix: str = DEFAULT_GROUP_SUFFIX
    fastkv_api_url: Optional[str] = None
    fastkv_contract_id: str = DEFAULT_CONTRACT_ID
    outlayer_network: str = "mainnet"
    outlayer_contract_id: Optional[str] = None
    max_instructions: int = _DEFAULT_LIMITS.max_instructions
    max_memory_mb: int = _DEFAULT_LIMITS.max_memory_mb
    max_execution_seconds: int = _DEFAULT_LIMITS.max_execution_seconds
    database_url: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        env_file: Optional[str | Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> PrivateKVSettings:
        """
        Load settings from the environment.

        Args:
            env_file: Optional .env path (default: search from the working directory)
            environ: Mapping to read instead of os.environ (no .env loading)

        Raises:
            ConfigError: If a required value is missing or an integer is invalid
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ

        account_id = environ.get("PRIVATEKV_ACCOUNT_ID", "").strip()
        if not account_id:
            raise ConfigError("PRIVATEKV_ACCOUNT_ID must be set in environment or .env file")

        return cls(
            account_id=account_id,
            namespace=environ.get("PRIVATEKV_NAMESPACE") or DEFAULT_NAMESPACE,
            group_suffix=environ.get("PRIVATEKV_GROUP_SUFFIX") or DEFAULT_GROUP_SUFFIX,
            fastkv_api_url=environ.get("FASTKV_API_URL") or None,
            fastkv_contract_id=environ.get("FASTKV_CONTRACT_ID") or DEFAULT_CONTRACT_ID,
            outlayer_network=environ.get("OUTLAYER_NETWORK") or "mainnet",
            outlayer_contract_id=environ.get("OUTLAYER_CONTRACT_ID") or None,
            max_instructions=_int_setting(
                environ, "OUTLAYER_MAX_INSTRUCTIONS", _DEFAULT_LIMITS.max_instructions
            ),
            max_memory_mb=_int_setting(
                environ, "OUTLAYER_MAX_MEMORY_MB", _DEFAULT_LIMITS.max_memory_mb
            ),
            max_execution_seconds=_int_setting(
                environ, "OUTLAYER_MAX_EXECUTION_SECONDS", _DEFAULT_LIMITS.max_execution_seconds
            ),
            database_url=environ.get("DATABASE_URL") or None,
        )

    def resource_limits(self) -> ResourceLimits:
        """Execution budget for the OutLayer adapter."""
        return ResourceLimits(
            max_instructions=self.max_instructions,
            max_memory_mb=self.max_memory_mb,
            max_execution_seconds=self.max_execution_seconds,
        )


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value
