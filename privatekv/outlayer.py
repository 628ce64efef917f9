"""
OutLayer trust-anchor adapter.

Translates wrap/unwrap calls into a ``request_execution`` transaction that
runs the key-manager WASM inside OutLayer's TEE. Authorization and transport
are delegated to an injected ``sign_transaction`` coroutine supplied by the
embedding application (wallet, keypair signer, HTTP relay); the adapter
holds no credentials.

Request handed to the key manager (``input_data``):

    {"action": "wrap_key", "group_id": ..., "plaintext_key_b64": ...}
    {"action": "unwrap_key", "group_id": ..., "wrapped_key_b64": ...}
    {"action": "get_group_key_id", "group_id": ...}

Error responses from the key manager look like ``{"error": "...", "code": 403}``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .errors import ConfigError, GroupAuthorizationError, TrustAnchorError
from .trust_anchor import TrustAnchorAdapter, UnwrappedKey, WrappedKey

logger = logging.getLogger(__name__)

SignTransaction = Callable[[Dict[str, Any]], Awaitable[Any]]

NETWORK_CONTRACTS: Dict[str, str] = {
    "mainnet": "outlayer.near",
    "testnet": "outlayer.testnet",
}

DEFAULT_KEY_MANAGER_REPO = "github.com/Kampouse/key-manager"
DEFAULT_KEY_MANAGER_VERSION = "v0.3.0"
DEFAULT_BUILD_TARGET = "wasm32-wasip1"
DEFAULT_DEPOSIT = "0.05 NEAR"

_FORBIDDEN = 403


@dataclass(frozen=True)
class ResourceLimits:
    """Execution budget passed through to OutLayer; never interpreted locally."""

    max_instructions: int = 10_000_000_000
    max_memory_mb: int = 128
    max_execution_seconds: int = 60

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class OutLayerTrustAnchor(TrustAnchorAdapter):
    """
    Trust anchor backed by the OutLayer key-manager.

    Example:
        >>> async def sign(tx):
        ...     return await wallet.sign_and_send(tx)
        >>> tee = OutLayerTrustAnchor(sign, network="testnet")
    """

    def __init__(
        self,
        sign_transaction: SignTransaction,
        *,
        network: str = "mainnet",
        contract_id: Optional[str] = None,
        key_manager_repo: str = DEFAULT_KEY_MANAGER_REPO,
        key_manager_version: str = DEFAULT_KEY_MANAGER_VERSION,
        build_target: str = DEFAULT_BUILD_TARGET,
        resource_limits: Optional[ResourceLimits] = None,
        gas: Optional[str] = None,
        deposit: str = DEFAULT_DEPOSIT,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            sign_transaction: Coroutine that signs/submits a transaction dict
                and returns the key-manager response
            network: "mainnet" or "testnet"; selects the default contract
            contract_id: Explicit OutLayer contract, overrides ``network``
            key_manager_repo: Source repository of the key-manager WASM
            key_manager_version: Commit or tag of the key-manager WASM
            build_target: WASM build target
            resource_limits: Execution budget (defaults to ResourceLimits())
            gas: Optional gas limit attached to the transaction
            deposit: Attached deposit paying for execution

        Raises:
            ConfigError: If ``network`` is unknown and no contract is given
        """
        if not callable(sign_transaction):
            raise ConfigError("sign_transaction must be callable")

        if contract_id is None:
            try:
                contract_id = NETWORK_CONTRACTS[network]
            except KeyError:
                raise ConfigError(f"Unknown OutLayer network: {network}") from None

        self._sign_transaction = sign_transaction
        self._contract_id = contract_id
        self._key_manager_repo = key_manager_repo
        self._key_manager_version = key_manager_version
        self._build_target = build_target
        self._resource_limits = resource_limits or ResourceLimits()
        self._gas = gas
        self._deposit = deposit
        self._key_id_cache: Dict[str, str] = {}

    @property
    def contract_id(self) -> str:
        return self._contract_id

    @property
    def resource_limits(self) -> ResourceLimits:
        return self._resource_limits

    async def wrap_key(self, group_id: str, plaintext_key_b64: str) -> WrappedKey:
        result = await self._call(
            "wrap_key",
            group_id=group_id,
            plaintext_key_b64=plaintext_key_b64,
        )
        wrapped = WrappedKey(
            wrapped_key_b64=_require(result, "wrapped_key_b64"),
            key_id=_require(result, "key_id"),
        )
        self._key_id_cache.setdefault(group_id, wrapped.key_id)
        return wrapped

    async def unwrap_key(self, group_id: str, wrapped_key_b64: str) -> UnwrappedKey:
        result = await self._call(
            "unwrap_key",
            group_id=group_id,
            wrapped_key_b64=wrapped_key_b64,
        )
        return UnwrappedKey(
            plaintext_key_b64=_require(result, "plaintext_key_b64"),
            key_id=_require(result, "key_id"),
        )

    async def get_key_id(self, group_id: str) -> str:
        """Look up the group's key id, cached per adapter instance."""
        cached = self._key_id_cache.get(group_id)
        if cached is not None:
            return cached

        result = await self._call("get_group_key_id", group_id=group_id)
        key_id = _require(result, "key_id")
        self._key_id_cache[group_id] = key_id
        return key_id

    def build_transaction(self, action: str, **params: str) -> Dict[str, Any]:
        """
        Build the ``request_execution`` transaction for a key-manager action.

        Returns:
            Transaction dict handed to ``sign_transaction``
        """
        input_data = json.dumps({"action": action, **params})

        transaction: Dict[str, Any] = {
            "receiver_id": self._contract_id,
            "method_name": "request_execution",
            "args": {
                "source": {
                    "GitHub": {
                        "repo": self._key_manager_repo,
                        "commit": self._key_manager_version,
                        "build_target": self._build_target,
                    },
                },
                "input_data": input_data,
                "resource_limits": self._resource_limits.to_dict(),
                "response_format": "Json",
            },
            "deposit": self._deposit,
        }
        if self._gas is not None:
            transaction["gas"] = self._gas
        return transaction

    async def _call(self, action: str, **params: str) -> Mapping[str, Any]:
        """Sign and submit an action, then decode and check the response."""
        transaction = self.build_transaction(action, **params)

        # params may hold key material; only the action and group are logged
        logger.debug(
            "Submitting %s for group %s to %s",
            action,
            params.get("group_id"),
            self._contract_id,
        )
        raw = await self._sign_transaction(transaction)
        result = _decode_response(raw)

        if "error" in result:
            message = str(result["error"])
            code = result.get("code")
            logger.warning("Key manager rejected %s: %s (code %s)", action, message, code)
            if code == _FORBIDDEN:
                raise GroupAuthorizationError(
                    f"Not authorized for group {params.get('group_id')}: {message}"
                )
            raise TrustAnchorError(f"Key manager {action} failed: {message}")

        return result


def _decode_response(raw: Any) -> Mapping[str, Any]:
    """Accept a mapping, JSON text, or JSON bytes from the signing callback."""
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise TrustAnchorError(f"Key manager returned invalid JSON: {e}") from e
    if not isinstance(raw, Mapping):
        raise TrustAnchorError(
            f"Key manager returned unexpected response type: {type(raw).__name__}"
        )
    return raw


def _require(result: Mapping[str, Any], name: str) -> str:
    value = result.get(name)
    if not isinstance(value, str) or not value:
        raise TrustAnchorError(f"Key manager response is missing {name}")
    return value
