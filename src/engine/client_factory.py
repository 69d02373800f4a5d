"""
Centralized ledger client factory.

Every command builds its RPC client, signer and deployment identifiers through
this module so configuration keys and environment fallbacks live in one place.
"""

from __future__ import annotations

import os
from typing import Any

from engine.errors import ConfigError
from sui_client.async_rpc import AsyncRpcClient
from sui_client.constants import default_rpc_url
from sui_client.models import EnvConfig
from sui_client.signer import Ed25519Signer
from utils.config_validator import validate_env_config
from utils.credentials import DEFAULT_SERVICE_NAME, load_private_key, resolve_config_value

# Config key -> environment variable consulted when the key is absent.
ENV_FALLBACKS = {
    "rpc_url": "SUI_RPC_URL",
    "network": "SUI_NETWORK",
    "package_id": "SUI_PACKAGE_ID",
    "lending_market_id": "LENDING_MARKET_OBJ",
    "lending_market_type": "LENDING_MARKET_TYPE",
    "coin_type": "COIN_TYPE",
}


def config_value(config: dict[str, Any], key: str, default: Any = None) -> Any:
    """Read ``key`` from config, then from its environment fallback."""
    value = resolve_config_value(config, key)
    if value is None and key in ENV_FALLBACKS:
        env_value = os.getenv(ENV_FALLBACKS[key], "").strip()
        value = env_value or None
    return value if value is not None else default


def apply_env_fallbacks(config: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of config with every fallback-able key filled in if set."""
    resolved = dict(config)
    for key in ENV_FALLBACKS:
        value = config_value(config, key)
        if value is not None:
            resolved[key] = value
    return resolved


def build_env_config(config: dict[str, Any]) -> EnvConfig:
    """
    Build the lending market identifiers from config.

    Args:
        config: Configuration dict containing (or falling back to env):
            - package_id: str (SUI_PACKAGE_ID)
            - lending_market_id: str (LENDING_MARKET_OBJ)
            - lending_market_type: str (LENDING_MARKET_TYPE)

    Raises:
        ConfigError: if any identifier is missing or malformed.
    """
    values = {
        "package_id": config_value(config, "package_id"),
        "lending_market_id": config_value(config, "lending_market_id"),
        "lending_market_type": config_value(config, "lending_market_type"),
    }
    validate_env_config(values)
    return EnvConfig(**values)


def build_rpc_client(config: dict[str, Any]) -> AsyncRpcClient:
    """
    Build the fullnode JSON-RPC client from config.

    Args:
        config: Configuration dict containing:
            - rpc_url: str (optional, SUI_RPC_URL) - overrides the network URL
            - network: str (default: "mainnet", SUI_NETWORK)
            - rpc_timeout_sec: float (default: 30.0) - per-request timeout
            - poll_interval_sec: float (default: 1.0) - confirmation polling
            - confirm_timeout_sec: float (default: 60.0) - max confirmation wait
            - verify_ssl: bool (default: True)
    """
    rpc_url = config_value(config, "rpc_url")
    if rpc_url is None:
        network = config_value(config, "network", "mainnet")
        try:
            rpc_url = default_rpc_url(network)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    return AsyncRpcClient(
        base_url=rpc_url,
        timeout=float(config.get("rpc_timeout_sec", 30.0)),
        poll_interval=float(config.get("poll_interval_sec", 1.0)),
        max_wait=float(config.get("confirm_timeout_sec", 60.0)),
        verify_ssl=bool(config.get("verify_ssl", True)),
    )


def build_signer(config: dict[str, Any]) -> Ed25519Signer:
    """Build the transaction signer from config, env var or keychain."""
    service_name = str(config.get("keyring_service", DEFAULT_SERVICE_NAME))
    private_key = load_private_key(service_name, config)
    return Ed25519Signer.from_private_key(private_key)
