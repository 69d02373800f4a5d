"""Configuration validation utilities for the lending bot."""

from __future__ import annotations

import re
from typing import Any

from engine.errors import ConfigError
from sui_client.bcs import BcsError, parse_type_tag
from sui_client.constants import FULLNODE_URLS

_OBJECT_ID_RE = re.compile(r"^0x[0-9a-fA-F]{1,64}$")

ENV_FIELDS = ("package_id", "lending_market_id", "lending_market_type")
MODES = {"simulate", "live"}


def validate_object_id(config: dict[str, Any], field: str, *, required: bool = True) -> None:
    """Validate that a field holds a 0x-prefixed hex object id or address."""
    if field not in config or config[field] in (None, ""):
        if required:
            raise ConfigError(f"Missing required field: {field}")
        return

    value = config[field]
    if not isinstance(value, str) or not _OBJECT_ID_RE.match(value.strip()):
        raise ConfigError(
            f"{field} must be a 0x-prefixed hex object id, got: {value!r}"
        )


def validate_coin_type(config: dict[str, Any], field: str, *, required: bool = True) -> None:
    """Validate that a field holds a Move struct type such as 0x2::sui::SUI."""
    if field not in config or config[field] in (None, ""):
        if required:
            raise ConfigError(f"Missing required field: {field}")
        return

    value = config[field]
    if not isinstance(value, str):
        raise ConfigError(f"{field} must be a string, got: {type(value).__name__}")
    try:
        parse_type_tag(value)
    except BcsError as exc:
        raise ConfigError(f"{field} is not a valid Move type: {value!r}") from exc


def validate_positive_integer(
    config: dict[str, Any], field: str, *, required: bool = True, minimum: int = 1
) -> None:
    """Validate that a field is a positive integer (integers or digit strings)."""
    if field not in config:
        if required:
            raise ConfigError(f"Missing required field: {field}")
        return

    value = config[field]
    if isinstance(value, bool):
        raise ConfigError(f"{field} must be an integer, got: bool")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise ConfigError(f"{field} must be an integer, got: {type(value).__name__}")

    if value < minimum:
        raise ConfigError(f"{field} must be >= {minimum}, got: {value}")


def validate_positive_number(
    config: dict[str, Any], field: str, *, required: bool = True
) -> None:
    if field not in config:
        if required:
            raise ConfigError(f"Missing required field: {field}")
        return

    value = config[field]
    try:
        number = float(value)
    except (ValueError, TypeError) as exc:
        raise ConfigError(f"{field} must be a valid number, got: {value}") from exc
    if isinstance(value, bool) or number <= 0:
        raise ConfigError(f"{field} must be positive, got: {value}")


def validate_choice(
    config: dict[str, Any], field: str, choices: set[str], *, required: bool = True
) -> None:
    """Validate that a field is one of the allowed choices."""
    if field not in config:
        if required:
            raise ConfigError(f"Missing required field: {field}")
        return

    value = config[field]
    if not isinstance(value, str):
        raise ConfigError(f"{field} must be a string, got: {type(value).__name__}")

    if value not in choices:
        choices_str = ", ".join(sorted(choices))
        raise ConfigError(f"{field} must be one of [{choices_str}], got: {value}")


def validate_url(config: dict[str, Any], field: str = "rpc_url") -> None:
    """Validate that a URL field is properly formatted."""
    if field not in config or config[field] is None:
        return

    url = config[field]
    if not isinstance(url, str) or not url.strip():
        raise ConfigError(f"{field} must be a non-empty string")

    if not re.match(r"^https?://", url, re.IGNORECASE):
        raise ConfigError(f"{field} must start with http:// or https://, got: {url}")


def validate_env_config(config: dict[str, Any]) -> None:
    """Validate the lending market deployment identifiers."""
    validate_object_id(config, "package_id")
    validate_object_id(config, "lending_market_id")
    validate_coin_type(config, "lending_market_type")


def validate_strategy_config(config: dict[str, Any]) -> None:
    """Validate a full strategy run configuration before any network call."""
    validate_env_config(config)
    validate_url(config)
    validate_choice(config, "network", set(FULLNODE_URLS), required=False)
    validate_choice(config, "mode", MODES, required=False)
    validate_coin_type(config, "coin_type", required=False)
    validate_positive_integer(config, "amount", required=False)
    validate_positive_integer(config, "gas_budget", required=False)
    validate_positive_number(config, "rpc_timeout_sec", required=False)
    validate_positive_number(config, "withdraw_delay_minutes", required=False)
    if "safe_mode" in config and not isinstance(config["safe_mode"], bool):
        raise ConfigError("safe_mode must be a boolean")
