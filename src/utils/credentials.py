"""Credential loading helpers for the lending bot."""

from __future__ import annotations

import os
import re
from typing import Mapping

import keyring
from keyring.errors import KeyringError

DEFAULT_SERVICE_NAME = "sui-lend-bot"
DEFAULT_PRIVATE_KEY_ENV = "SUI_PRIVATE_KEY"
DEFAULT_PRIVATE_KEY_USERNAME = "private_key"
_ENV_PATTERN = re.compile(r"^\$\{([A-Z0-9_]+)\}$")


def load_private_key(
    service_name: str,
    config: Mapping[str, object] | None = None,
    *,
    private_key_env: str = DEFAULT_PRIVATE_KEY_ENV,
    private_key_username: str = DEFAULT_PRIVATE_KEY_USERNAME,
) -> str:
    """Load the signing key from config, env vars, or keyring in order."""
    private_key = resolve_config_value(config, "private_key")

    if not private_key:
        private_key = _clean_value(os.getenv(private_key_env))

    if not private_key:
        private_key = _get_keyring_value(service_name, private_key_username)

    if not private_key:
        raise ValueError(
            "Signing key is missing. Provide private_key in the config, "
            f"set {private_key_env}, or store it in the keychain "
            f"for service '{service_name}'."
        )

    return private_key


def store_private_key(
    service_name: str,
    private_key: str,
    *,
    private_key_username: str = DEFAULT_PRIVATE_KEY_USERNAME,
) -> None:
    """Store the signing key in the OS keychain via keyring."""
    value = _clean_value(private_key)
    if not value:
        raise ValueError("private_key must be a non-empty string.")
    try:
        keyring.set_password(service_name, private_key_username, value)
    except KeyringError as exc:
        raise RuntimeError(
            "Failed to store the signing key in the OS keychain. "
            "Ensure a keyring backend is available."
        ) from exc


def resolve_config_value(config: Mapping[str, object] | None, key: str) -> str | None:
    """Read a config value, expanding a whole-value ``${ENV_VAR}`` placeholder."""
    if not config or key not in config:
        return None
    raw = config.get(key)
    if not isinstance(raw, str):
        return _clean_value(str(raw)) if raw is not None else None
    raw = raw.strip()
    if not raw:
        return None
    match = _ENV_PATTERN.match(raw)
    if match:
        return _clean_value(os.getenv(match.group(1)))
    return _clean_value(raw)


def _clean_value(value: str | None) -> str | None:
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _get_keyring_value(service_name: str, username: str) -> str | None:
    try:
        return _clean_value(keyring.get_password(service_name, username))
    except KeyringError as exc:
        raise RuntimeError(
            "Failed to access the OS keychain. "
            "Ensure a keyring backend is available."
        ) from exc
