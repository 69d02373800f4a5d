import pytest

import utils.credentials as credentials
from conftest import LENDING_MARKET_ID, LENDING_MARKET_TYPE, PACKAGE_ID
from engine.client_factory import (
    apply_env_fallbacks,
    build_env_config,
    build_rpc_client,
    build_signer,
)
from engine.errors import ConfigError
from sui_client.constants import FULLNODE_URLS
from sui_client.signer import Ed25519Signer

FALLBACK_ENV = (
    "SUI_RPC_URL",
    "SUI_NETWORK",
    "SUI_PACKAGE_ID",
    "LENDING_MARKET_OBJ",
    "LENDING_MARKET_TYPE",
    "COIN_TYPE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in FALLBACK_ENV:
        monkeypatch.delenv(name, raising=False)


def test_build_env_config_from_config():
    env = build_env_config(
        {
            "package_id": PACKAGE_ID,
            "lending_market_id": LENDING_MARKET_ID,
            "lending_market_type": LENDING_MARKET_TYPE,
        }
    )

    assert env.package_id == PACKAGE_ID
    assert env.lending_market_type == LENDING_MARKET_TYPE


def test_build_env_config_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv("SUI_PACKAGE_ID", PACKAGE_ID)
    monkeypatch.setenv("LENDING_MARKET_OBJ", LENDING_MARKET_ID)
    monkeypatch.setenv("LENDING_MARKET_TYPE", LENDING_MARKET_TYPE)

    env = build_env_config({})

    assert env.lending_market_id == LENDING_MARKET_ID


def test_build_env_config_missing_identifier():
    with pytest.raises(ConfigError):
        build_env_config({"package_id": PACKAGE_ID})


def test_apply_env_fallbacks_prefers_config(monkeypatch):
    monkeypatch.setenv("COIN_TYPE", "0x2::sui::SUI")
    monkeypatch.setenv("SUI_NETWORK", "testnet")

    resolved = apply_env_fallbacks({"network": "devnet", "amount": 5})

    assert resolved == {"network": "devnet", "amount": 5, "coin_type": "0x2::sui::SUI"}


def test_build_rpc_client_uses_network_url():
    client = build_rpc_client({"network": "testnet", "rpc_timeout_sec": 5})

    assert client.base_url == FULLNODE_URLS["testnet"]
    assert client.timeout == 5.0


def test_build_rpc_client_prefers_explicit_url(monkeypatch):
    monkeypatch.setenv("SUI_RPC_URL", "http://127.0.0.1:9000/")

    client = build_rpc_client({"network": "testnet"})

    assert client.base_url == "http://127.0.0.1:9000"


def test_build_rpc_client_unknown_network():
    with pytest.raises(ConfigError):
        build_rpc_client({"network": "moonnet"})


def test_build_signer_reads_key_from_config(monkeypatch):
    monkeypatch.setattr(credentials.keyring, "get_password", lambda s, u: None)
    secret = bytes(range(32))

    signer = build_signer({"private_key": secret.hex()})

    assert signer.address == Ed25519Signer.from_secret_bytes(secret).address
