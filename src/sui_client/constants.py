"""Shared ledger constants for the Sui JSON-RPC surface."""

FULLNODE_URLS = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
    "localnet": "http://127.0.0.1:9000",
}

SUI_COIN_TYPE = "0x2::sui::SUI"
MOVE_STDLIB_ADDRESS = "0x1"
SYSTEM_STATE_OBJECT_ID = "0x5"
CLOCK_OBJECT_ID = "0x6"

# Signature scheme flag prefixed to serialized signatures and keystore keys.
ED25519_FLAG = 0x00

DEFAULT_GAS_BUDGET = 100_000_000


def default_rpc_url(network: str = "mainnet") -> str:
    """Return the public fullnode URL for a named network."""
    try:
        return FULLNODE_URLS[network]
    except KeyError as exc:
        available = ", ".join(sorted(FULLNODE_URLS))
        raise ValueError(
            f"Unknown network '{network}'. Available networks: {available}."
        ) from exc
