"""Ed25519 transaction signing for Sui accounts."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from sui_client.bcs import base58_encode
from sui_client.constants import ED25519_FLAG

# Intent prefix for transaction data: (scope=TransactionData, version=V0, app=Sui).
TRANSACTION_INTENT = bytes([0, 0, 0])
PRIVATE_KEY_LENGTH = 32


class KeyFormatError(ValueError):
    """Raised when a private key cannot be decoded."""


@dataclass(frozen=True)
class SignedTransaction:
    tx_bytes: str
    signature: str


class Ed25519Signer:
    """Signs transaction bytes with an Ed25519 key."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self._public_key = private_key.public_key().public_bytes(
            Encoding.Raw, PublicFormat.Raw
        )
        self._address = derive_address(self._public_key)

    @classmethod
    def from_secret_bytes(cls, secret: bytes) -> "Ed25519Signer":
        if len(secret) != PRIVATE_KEY_LENGTH:
            raise KeyFormatError(
                f"Ed25519 secret must be {PRIVATE_KEY_LENGTH} bytes, got {len(secret)}"
            )
        return cls(Ed25519PrivateKey.from_private_bytes(secret))

    @classmethod
    def from_private_key(cls, encoded: str) -> "Ed25519Signer":
        return cls.from_secret_bytes(decode_private_key(encoded))

    @property
    def address(self) -> str:
        return self._address

    @property
    def public_key(self) -> bytes:
        return self._public_key

    def sign_transaction(self, tx_bytes: bytes) -> SignedTransaction:
        digest = hashlib.blake2b(TRANSACTION_INTENT + tx_bytes, digest_size=32).digest()
        signature = self._private_key.sign(digest)
        serialized = bytes([ED25519_FLAG]) + signature + self._public_key
        return SignedTransaction(
            tx_bytes=base64.b64encode(tx_bytes).decode("ascii"),
            signature=base64.b64encode(serialized).decode("ascii"),
        )


def derive_address(public_key: bytes) -> str:
    digest = hashlib.blake2b(bytes([ED25519_FLAG]) + public_key, digest_size=32)
    return "0x" + digest.hexdigest()


def transaction_digest(tx_bytes: bytes) -> str:
    """Digest the node will assign to these transaction bytes."""
    digest = hashlib.blake2b(b"TransactionData::" + tx_bytes, digest_size=32).digest()
    return base58_encode(digest)


def verify_signature(serialized_signature: str, tx_bytes: bytes) -> bool:
    """Check a serialized ``flag || signature || public key`` against tx bytes."""
    raw = base64.b64decode(serialized_signature)
    if len(raw) != 1 + 64 + 32 or raw[0] != ED25519_FLAG:
        return False
    public_key = Ed25519PublicKey.from_public_bytes(raw[65:])
    digest = hashlib.blake2b(TRANSACTION_INTENT + tx_bytes, digest_size=32).digest()
    try:
        public_key.verify(raw[1:65], digest)
    except InvalidSignature:
        return False
    return True


def decode_private_key(encoded: str) -> bytes:
    """Decode a key in keystore base64 (flag + 32 bytes), raw base64, or hex."""
    value = encoded.strip()
    if not value:
        raise KeyFormatError("Private key is empty.")
    if value.startswith("suiprivkey"):
        raise KeyFormatError(
            "Bech32 'suiprivkey' keys are not supported; export the key as "
            "base64 (sui keytool export) or hex."
        )
    hex_body = value[2:] if value.lower().startswith("0x") else value
    if len(hex_body) == PRIVATE_KEY_LENGTH * 2:
        try:
            return bytes.fromhex(hex_body)
        except ValueError:
            pass
    try:
        raw = base64.b64decode(value, validate=True)
    except ValueError as exc:
        raise KeyFormatError("Private key is neither hex nor base64.") from exc
    if len(raw) == PRIVATE_KEY_LENGTH + 1:
        if raw[0] != ED25519_FLAG:
            raise KeyFormatError(
                f"Unsupported key scheme flag {raw[0]}; only Ed25519 keys are supported."
            )
        return raw[1:]
    if len(raw) == PRIVATE_KEY_LENGTH:
        return raw
    raise KeyFormatError(
        f"Decoded private key has unexpected length {len(raw)}; expected 32 or 33 bytes."
    )
