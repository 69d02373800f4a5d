"""Binary canonical serialization (BCS) helpers for Sui transaction payloads."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, TypeVar, Union

T = TypeVar("T")

ADDRESS_LENGTH = 32
DIGEST_LENGTH = 32

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_INDEX = {char: index for index, char in enumerate(_BASE58_ALPHABET)}
_HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]+$")
_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Variant indices of the ``TypeTag`` enum.
_PRIMITIVE_TAGS = {
    "bool": 0,
    "u8": 1,
    "u64": 2,
    "u128": 3,
    "address": 4,
    "signer": 5,
    "u16": 8,
    "u32": 9,
    "u256": 10,
}
_VECTOR_TAG = 6
_STRUCT_TAG = 7


class BcsError(ValueError):
    """Raised when a value cannot be serialized."""


class BcsWriter:
    """Append-only BCS byte writer."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)

    def write_u8(self, value: int) -> "BcsWriter":
        return self._write_uint(value, 1)

    def write_u16(self, value: int) -> "BcsWriter":
        return self._write_uint(value, 2)

    def write_u32(self, value: int) -> "BcsWriter":
        return self._write_uint(value, 4)

    def write_u64(self, value: int) -> "BcsWriter":
        return self._write_uint(value, 8)

    def write_bool(self, value: bool) -> "BcsWriter":
        return self.write_u8(1 if value else 0)

    def write_uleb128(self, value: int) -> "BcsWriter":
        if value < 0:
            raise BcsError(f"uleb128 value must be non-negative, got: {value}")
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self._buffer.append(byte | 0x80)
            else:
                self._buffer.append(byte)
                return self

    def write_fixed_bytes(self, data: bytes) -> "BcsWriter":
        self._buffer.extend(data)
        return self

    def write_bytes(self, data: bytes) -> "BcsWriter":
        self.write_uleb128(len(data))
        return self.write_fixed_bytes(data)

    def write_str(self, value: str) -> "BcsWriter":
        return self.write_bytes(value.encode("utf8"))

    def write_address(self, address: str) -> "BcsWriter":
        return self.write_fixed_bytes(address_to_bytes(address))

    def write_vec(
        self, items: Iterable[T], write_item: Callable[["BcsWriter", T], object]
    ) -> "BcsWriter":
        materialized = list(items)
        self.write_uleb128(len(materialized))
        for item in materialized:
            write_item(self, item)
        return self

    def write_option(
        self, value: T | None, write_item: Callable[["BcsWriter", T], object]
    ) -> "BcsWriter":
        if value is None:
            return self.write_u8(0)
        self.write_u8(1)
        write_item(self, value)
        return self

    def _write_uint(self, value: int, width: int) -> "BcsWriter":
        if value < 0 or value >= 1 << (8 * width):
            raise BcsError(f"Value {value} does not fit in u{8 * width}")
        self._buffer.extend(value.to_bytes(width, "little"))
        return self


def normalize_address(address: str) -> str:
    """Return the 0x-prefixed, zero-padded 64 hex character form of an address."""
    cleaned = address.strip()
    if not cleaned or not _HEX_RE.match(cleaned):
        raise BcsError(f"Invalid address: {address!r}")
    body = cleaned[2:] if cleaned.lower().startswith("0x") else cleaned
    if len(body) > ADDRESS_LENGTH * 2:
        raise BcsError(f"Address too long: {address!r}")
    return "0x" + body.lower().rjust(ADDRESS_LENGTH * 2, "0")


def address_to_bytes(address: str) -> bytes:
    return bytes.fromhex(normalize_address(address)[2:])


def base58_decode(value: str) -> bytes:
    number = 0
    for char in value:
        try:
            number = number * 58 + _BASE58_INDEX[char]
        except KeyError as exc:
            raise BcsError(f"Invalid base58 character {char!r} in {value!r}") from exc
    decoded = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    leading_zeros = len(value) - len(value.lstrip("1"))
    return b"\x00" * leading_zeros + decoded


def base58_encode(data: bytes) -> str:
    number = int.from_bytes(data, "big")
    encoded = ""
    while number:
        number, remainder = divmod(number, 58)
        encoded = _BASE58_ALPHABET[remainder] + encoded
    leading_zeros = len(data) - len(data.lstrip(b"\x00"))
    return "1" * leading_zeros + encoded


def digest_to_bytes(digest: str) -> bytes:
    raw = base58_decode(digest)
    if len(raw) != DIGEST_LENGTH:
        raise BcsError(f"Digest must decode to {DIGEST_LENGTH} bytes: {digest!r}")
    return raw


# ---------------------------------------------------------------------------
# Type tags
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StructTag:
    address: str
    module: str
    name: str
    type_params: tuple["TypeTag", ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        base = f"{normalize_address(self.address)}::{self.module}::{self.name}"
        if not self.type_params:
            return base
        params = ", ".join(str(param) for param in self.type_params)
        return f"{base}<{params}>"


@dataclass(frozen=True)
class VectorTag:
    element: "TypeTag"

    def __str__(self) -> str:
        return f"vector<{self.element}>"


TypeTag = Union[str, StructTag, VectorTag]


def parse_type_tag(value: str) -> TypeTag:
    """Parse a Move type string such as ``0x2::coin::Coin<0x2::sui::SUI>``."""
    tag, rest = _parse_type(value.strip())
    if rest.strip():
        raise BcsError(f"Unexpected trailing input in type tag {value!r}: {rest!r}")
    return tag


def normalize_type(value: str) -> str:
    """Canonical string form of a type: long addresses, normalized spacing."""
    return str(parse_type_tag(value))


def write_type_tag(writer: BcsWriter, tag: TypeTag) -> BcsWriter:
    if isinstance(tag, str):
        writer.write_uleb128(_PRIMITIVE_TAGS[tag])
    elif isinstance(tag, VectorTag):
        writer.write_uleb128(_VECTOR_TAG)
        write_type_tag(writer, tag.element)
    else:
        writer.write_uleb128(_STRUCT_TAG)
        writer.write_address(tag.address)
        writer.write_str(tag.module)
        writer.write_str(tag.name)
        writer.write_vec(tag.type_params, write_type_tag)
    return writer


def _parse_type(text: str) -> tuple[TypeTag, str]:
    text = text.lstrip()
    if text.startswith("vector<"):
        element, rest = _parse_type(text[len("vector<") :])
        rest = rest.lstrip()
        if not rest.startswith(">"):
            raise BcsError(f"Unclosed vector type in {text!r}")
        return VectorTag(element), rest[1:]

    end = len(text)
    for index, char in enumerate(text):
        if char in "<>,":
            end = index
            break
    head = text[:end].strip()
    rest = text[end:]

    if head in _PRIMITIVE_TAGS:
        return head, rest

    parts = head.split("::")
    if len(parts) != 3:
        raise BcsError(f"Invalid struct type {head!r}")
    address, module, name = parts
    if not _IDENT_RE.match(module) or not _IDENT_RE.match(name):
        raise BcsError(f"Invalid struct type {head!r}")

    params: list[TypeTag] = []
    if rest.startswith("<"):
        rest = rest[1:]
        while True:
            param, rest = _parse_type(rest)
            params.append(param)
            rest = rest.lstrip()
            if rest.startswith(","):
                rest = rest[1:]
                continue
            if rest.startswith(">"):
                rest = rest[1:]
                break
            raise BcsError(f"Unclosed type parameters in {text!r}")

    return (
        StructTag(
            address=normalize_address(address),
            module=module,
            name=name,
            type_params=tuple(params),
        ),
        rest,
    )
