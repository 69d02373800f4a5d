"""Programmable transaction builder.

The builder only accumulates state. Object versions are looked up once by
``resolve`` and the two payload forms are pure functions of the builder state
plus that snapshot, so the same actions and snapshot always give the same bytes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Protocol, Sequence, Union

from engine.errors import EngineError
from sui_client.bcs import (
    BcsWriter,
    address_to_bytes,
    digest_to_bytes,
    normalize_address,
    parse_type_tag,
    write_type_tag,
)
from sui_client.models import ObjectRef, ObjectSnapshot


class TransactionBuildError(EngineError):
    """Raised when the accumulated plan cannot be serialized."""


class ArgumentKind(Enum):
    GAS_COIN = 0
    INPUT = 1
    RESULT = 2
    NESTED_RESULT = 3


@dataclass(frozen=True)
class Argument:
    kind: ArgumentKind
    index: int = 0
    result_index: int = 0

    def nested(self, result_index: int) -> "Argument":
        if self.kind is not ArgumentKind.RESULT:
            raise TransactionBuildError("Only command results have nested results")
        return Argument(ArgumentKind.NESTED_RESULT, self.index, result_index)


@dataclass(frozen=True)
class PureInput:
    data: bytes


@dataclass
class ObjectInput:
    object_id: str
    shared: bool
    mutable: bool = True
    ref: ObjectRef | None = None


Input = Union[PureInput, ObjectInput]


@dataclass(frozen=True)
class MoveCall:
    package: str
    module: str
    function: str
    type_arguments: tuple[str, ...]
    arguments: tuple[Argument, ...]

    @property
    def target(self) -> str:
        return f"{self.package}::{self.module}::{self.function}"


@dataclass(frozen=True)
class SplitCoins:
    coin: Argument
    amounts: tuple[Argument, ...]


@dataclass(frozen=True)
class TransferObjects:
    objects: tuple[Argument, ...]
    recipient: Argument


Command = Union[MoveCall, SplitCoins, TransferObjects]


@dataclass(frozen=True)
class ObjectVersionSnapshot:
    """Object versions and digests as observed at build time."""

    objects: Mapping[str, ObjectSnapshot] = field(default_factory=dict)
    gas_price: int | None = None

    def get(self, object_id: str) -> ObjectSnapshot:
        try:
            return self.objects[normalize_address(object_id)]
        except KeyError as exc:
            raise TransactionBuildError(
                f"Object {object_id} missing from version snapshot"
            ) from exc


class ObjectFetcher(Protocol):
    async def multi_get_objects(
        self, object_ids: Sequence[str], options: Mapping[str, bool] | None = None
    ) -> list[ObjectSnapshot]:
        ...

    async def get_reference_gas_price(self) -> int:
        ...


class TransactionBuilder:
    """Accumulates one programmable transaction. Owned by a single run."""

    def __init__(self) -> None:
        self.sender: str | None = None
        self.gas_payment: list[ObjectRef] = []
        self.gas_budget: int | None = None
        self.gas_price: int | None = None
        self.inputs: list[Input] = []
        self.commands: list[Command] = []
        self._object_inputs: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Transaction metadata
    # ------------------------------------------------------------------

    def set_sender(self, address: str) -> None:
        normalized = normalize_address(address)
        if self.sender is not None and self.sender != normalized:
            raise TransactionBuildError(
                f"Sender already set to {self.sender}; refusing to change it"
            )
        self.sender = normalized

    def set_gas_payment(self, refs: Sequence[ObjectRef]) -> None:
        self.gas_payment = list(refs)

    def set_gas_budget(self, budget: int) -> None:
        if budget <= 0:
            raise TransactionBuildError(f"Gas budget must be positive, got {budget}")
        self.gas_budget = budget

    def set_gas_price(self, price: int) -> None:
        self.gas_price = price

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def pure_u64(self, value: int) -> Argument:
        return self._add_pure(BcsWriter().write_u64(value).to_bytes())

    def pure_address(self, address: str) -> Argument:
        return self._add_pure(address_to_bytes(address))

    def owned_object(self, ref: ObjectRef) -> Argument:
        object_id = normalize_address(ref.object_id)
        existing = self._object_inputs.get(object_id)
        if existing is not None:
            current = self.inputs[existing]
            if isinstance(current, ObjectInput) and current.ref is None:
                current.ref = ref
            return Argument(ArgumentKind.INPUT, existing)
        return self._add_object(ObjectInput(object_id=object_id, shared=False, ref=ref))

    def owned_object_id(self, object_id: str) -> Argument:
        """Reference an owned object whose version is resolved at build time."""
        normalized = normalize_address(object_id)
        existing = self._object_inputs.get(normalized)
        if existing is not None:
            return Argument(ArgumentKind.INPUT, existing)
        return self._add_object(ObjectInput(object_id=normalized, shared=False))

    def shared_object(self, object_id: str, *, mutable: bool) -> Argument:
        normalized = normalize_address(object_id)
        existing = self._object_inputs.get(normalized)
        if existing is not None:
            current = self.inputs[existing]
            if isinstance(current, ObjectInput) and current.shared and mutable:
                current.mutable = True
            return Argument(ArgumentKind.INPUT, existing)
        return self._add_object(
            ObjectInput(object_id=normalized, shared=True, mutable=mutable)
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def move_call(
        self,
        target: str,
        arguments: Sequence[Argument] = (),
        type_arguments: Sequence[str] = (),
    ) -> Argument:
        parts = target.split("::")
        if len(parts) != 3:
            raise TransactionBuildError(f"Invalid move call target: {target}")
        package, module, function = parts
        for type_argument in type_arguments:
            parse_type_tag(type_argument)
        return self._add_command(
            MoveCall(
                package=normalize_address(package),
                module=module,
                function=function,
                type_arguments=tuple(type_arguments),
                arguments=tuple(arguments),
            )
        )

    def split_coins(self, coin: Argument, amounts: Sequence[Argument]) -> list[Argument]:
        result = self._add_command(SplitCoins(coin=coin, amounts=tuple(amounts)))
        return [result.nested(index) for index in range(len(amounts))]

    def transfer_objects(self, objects: Sequence[Argument], recipient: Argument) -> None:
        self._add_command(TransferObjects(objects=tuple(objects), recipient=recipient))

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def referenced_objects(self) -> list[ObjectInput]:
        return [item for item in self.inputs if isinstance(item, ObjectInput)]

    def unresolved_object_ids(self) -> list[str]:
        return [
            item.object_id
            for item in self.referenced_objects()
            if item.shared or item.ref is None
        ]

    def describe_calls(self) -> list[str]:
        labels = []
        for command in self.commands:
            if isinstance(command, MoveCall):
                labels.append(command.target)
            elif isinstance(command, SplitCoins):
                labels.append("SplitCoins")
            else:
                labels.append("TransferObjects")
        return labels

    # ------------------------------------------------------------------
    # Resolution and serialization
    # ------------------------------------------------------------------

    async def resolve(self, client: ObjectFetcher) -> ObjectVersionSnapshot:
        """Fetch current version and digest for every object not pinned by ref."""
        object_ids = self.unresolved_object_ids()
        snapshots = await client.multi_get_objects(object_ids) if object_ids else []
        objects = {
            normalize_address(snapshot.object_id): snapshot for snapshot in snapshots
        }
        gas_price = self.gas_price
        if gas_price is None:
            gas_price = await client.get_reference_gas_price()
        return ObjectVersionSnapshot(objects=objects, gas_price=gas_price)

    def build_kind(self, snapshot: ObjectVersionSnapshot) -> bytes:
        """Serialize the call-only payload (``TransactionKind``)."""
        writer = BcsWriter()
        self._write_kind(writer, snapshot)
        return writer.to_bytes()

    def build_data(self, snapshot: ObjectVersionSnapshot) -> bytes:
        """Serialize the full payload (``TransactionData``) with sender and gas."""
        if self.sender is None:
            raise TransactionBuildError("Sender is required for a full transaction")
        if not self.gas_payment:
            raise TransactionBuildError("Gas payment is required for a full transaction")
        if self.gas_budget is None:
            raise TransactionBuildError("Gas budget is required for a full transaction")
        gas_price = self.gas_price if self.gas_price is not None else snapshot.gas_price
        if gas_price is None:
            raise TransactionBuildError("Gas price is required for a full transaction")

        writer = BcsWriter()
        writer.write_uleb128(0)  # TransactionData::V1
        self._write_kind(writer, snapshot)
        writer.write_address(self.sender)
        writer.write_vec(self.gas_payment, _write_object_ref)
        writer.write_address(self.sender)
        writer.write_u64(gas_price)
        writer.write_u64(self.gas_budget)
        writer.write_uleb128(0)  # TransactionExpiration::None
        return writer.to_bytes()

    def _write_kind(self, writer: BcsWriter, snapshot: ObjectVersionSnapshot) -> None:
        if not self.commands:
            raise TransactionBuildError("Transaction has no commands")
        writer.write_uleb128(0)  # TransactionKind::ProgrammableTransaction
        writer.write_vec(
            self.inputs, lambda w, item: _write_call_arg(w, item, snapshot)
        )
        writer.write_vec(self.commands, _write_command)

    def _add_pure(self, data: bytes) -> Argument:
        self.inputs.append(PureInput(data))
        return Argument(ArgumentKind.INPUT, len(self.inputs) - 1)

    def _add_object(self, item: ObjectInput) -> Argument:
        self.inputs.append(item)
        index = len(self.inputs) - 1
        self._object_inputs[item.object_id] = index
        return Argument(ArgumentKind.INPUT, index)

    def _add_command(self, command: Command) -> Argument:
        self.commands.append(command)
        return Argument(ArgumentKind.RESULT, len(self.commands) - 1)


def _write_object_ref(writer: BcsWriter, ref: ObjectRef) -> None:
    writer.write_address(ref.object_id)
    writer.write_u64(ref.version)
    writer.write_bytes(digest_to_bytes(ref.digest))


def _write_call_arg(
    writer: BcsWriter, item: Input, snapshot: ObjectVersionSnapshot
) -> None:
    if isinstance(item, PureInput):
        writer.write_uleb128(0)
        writer.write_bytes(item.data)
        return
    writer.write_uleb128(1)
    if item.shared:
        observed = snapshot.get(item.object_id)
        initial_version = observed.initial_shared_version
        writer.write_uleb128(1)  # ObjectArg::SharedObject
        writer.write_address(item.object_id)
        writer.write_u64(initial_version if initial_version is not None else observed.version)
        writer.write_bool(item.mutable)
        return
    ref = item.ref if item.ref is not None else snapshot.get(item.object_id).to_ref()
    writer.write_uleb128(0)  # ObjectArg::ImmOrOwnedObject
    _write_object_ref(writer, ref)


def _write_argument(writer: BcsWriter, argument: Argument) -> None:
    writer.write_uleb128(argument.kind.value)
    if argument.kind in (ArgumentKind.INPUT, ArgumentKind.RESULT):
        writer.write_u16(argument.index)
    elif argument.kind is ArgumentKind.NESTED_RESULT:
        writer.write_u16(argument.index)
        writer.write_u16(argument.result_index)


def _write_command(writer: BcsWriter, command: Command) -> None:
    if isinstance(command, MoveCall):
        writer.write_uleb128(0)
        writer.write_address(command.package)
        writer.write_str(command.module)
        writer.write_str(command.function)
        writer.write_vec(
            command.type_arguments,
            lambda w, value: write_type_tag(w, parse_type_tag(value)),
        )
        writer.write_vec(command.arguments, _write_argument)
    elif isinstance(command, TransferObjects):
        writer.write_uleb128(1)
        writer.write_vec(command.objects, _write_argument)
        _write_argument(writer, command.recipient)
    else:
        writer.write_uleb128(2)
        _write_argument(writer, command.coin)
        writer.write_vec(command.amounts, _write_argument)
